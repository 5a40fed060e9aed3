import bleach
from rest_framework import serializers

from analyses.models import ANALYSIS_TYPE_CHOICES, Analysis, Prescription, RecurringAnalysis


def clean_text(v):
    return bleach.clean((v or '').strip(), strip=True)


class SeriesCreateSerializer(serializers.Serializer):
    patientId = serializers.IntegerField(min_value=1)
    doctorId = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    roomId = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    analysisType = serializers.ChoiceField(choices=[c[0] for c in ANALYSIS_TYPE_CHOICES])
    recurrencePattern = serializers.ChoiceField(choices=[c[0] for c in RecurringAnalysis.PATTERN_CHOICES])
    intervalDays = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    totalOccurrences = serializers.IntegerField(min_value=1, max_value=365)
    startDate = serializers.DateField()
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000)

    def validate_notes(self, v):
        return clean_text(v)

    def validate(self, attrs):
        if attrs['recurrencePattern'] == RecurringAnalysis.PATTERN_CUSTOM and not attrs.get('intervalDays'):
            raise serializers.ValidationError({'intervalDays': 'required for a custom pattern'})
        return attrs


class SeriesListQuerySerializer(serializers.Serializer):
    patientId = serializers.IntegerField(min_value=1, required=False)
    active = serializers.ChoiceField(choices=['true', 'false'], required=False)
    page = serializers.IntegerField(required=False, min_value=1)
    pageSize = serializers.IntegerField(required=False, min_value=1, max_value=200)


class ReasonSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255)

    def validate_reason(self, v):
        return clean_text(v)


class PrescriptionSubmitSerializer(serializers.Serializer):
    recurringAnalysisId = serializers.IntegerField(min_value=1)
    prescriptionNumber = serializers.CharField(max_length=50)
    validFrom = serializers.DateField()
    validUntil = serializers.DateField()
    totalAnalysesPrescribed = serializers.IntegerField()
    doctorId = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000)

    def validate_prescriptionNumber(self, v):
        v = clean_text(v)
        if not v:
            raise serializers.ValidationError('prescription number is required')
        return v

    def validate_notes(self, v):
        return clean_text(v)


class PrescriptionListQuerySerializer(serializers.Serializer):
    recurringAnalysisId = serializers.IntegerField(min_value=1, required=False)
    status = serializers.ChoiceField(choices=[c[0] for c in Prescription.STATUS_CHOICES], required=False)
    page = serializers.IntegerField(required=False, min_value=1)
    pageSize = serializers.IntegerField(required=False, min_value=1, max_value=200)


class CompleteSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000)

    def validate_notes(self, v):
        return clean_text(v)


class ArchiveListQuerySerializer(serializers.Serializer):
    patientId = serializers.IntegerField(min_value=1, required=False)
    doctorId = serializers.IntegerField(min_value=1, required=False)
    patientName = serializers.CharField(required=False, max_length=255)
    doctorName = serializers.CharField(required=False, max_length=255)
    roomNumber = serializers.CharField(required=False, max_length=20)
    analysisType = serializers.ChoiceField(choices=[c[0] for c in ANALYSIS_TYPE_CHOICES], required=False)
    status = serializers.ChoiceField(choices=[c[0] for c in Analysis.STATUS_CHOICES], required=False)
    reason = serializers.ChoiceField(choices=['completed', 'cancelled'], required=False)
    startDate = serializers.DateField(required=False)
    endDate = serializers.DateField(required=False)
    archivedStartDate = serializers.DateField(required=False)
    archivedEndDate = serializers.DateField(required=False)
    page = serializers.IntegerField(required=False, min_value=1)
    pageSize = serializers.IntegerField(required=False, min_value=1, max_value=200)


class SettingUpdateSerializer(serializers.Serializer):
    key = serializers.CharField(max_length=100)
    value = serializers.JSONField()
    dataType = serializers.ChoiceField(choices=['string', 'integer', 'decimal', 'boolean', 'json'], required=False)


class JobTriggerSerializer(serializers.Serializer):
    date = serializers.DateField(required=False)
    force = serializers.BooleanField(required=False, default=False)


class ArchiveSearchQuerySerializer(serializers.Serializer):
    q = serializers.CharField(max_length=255)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=100, default=10)


class ArchiveCleanupSerializer(serializers.Serializer):
    olderThanDays = serializers.IntegerField()
