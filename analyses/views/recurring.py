"""
Recurring analysis series endpoints.

Series are created here and only ever advanced by the scheduler; the API
exposes no way to bump ``completed_occurrences`` or ``next_due_date`` by
hand.
"""
from __future__ import annotations

from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from analyses.exceptions import NotFoundError
from analyses.models import RecurringAnalysis
from analyses.permissions import IsStaffRole
from analyses.serializers.workflow import ReasonSerializer, SeriesCreateSerializer, SeriesListQuerySerializer
from analyses.services import prescriptions, scheduler
from analyses.views.common import paginate, serialize_analysis
from analyses.views.prescriptions import serialize_prescription


def _serialize(s: RecurringAnalysis) -> dict:
    return {
        'id': s.id,
        'patientId': s.patient_id,
        'patientName': s.patient.name if s.patient_id else None,
        'doctorId': s.doctor_id,
        'doctorName': s.doctor.name if s.doctor_id else None,
        'roomId': s.room_id,
        'analysisType': s.analysis_type,
        'recurrencePattern': s.recurrence_pattern,
        'intervalDays': s.interval_days,
        'totalOccurrences': s.total_occurrences,
        'completedOccurrences': s.completed_occurrences,
        'nextDueDate': s.next_due_date.isoformat() if s.next_due_date else None,
        'lastScheduledDate': s.last_scheduled_date.isoformat() if s.last_scheduled_date else None,
        'isActive': s.is_active,
        'notes': s.notes,
        'createdAt': s.created_at.isoformat() if s.created_at else None,
    }


def _get(pk: int) -> RecurringAnalysis:
    s = RecurringAnalysis.objects.select_related('patient', 'doctor').filter(pk=pk).first()
    if s is None:
        raise NotFoundError(f'recurring analysis {pk} not found')
    return s


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def recurring_list(request):
    if request.method == 'GET':
        q = SeriesListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        qs = RecurringAnalysis.objects.select_related('patient', 'doctor')
        if q.validated_data.get('patientId'):
            qs = qs.filter(patient_id=q.validated_data['patientId'])
        if q.validated_data.get('active'):
            qs = qs.filter(is_active=q.validated_data['active'] == 'true')
        qs, pagination = paginate(qs.order_by('-id'), q.validated_data)
        return Response({'ok': True, 'data': [_serialize(s) for s in qs], 'pagination': pagination})

    s = SeriesCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    series = scheduler.create_series(
        patient_id=v['patientId'],
        doctor_id=v.get('doctorId'),
        room_id=v.get('roomId'),
        analysis_type=v['analysisType'],
        recurrence_pattern=v['recurrencePattern'],
        interval_days=v.get('intervalDays'),
        total_occurrences=v['totalOccurrences'],
        start_date=v['startDate'],
        notes=v.get('notes', ''),
        actor=request.user,
    )
    return Response({'ok': True, 'data': _serialize(_get(series.pk))}, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def recurring_detail(request, pk: int):
    series = _get(pk)
    today = timezone.localdate()
    data = _serialize(series)
    data['prescriptions'] = [
        serialize_prescription(prescriptions.refresh_status(p, today))
        for p in series.prescriptions.order_by('-verified_at')
    ]
    return Response({'ok': True, 'data': data})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def recurring_deactivate(request, pk: int):
    s = ReasonSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    series = scheduler.deactivate_series(_get(pk), reason=s.validated_data.get('reason', ''), actor=request.user)
    return Response({'ok': True, 'data': _serialize(series)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def recurring_occurrences(request, pk: int):
    series = _get(pk)
    qs = series.analyses.select_related('patient', 'doctor', 'room').order_by('occurrence_number')
    return Response({'ok': True, 'data': [serialize_analysis(a) for a in qs]})
