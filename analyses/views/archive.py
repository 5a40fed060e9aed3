"""
Archived analyses: filtered listing, search, per-doctor history and the
admin-only retention cleanup.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from analyses.exceptions import NotFoundError
from analyses.models import ArchivedAnalysis, Doctor
from analyses.permissions import IsAdminRole, IsStaffRole
from analyses.serializers.workflow import (
    ArchiveCleanupSerializer,
    ArchiveListQuerySerializer,
    ArchiveSearchQuerySerializer,
)
from analyses.services import archival
from analyses.views.common import paginate


def _serialize(a: ArchivedAnalysis) -> dict:
    return {
        'id': a.id,
        'originalAnalysisId': a.original_analysis_id,
        'analysisDate': a.analysis_date.isoformat(),
        'analysisType': a.analysis_type,
        'status': a.status,
        'patientId': a.patient_id,
        'patientName': a.patient_name,
        'doctorId': a.doctor_id,
        'doctorName': a.doctor_name or None,
        'roomNumber': a.room_number or None,
        'recurringAnalysisId': a.recurring_analysis_id,
        'occurrenceNumber': a.occurrence_number,
        'prescriptionId': a.prescription_id,
        'notes': a.notes,
        'completedAt': a.completed_at.isoformat() if a.completed_at else None,
        'cancelledAt': a.cancelled_at.isoformat() if a.cancelled_at else None,
        'cancellationReason': a.cancellation_reason or None,
        'archiveReason': a.archive_reason,
        'archivedAt': a.archived_at.isoformat() if a.archived_at else None,
        'archivedBy': a.archived_by_id,
    }


def _filters(v: dict) -> dict:
    return {
        'patient_id': v.get('patientId'),
        'doctor_id': v.get('doctorId'),
        'patient_name': v.get('patientName', ''),
        'doctor_name': v.get('doctorName', ''),
        'room_number': v.get('roomNumber', ''),
        'analysis_type': v.get('analysisType', ''),
        'status': v.get('status', ''),
        'reason': v.get('reason', ''),
        'start_date': v.get('startDate'),
        'end_date': v.get('endDate'),
        'archived_start_date': v.get('archivedStartDate'),
        'archived_end_date': v.get('archivedEndDate'),
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def archive_list(request):
    q = ArchiveListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    v = q.validated_data
    qs, pagination = paginate(archival.filter_archive(**_filters(v)), v)
    return Response({'ok': True, 'data': [_serialize(a) for a in qs], 'pagination': pagination})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def archive_search(request):
    q = ArchiveSearchQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    rows = archival.search_archive(q.validated_data['q'], q.validated_data['limit'])
    return Response({'ok': True, 'data': [_serialize(a) for a in rows]})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def archive_doctor_history(request, doctor_id: int):
    doctor = Doctor.objects.filter(pk=doctor_id).first()
    if doctor is None:
        raise NotFoundError(f'doctor {doctor_id} not found')
    q = ArchiveListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    v = dict(q.validated_data, doctorId=doctor.pk)
    qs, pagination = paginate(archival.filter_archive(**_filters(v)), v)
    return Response({
        'ok': True,
        'data': {'doctor': {'id': doctor.id, 'name': doctor.name}, 'analyses': [_serialize(a) for a in qs]},
        'pagination': pagination,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def archive_cleanup(request):
    s = ArchiveCleanupSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    days = s.validated_data['olderThanDays']
    deleted = archival.cleanup_archives(days, actor=request.user)
    return Response({'ok': True, 'data': {'olderThanDays': days, 'deleted': deleted}})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def archive_detail(request, pk: int):
    a = ArchivedAnalysis.objects.filter(pk=pk).first()
    if a is None:
        raise NotFoundError(f'archived analysis {pk} not found')
    return Response({'ok': True, 'data': _serialize(a)})
