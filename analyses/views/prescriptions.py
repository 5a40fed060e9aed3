"""
Prescription endpoints.

Every read goes through :func:`prescriptions.refresh_status` so a
prescription past its validity is reported as Expired even if the periodic
check has not run yet.
"""
from __future__ import annotations

from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from analyses.exceptions import NotFoundError
from analyses.models import Prescription
from analyses.permissions import CanVerifyPrescriptions, IsStaffRole
from analyses.serializers.workflow import PrescriptionListQuerySerializer, PrescriptionSubmitSerializer, ReasonSerializer
from analyses.services import prescriptions
from analyses.views.common import paginate


def serialize_prescription(p: Prescription) -> dict:
    return {
        'id': p.id,
        'prescriptionNumber': p.prescription_number,
        'recurringAnalysisId': p.recurring_analysis_id,
        'patientId': p.patient_id,
        'doctorId': p.doctor_id,
        'prescribedBy': p.prescribed_by_id,
        'validFrom': p.valid_from.isoformat(),
        'validUntil': p.valid_until.isoformat(),
        'totalAnalysesPrescribed': p.total_analyses_prescribed,
        'remainingAnalyses': p.remaining_analyses,
        'status': p.status,
        'notes': p.notes,
        'verifiedAt': p.verified_at.isoformat() if p.verified_at else None,
    }


def _get(pk: int) -> Prescription:
    p = Prescription.objects.filter(pk=pk).first()
    if p is None:
        raise NotFoundError(f'prescription {pk} not found')
    return p


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def prescription_list(request):
    if request.method == 'GET':
        q = PrescriptionListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        # refresh first so the status filter sees current values
        prescriptions.expire_stale(timezone.localdate())
        qs = Prescription.objects.all()
        if q.validated_data.get('recurringAnalysisId'):
            qs = qs.filter(recurring_analysis_id=q.validated_data['recurringAnalysisId'])
        if q.validated_data.get('status'):
            qs = qs.filter(status=q.validated_data['status'])
        qs, pagination = paginate(qs.order_by('-verified_at'), q.validated_data)
        return Response({'ok': True, 'data': [serialize_prescription(p) for p in qs], 'pagination': pagination})

    if not CanVerifyPrescriptions().has_permission(request, None):
        return Response({'ok': False, 'error': {'code': 'forbidden', 'message': 'permission denied'}},
                        status=status.HTTP_403_FORBIDDEN)
    s = PrescriptionSubmitSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    p = prescriptions.submit(
        series_id=v['recurringAnalysisId'],
        prescription_number=v['prescriptionNumber'],
        valid_from=v['validFrom'],
        valid_until=v['validUntil'],
        total_analyses_prescribed=v['totalAnalysesPrescribed'],
        doctor_id=v.get('doctorId'),
        notes=v.get('notes', ''),
        actor=request.user,
    )
    return Response({'ok': True, 'data': serialize_prescription(p)}, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def prescription_detail(request, pk: int):
    p = prescriptions.refresh_status(_get(pk), timezone.localdate())
    data = serialize_prescription(p)
    data['analyses'] = list(p.analyses.order_by('occurrence_number').values_list('id', flat=True))
    return Response({'ok': True, 'data': data})


@api_view(['POST'])
@permission_classes([IsAuthenticated, CanVerifyPrescriptions])
def prescription_cancel(request, pk: int):
    s = ReasonSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    p = prescriptions.cancel(_get(pk), reason=s.validated_data.get('reason', ''), actor=request.user)
    return Response({'ok': True, 'data': serialize_prescription(p)})
