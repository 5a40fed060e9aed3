"""Small helpers shared by the view modules."""
from __future__ import annotations

from analyses.models import Analysis


def paginate(qs, validated: dict):
    """Apply ``page``/``pageSize`` from a validated query; no pageSize means everything."""
    page = validated.get('page') or 1
    page_size = validated.get('pageSize') or 0
    total = qs.count()
    if page_size:
        start = (page - 1) * page_size
        qs = qs[start:start + page_size]
    return qs, {'total': total, 'page': page, 'pageSize': page_size or total}


def serialize_analysis(a: Analysis) -> dict:
    return {
        'id': a.id,
        'analysisDate': a.analysis_date.isoformat() if a.analysis_date else None,
        'analysisType': a.analysis_type,
        'status': a.status,
        'patientId': a.patient_id,
        'patientName': a.patient.name if a.patient_id else None,
        'doctorId': a.doctor_id,
        'doctorName': a.doctor.name if a.doctor_id else None,
        'roomId': a.room_id,
        'roomNumber': a.room.room_number if a.room_id else None,
        'recurringAnalysisId': a.recurring_analysis_id,
        'occurrenceNumber': a.occurrence_number,
        'prescriptionId': a.prescription_id,
        'notes': a.notes,
        'completedAt': a.completed_at.isoformat() if a.completed_at else None,
        'cancelledAt': a.cancelled_at.isoformat() if a.cancelled_at else None,
        'cancellationReason': a.cancellation_reason or None,
        'createdAt': a.created_at.isoformat() if a.created_at else None,
        'updatedAt': a.updated_at.isoformat() if a.updated_at else None,
    }
