"""
Prescription validation, lazy status refresh and consumption.

A prescription's status is never advanced by a timer of its own: every read
and every consumption first calls :func:`refresh_status`, and the periodic
``check_prescriptions`` command only runs the same rules in bulk through
:func:`expire_stale`.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from analyses.exceptions import ConcurrencyConflict, InvalidTransition, NotFoundError, ValidationError
from analyses.models import Doctor, Prescription, RecurringAnalysis, User
from analyses.services import notifications
from analyses.services.audit import log_action

logger = logging.getLogger(__name__)


def compute_status(p: Prescription, today: date) -> str:
    # Expired and Cancelled are terminal, even for runs dated in the past
    if p.status in (Prescription.STATUS_CANCELLED, Prescription.STATUS_EXPIRED):
        return p.status
    if today > p.valid_until:
        return Prescription.STATUS_EXPIRED
    if p.remaining_analyses == 0:
        return Prescription.STATUS_EXHAUSTED
    return Prescription.STATUS_ACTIVE


def refresh_status(p: Prescription, today: Optional[date] = None) -> Prescription:
    """Bring ``p.status`` in line with its dates and balance; saves only on change."""
    today = today or timezone.localdate()
    new_status = compute_status(p, today)
    if new_status != p.status:
        logger.info('prescription %s: %s -> %s', p.prescription_number, p.status, new_status)
        p.status = new_status
        p.save(update_fields=['status', 'updated_at'])
    return p


def is_authorizing(p: Prescription, today: date) -> bool:
    return (
        p.status == Prescription.STATUS_ACTIVE
        and p.remaining_analyses > 0
        and p.valid_from <= today <= p.valid_until
    )


def find_authorizing(series: RecurringAnalysis, today: date) -> Optional[Prescription]:
    """Most recently verified prescription able to cover an occurrence on ``today``."""
    candidates = (
        Prescription.objects
        .filter(recurring_analysis=series)
        .exclude(status__in=(Prescription.STATUS_CANCELLED, Prescription.STATUS_EXPIRED))
        .order_by('-verified_at', '-id')
    )
    for p in candidates:
        refresh_status(p, today)
        if is_authorizing(p, today):
            return p
    return None


def covers(series: RecurringAnalysis, on: date) -> bool:
    """Whether some prescription will be able to authorize an occurrence on ``on``."""
    return Prescription.objects.filter(
        recurring_analysis=series,
        status=Prescription.STATUS_ACTIVE,
        remaining_analyses__gt=0,
        valid_from__lte=on,
        valid_until__gte=on,
    ).exists()


def consume(p: Prescription) -> Prescription:
    """Take one analysis off ``p``.

    The decrement is a conditional UPDATE, so two writers can never take the
    last analysis twice. Losing the race raises :class:`ConcurrencyConflict`.
    """
    updated = Prescription.objects.filter(
        pk=p.pk, status=Prescription.STATUS_ACTIVE, remaining_analyses__gt=0,
    ).update(remaining_analyses=F('remaining_analyses') - 1, updated_at=timezone.now())
    if updated == 0:
        raise ConcurrencyConflict(
            f'prescription {p.prescription_number} has no analysis left to consume',
            detail={'prescriptionId': p.pk},
        )
    Prescription.objects.filter(
        pk=p.pk, status=Prescription.STATUS_ACTIVE, remaining_analyses=0,
    ).update(status=Prescription.STATUS_EXHAUSTED)
    p.refresh_from_db(fields=['remaining_analyses', 'status', 'updated_at'])
    return p


def submit(*, series_id: int, prescription_number: str, valid_from: date, valid_until: date,
           total_analyses_prescribed: int, doctor_id: Optional[int] = None, notes: str = '',
           actor: Optional[User] = None) -> Prescription:
    """Record a verified prescription for a series."""
    if valid_from > valid_until:
        raise ValidationError('valid_from must not be after valid_until')
    if total_analyses_prescribed is None or total_analyses_prescribed < 1:
        raise ValidationError('total_analyses_prescribed must be at least 1')
    number = (prescription_number or '').strip()
    if not number:
        raise ValidationError('prescription_number is required')

    series = RecurringAnalysis.objects.filter(pk=series_id).select_related('doctor').first()
    if series is None:
        raise NotFoundError(f'recurring analysis {series_id} not found')
    if not series.is_active:
        raise ValidationError(f'recurring analysis {series_id} is not active')
    doctor = series.doctor
    if doctor_id is not None:
        doctor = Doctor.objects.filter(pk=doctor_id).first()
        if doctor is None:
            raise NotFoundError(f'doctor {doctor_id} not found')

    if Prescription.objects.filter(prescription_number=number).exists():
        raise ValidationError(f'prescription number {number} already exists')
    try:
        with transaction.atomic():
            p = Prescription.objects.create(
                recurring_analysis=series,
                patient_id=series.patient_id,
                doctor=doctor,
                prescribed_by=actor if actor and actor.pk else None,
                prescription_number=number,
                valid_from=valid_from,
                valid_until=valid_until,
                total_analyses_prescribed=total_analyses_prescribed,
                remaining_analyses=total_analyses_prescribed,
                status=Prescription.STATUS_ACTIVE,
                notes=notes,
                verified_at=timezone.now(),
            )
            log_action(user=actor, action='prescription_verified', object_type='prescription', object_id=p.pk,
                       detail={'seriesId': series.pk, 'number': number, 'total': total_analyses_prescribed})
            dismissed = notifications.dismiss_for_series(series.pk)
    except IntegrityError as e:
        # lost a race on the unique prescription number
        raise ValidationError(f'prescription number {number} already exists') from e
    logger.info('prescription %s verified for series %s (%s analyses, %s dismissed notifications)',
                number, series.pk, total_analyses_prescribed, dismissed)
    return p


def cancel(p: Prescription, *, reason: str = '', actor: Optional[User] = None) -> Prescription:
    if p.status == Prescription.STATUS_CANCELLED:
        raise InvalidTransition(f'prescription {p.prescription_number} is already cancelled')
    with transaction.atomic():
        old = p.status
        p.status = Prescription.STATUS_CANCELLED
        if reason:
            p.notes = f'{p.notes}\n[cancelled] {reason}'.strip()
        p.save(update_fields=['status', 'notes', 'updated_at'])
        log_action(user=actor, action='prescription_cancelled', object_type='prescription', object_id=p.pk,
                   detail={'from': old, 'reason': reason})
    return p


def expire_stale(today: Optional[date] = None) -> dict:
    """Apply the refresh rules to every Active prescription at once."""
    today = today or timezone.localdate()
    now = timezone.now()
    expired = Prescription.objects.filter(
        status=Prescription.STATUS_ACTIVE, valid_until__lt=today,
    ).update(status=Prescription.STATUS_EXPIRED, updated_at=now)
    exhausted = Prescription.objects.filter(
        status=Prescription.STATUS_ACTIVE, remaining_analyses=0,
    ).update(status=Prescription.STATUS_EXHAUSTED, updated_at=now)
    if expired or exhausted:
        logger.info('prescription check on %s: %s expired, %s exhausted', today, expired, exhausted)
    return {'expired': expired, 'exhausted': exhausted}
