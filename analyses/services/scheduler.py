"""
Recurring analysis scheduling.

A series materializes at most one occurrence per run, and only when it is
due *and* a verified prescription can pay for it.  Without a prescription the
series is left exactly as it was (nothing advances) and staff get one
``prescription_verification`` notification per due date.
"""
from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Optional

from django.db import DatabaseError, transaction
from django.db.models import Count
from django.db.models.functions import TruncDate
from django.utils import timezone

from analyses import metrics
from analyses.exceptions import ConcurrencyConflict, InvalidTransition, NotFoundError, ValidationError, WorkflowError
from analyses.models import ANALYSIS_TYPE_CHOICES, Analysis, Doctor, Notification, Patient, RecurringAnalysis, Room, User
from analyses.services import notifications, prescriptions
from analyses.services.audit import log_action
from analyses.services.org_settings import WEEKDAYS, SettingsSnapshot, load_snapshot

logger = logging.getLogger(__name__)

SCHEDULED = 'scheduled'
PENDING = 'pending'
NOT_DUE = 'not_due'
INACTIVE = 'inactive'


def add_months(d: date, months: int) -> date:
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def next_due_date(current: date, pattern: str, interval_days: int = 1) -> date:
    if pattern == RecurringAnalysis.PATTERN_DAILY:
        return current + timedelta(days=1)
    if pattern == RecurringAnalysis.PATTERN_WEEKLY:
        return current + timedelta(days=7)
    if pattern == RecurringAnalysis.PATTERN_MONTHLY:
        return add_months(current, 1)
    if pattern == RecurringAnalysis.PATTERN_CUSTOM:
        return current + timedelta(days=max(1, interval_days))
    raise ValidationError(f'unknown recurrence pattern {pattern!r}')


def occurrence_datetime(d: date) -> datetime:
    return timezone.make_aware(datetime.combine(d, time.min))


@dataclass
class SeriesResult:
    series_id: int
    outcome: str
    analysis_id: Optional[int] = None
    due_date: Optional[date] = None


@dataclass
class ScheduleReport:
    today: date
    results: list[SeriesResult] = field(default_factory=list)
    failures: list[dict] = field(default_factory=list)

    def count(self, outcome: str) -> int:
        return sum(1 for r in self.results if r.outcome == outcome)

    def as_dict(self) -> dict:
        return {
            'date': self.today.isoformat(),
            'scheduled': self.count(SCHEDULED),
            'pending': self.count(PENDING),
            'failed': len(self.failures),
            'failures': self.failures,
        }


# ---------------------------------------------------------------------
# Series lifecycle
# ---------------------------------------------------------------------
def planned_dates(start: date, pattern: str, total: int, interval_days: int = 1) -> list[date]:
    dates = [start]
    while len(dates) < total:
        dates.append(next_due_date(dates[-1], pattern, interval_days))
    return dates


def check_planned_dates(dates: list[date], snapshot: SettingsSnapshot) -> list[dict]:
    """Occurrences that fall outside working days or on an already full day."""
    booked = dict(
        Analysis.objects.filter(analysis_date__date__in=dates)
        .annotate(day=TruncDate('analysis_date'))
        .values('day')
        .annotate(n=Count('id'))
        .values_list('day', 'n')
    )
    issues = []
    for number, d in enumerate(dates, start=1):
        day_name = WEEKDAYS[d.weekday()]
        if day_name not in snapshot.working_days:
            issues.append({'occurrence': number, 'date': d.isoformat(), 'issue': f'{day_name} is not a working day'})
            continue
        if booked.get(d, 0) >= snapshot.max_analyses_per_day:
            issues.append({'occurrence': number, 'date': d.isoformat(),
                           'issue': f'maximum analyses per day ({snapshot.max_analyses_per_day}) would be exceeded'})
    return issues


def create_series(*, patient_id: int, analysis_type: str, recurrence_pattern: str, total_occurrences: int,
                  start_date: date, interval_days: Optional[int] = None, doctor_id: Optional[int] = None,
                  room_id: Optional[int] = None, notes: str = '', actor: Optional[User] = None,
                  snapshot: Optional[SettingsSnapshot] = None) -> RecurringAnalysis:
    if analysis_type not in dict(ANALYSIS_TYPE_CHOICES):
        raise ValidationError(f'unknown analysis type {analysis_type!r}')
    if recurrence_pattern not in dict(RecurringAnalysis.PATTERN_CHOICES):
        raise ValidationError(f'unknown recurrence pattern {recurrence_pattern!r}')
    if total_occurrences is None or total_occurrences < 1:
        raise ValidationError('total_occurrences must be at least 1')
    if recurrence_pattern == RecurringAnalysis.PATTERN_CUSTOM and not interval_days:
        raise ValidationError('interval_days is required for a custom pattern')
    if interval_days is not None and interval_days < 1:
        raise ValidationError('interval_days must be at least 1')

    patient = Patient.objects.filter(pk=patient_id).first()
    if patient is None:
        raise NotFoundError(f'patient {patient_id} not found')
    doctor = room = None
    if doctor_id is not None:
        doctor = Doctor.objects.filter(pk=doctor_id).first()
        if doctor is None:
            raise NotFoundError(f'doctor {doctor_id} not found')
    if room_id is not None:
        room = Room.objects.filter(pk=room_id).first()
        if room is None:
            raise NotFoundError(f'room {room_id} not found')

    interval = interval_days or RecurringAnalysis.DEFAULT_INTERVALS[recurrence_pattern]
    dates = planned_dates(start_date, recurrence_pattern, total_occurrences, interval)
    issues = check_planned_dates(dates, snapshot or load_snapshot())
    if issues:
        raise ValidationError(f'{len(issues)} planned occurrence(s) conflict with the organization schedule',
                              detail={'issues': issues})

    with transaction.atomic():
        series = RecurringAnalysis.objects.create(
            patient=patient,
            doctor=doctor,
            room=room,
            analysis_type=analysis_type,
            recurrence_pattern=recurrence_pattern,
            interval_days=interval,
            total_occurrences=total_occurrences,
            next_due_date=start_date,
            notes=notes,
            created_by=actor if actor and actor.pk else None,
        )
        log_action(user=actor, action='recurring_created', object_type='recurring_analysis', object_id=series.pk,
                   detail={'pattern': recurrence_pattern, 'total': total_occurrences, 'start': start_date.isoformat()})
    return series


def deactivate_series(series: RecurringAnalysis, *, reason: str = '', actor: Optional[User] = None) -> RecurringAnalysis:
    if not series.is_active:
        raise InvalidTransition(f'recurring analysis {series.pk} is already inactive')
    with transaction.atomic():
        series.is_active = False
        series.next_due_date = None
        if reason:
            series.notes = f'{series.notes}\n[deactivated] {reason}'.strip()
        series.save(update_fields=['is_active', 'next_due_date', 'notes', 'updated_at'])
        notifications.dismiss_for_series(series.pk)
        log_action(user=actor, action='recurring_deactivated', object_type='recurring_analysis', object_id=series.pk,
                   detail={'reason': reason, 'completed': series.completed_occurrences})
    return series


# ---------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------
def _retire(series: RecurringAnalysis) -> None:
    RecurringAnalysis.objects.filter(pk=series.pk, is_active=True).update(
        is_active=False, next_due_date=None, updated_at=timezone.now(),
    )
    series.is_active = False
    series.next_due_date = None


def _materialize(series_id: int, today: date, actor: Optional[User]) -> tuple[str, Optional[Analysis], RecurringAnalysis]:
    with transaction.atomic():
        series = RecurringAnalysis.objects.select_for_update().get(pk=series_id)
        if not series.is_active or series.is_complete:
            return INACTIVE, None, series
        if series.next_due_date is None or series.next_due_date > today:
            return NOT_DUE, None, series

        prescription = prescriptions.find_authorizing(series, today)
        if prescription is None:
            return PENDING, None, series
        prescriptions.consume(prescription)

        due = series.next_due_date
        occurrence = series.completed_occurrences + 1
        analysis = Analysis.objects.create(
            analysis_date=occurrence_datetime(due),
            patient_id=series.patient_id,
            doctor_id=series.doctor_id,
            room_id=series.room_id,
            analysis_type=series.analysis_type,
            status=Analysis.STATUS_SCHEDULED,
            recurring_analysis=series,
            occurrence_number=occurrence,
            prescription=prescription,
            created_by=actor if actor and actor.pk else None,
        )
        series.completed_occurrences = occurrence
        series.last_scheduled_date = today
        if occurrence >= series.total_occurrences:
            series.is_active = False
            series.next_due_date = None
        else:
            series.next_due_date = next_due_date(due, series.recurrence_pattern, series.interval_days)
        series.save(update_fields=['completed_occurrences', 'last_scheduled_date', 'is_active',
                                   'next_due_date', 'updated_at'])
        log_action(user=actor, action='recurring_occurrence_scheduled', object_type='analysis', object_id=analysis.pk,
                   detail={'seriesId': series.pk, 'occurrence': occurrence, 'prescriptionId': prescription.pk,
                           'dueDate': due.isoformat()})
    return SCHEDULED, analysis, series


def _raise_pending(series: RecurringAnalysis) -> None:
    due = series.next_due_date
    patient_name = series.patient.name if series.patient_id else ''
    notifications.notify_once(
        type=Notification.TYPE_PRESCRIPTION_VERIFICATION,
        series=series,
        due_date=due,
        title='Prescription verification required',
        message=(f'Occurrence {series.completed_occurrences + 1}/{series.total_occurrences} of '
                 f'{series.analysis_type} analysis for {patient_name} was due on {due.isoformat()} '
                 f'but no valid prescription covers it.'),
        priority='high',
        action_required=True,
        metadata={'occurrence': series.completed_occurrences + 1, 'analysisType': series.analysis_type},
    )


def schedule_series(series: RecurringAnalysis, today: Optional[date] = None, *,
                    actor: Optional[User] = None) -> SeriesResult:
    """Materialize the next occurrence of ``series`` if it is due and paid for.

    A lost race on the prescription is retried once; a second loss is raised
    to the caller as :class:`ConcurrencyConflict`.
    """
    today = today or timezone.localdate()
    if not series.is_active or series.is_complete:
        if series.is_active:
            _retire(series)
        return SeriesResult(series.pk, INACTIVE)
    if series.next_due_date is None or series.next_due_date > today:
        return SeriesResult(series.pk, NOT_DUE, due_date=series.next_due_date)

    due = series.next_due_date
    try:
        outcome, analysis, fresh = _materialize(series.pk, today, actor)
    except ConcurrencyConflict:
        metrics.prescription_conflicts.inc()
        logger.warning('series %s: prescription consumed concurrently, retrying once', series.pk)
        outcome, analysis, fresh = _materialize(series.pk, today, actor)

    if outcome == SCHEDULED:
        metrics.occurrences_scheduled.inc()
        logger.info('series %s: scheduled occurrence %s for %s', fresh.pk, analysis.occurrence_number, due)
        return SeriesResult(fresh.pk, SCHEDULED, analysis_id=analysis.pk, due_date=due)
    if outcome == PENDING:
        metrics.series_pending_prescription.inc()
        logger.info('series %s: due %s without an authorizing prescription', fresh.pk, fresh.next_due_date)
        _raise_pending(fresh)
        return SeriesResult(fresh.pk, PENDING, due_date=fresh.next_due_date)
    return SeriesResult(fresh.pk, outcome, due_date=fresh.next_due_date)


def due_series(today: date):
    return RecurringAnalysis.objects.filter(is_active=True, next_due_date__lte=today).order_by('next_due_date', 'id')


def run_due_series(today: Optional[date] = None, snapshot: Optional[SettingsSnapshot] = None, *,
                   actor: Optional[User] = None) -> ScheduleReport:
    """Schedule every due active series; one failing series never stops the batch."""
    today = today or timezone.localdate()
    report = ScheduleReport(today=today)
    for series in due_series(today).select_related('patient'):
        try:
            report.results.append(schedule_series(series, today, actor=actor))
        except (WorkflowError, DatabaseError) as e:
            logger.exception('series %s: scheduling failed', series.pk)
            report.failures.append({'seriesId': series.pk, 'error': str(e),
                                    'code': getattr(e, 'code', 'database_error')})
    if snapshot is not None:
        notify_upcoming(today, snapshot)
    logger.info('recurring run %s: %s scheduled, %s pending, %s failed', today,
                report.count(SCHEDULED), report.count(PENDING), len(report.failures))
    return report


def notify_upcoming(today: date, snapshot: SettingsSnapshot) -> int:
    """Warn staff ahead of time about occurrences no prescription will cover."""
    if not snapshot.prescription_notification_enabled:
        return 0
    horizon = timezone.localtime(occurrence_datetime(today) + snapshot.notification_lead_time).date()
    created = 0
    upcoming = RecurringAnalysis.objects.filter(
        is_active=True, next_due_date__gt=today, next_due_date__lte=horizon,
    ).select_related('patient')
    for series in upcoming:
        if prescriptions.covers(series, series.next_due_date):
            continue
        _, was_created = notifications.notify_once(
            type=Notification.TYPE_RECURRING_DUE,
            series=series,
            due_date=series.next_due_date,
            title='Upcoming analysis needs a prescription',
            message=(f'{series.analysis_type} analysis for {series.patient.name} is due on '
                     f'{series.next_due_date.isoformat()} and no prescription covers it yet.'),
            priority='normal',
            action_required=True,
            metadata={'occurrence': series.completed_occurrences + 1},
        )
        created += int(was_created)
    return created
