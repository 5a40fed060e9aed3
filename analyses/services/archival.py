"""
Archival of terminal analyses.

Completed analyses move to the archive once their analysis day is over;
cancelled ones wait ``cancelled_analysis_archive_delay`` whole days after
their last update.  Both comparisons are on calendar dates, not timestamps.
Every row is copied and deleted in its own transaction so a bad row never
blocks the rest of the batch.

The archive itself is read through :func:`filter_archive` and
:func:`search_archive`, and trimmed by :func:`cleanup_archives`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional

from django.db import DatabaseError, transaction
from django.db.models import Q
from django.utils import timezone

from analyses import metrics
from analyses.exceptions import ArchivalPartialFailure, ValidationError
from analyses.models import Analysis, ArchivedAnalysis, User
from analyses.services.audit import log_action
from analyses.services.org_settings import SettingsSnapshot

logger = logging.getLogger(__name__)


@dataclass
class ArchiveReport:
    today: date
    skipped: bool = False
    archived_completed: int = 0
    archived_cancelled: int = 0
    failures: list[ArchivalPartialFailure] = field(default_factory=list)

    @property
    def archived(self) -> int:
        return self.archived_completed + self.archived_cancelled

    def as_dict(self) -> dict:
        return {
            'date': self.today.isoformat(),
            'skipped': self.skipped,
            'archived': self.archived,
            'completed': self.archived_completed,
            'cancelled': self.archived_cancelled,
            'failures': [f.to_dict() for f in self.failures],
        }


def eligible(today: date, snapshot: SettingsSnapshot):
    cutoff = today - timedelta(days=max(0, snapshot.cancelled_analysis_archive_delay))
    return Analysis.objects.filter(
        Q(status=Analysis.STATUS_COMPLETED, analysis_date__date__lt=today)
        | Q(status=Analysis.STATUS_CANCELLED, updated_at__date__lt=cutoff)
    ).order_by('id')


def _snapshot(a: Analysis, archived_by: Optional[User]) -> ArchivedAnalysis:
    return ArchivedAnalysis(
        original_analysis_id=a.pk,
        analysis_date=a.analysis_date,
        patient_id=a.patient_id,
        patient_name=a.patient.name if a.patient_id else '',
        doctor_id=a.doctor_id,
        doctor_name=a.doctor.name if a.doctor_id else '',
        room_id=a.room_id,
        room_number=a.room.room_number if a.room_id else '',
        analysis_type=a.analysis_type,
        status=a.status,
        notes=a.notes,
        recurring_analysis_id=a.recurring_analysis_id,
        occurrence_number=a.occurrence_number,
        prescription_id=a.prescription_id,
        completed_at=a.completed_at,
        completed_by_id=a.completed_by_id,
        cancelled_at=a.cancelled_at,
        cancellation_reason=a.cancellation_reason,
        created_by_id=a.created_by_id,
        original_created_at=a.created_at,
        original_updated_at=a.updated_at,
        archive_reason=(ArchivedAnalysis.REASON_COMPLETED if a.status == Analysis.STATUS_COMPLETED
                        else ArchivedAnalysis.REASON_CANCELLED),
        archived_by=archived_by if archived_by and archived_by.pk else None,
    )


def archive_one(a: Analysis, *, actor: Optional[User] = None) -> ArchivedAnalysis:
    with transaction.atomic():
        archived = _snapshot(a, actor)
        archived.save()
        analysis_id = a.pk
        a.delete()
        log_action(user=actor, action='analysis_archived', object_type='analysis', object_id=analysis_id,
                   detail={'archiveId': archived.pk, 'reason': archived.archive_reason})
    return archived


def run_archival(today: Optional[date] = None, snapshot: Optional[SettingsSnapshot] = None, *,
                 force: bool = False, actor: Optional[User] = None) -> ArchiveReport:
    """Archive every eligible analysis.

    With ``auto_archive_enabled`` off the run does nothing unless ``force``
    is set (manual trigger). Running again right away archives nothing.
    """
    today = today or timezone.localdate()
    snapshot = snapshot or SettingsSnapshot()
    report = ArchiveReport(today=today)
    if not snapshot.auto_archive_enabled and not force:
        logger.info('auto archive disabled, skipping run for %s', today)
        report.skipped = True
        return report

    for a in eligible(today, snapshot).select_related('patient', 'doctor', 'room'):
        try:
            archived = archive_one(a, actor=actor)
        except DatabaseError as e:
            failure = ArchivalPartialFailure(a.pk, e)
            logger.error('%s', failure.message)
            metrics.archive_failures.inc()
            report.failures.append(failure)
            continue
        metrics.analyses_archived.labels(reason=archived.archive_reason).inc()
        if archived.archive_reason == ArchivedAnalysis.REASON_COMPLETED:
            report.archived_completed += 1
        else:
            report.archived_cancelled += 1

    logger.info('archival %s: %s completed, %s cancelled archived, %s failed', today,
                report.archived_completed, report.archived_cancelled, len(report.failures))
    return report


# ---------------------------------------------------------------------
# Archive queries and retention
# ---------------------------------------------------------------------
MIN_RETENTION_DAYS = 365


def filter_archive(qs=None, *, patient_id: Optional[int] = None, doctor_id: Optional[int] = None,
                   patient_name: str = '', doctor_name: str = '', room_number: str = '',
                   analysis_type: str = '', status: str = '', reason: str = '',
                   start_date: Optional[date] = None, end_date: Optional[date] = None,
                   archived_start_date: Optional[date] = None, archived_end_date: Optional[date] = None):
    """Narrow archived analyses; name and room filters are case-insensitive substrings."""
    qs = ArchivedAnalysis.objects.all() if qs is None else qs
    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    if doctor_id:
        qs = qs.filter(doctor_id=doctor_id)
    if patient_name:
        qs = qs.filter(patient_name__icontains=patient_name)
    if doctor_name:
        qs = qs.filter(doctor_name__icontains=doctor_name)
    if room_number:
        qs = qs.filter(room_number__icontains=room_number)
    if analysis_type:
        qs = qs.filter(analysis_type=analysis_type)
    if status:
        qs = qs.filter(status=status)
    if reason:
        qs = qs.filter(archive_reason=reason)
    if start_date:
        qs = qs.filter(analysis_date__date__gte=start_date)
    if end_date:
        qs = qs.filter(analysis_date__date__lte=end_date)
    if archived_start_date:
        qs = qs.filter(archived_at__date__gte=archived_start_date)
    if archived_end_date:
        qs = qs.filter(archived_at__date__lte=archived_end_date)
    return qs.order_by('-analysis_date', '-id')


def search_archive(term: str, limit: int = 10):
    term = (term or '').strip()
    if not term:
        return ArchivedAnalysis.objects.none()
    return ArchivedAnalysis.objects.filter(
        Q(patient_name__icontains=term) | Q(doctor_name__icontains=term) | Q(room_number__icontains=term)
    ).order_by('-archived_at', '-id')[:limit]


def cleanup_archives(older_than_days: int, *, today: Optional[date] = None, actor: Optional[User] = None) -> int:
    """Delete archived analyses archived more than ``older_than_days`` days ago.

    Anything younger than a year is kept for compliance, so smaller values
    are rejected.  Returns the number of rows deleted.
    """
    if older_than_days is None or older_than_days < MIN_RETENTION_DAYS:
        raise ValidationError(f'archives younger than {MIN_RETENTION_DAYS} days cannot be deleted',
                              detail={'olderThanDays': older_than_days})
    today = today or timezone.localdate()
    cutoff = today - timedelta(days=older_than_days)
    with transaction.atomic():
        deleted, _ = ArchivedAnalysis.objects.filter(archived_at__date__lt=cutoff).delete()
        log_action(user=actor, action='archive_cleanup', object_type='archived_analysis',
                   detail={'olderThanDays': older_than_days, 'cutoff': cutoff.isoformat(), 'deleted': deleted})
    logger.info('archive cleanup before %s: %s rows deleted', cutoff, deleted)
    return deleted
