"""Status transitions of a live analysis (Scheduled -> Completed | Cancelled)."""
from __future__ import annotations

from typing import Optional

from django.db import transaction
from django.utils import timezone

from analyses.exceptions import InvalidTransition, NotFoundError
from analyses.models import Analysis, User
from analyses.services import notifications
from analyses.services.audit import log_action


def get_live(pk: int) -> Analysis:
    a = Analysis.objects.select_related('patient', 'doctor', 'room').filter(pk=pk).first()
    if a is None:
        # archived rows are only reachable through the archive endpoints
        raise NotFoundError(f'analysis {pk} not found')
    return a


def _ensure_scheduled(a: Analysis, target: str) -> None:
    if a.status != Analysis.STATUS_SCHEDULED:
        raise InvalidTransition(f'analysis {a.pk} is {a.status} and cannot become {target}',
                                detail={'status': a.status})


@transaction.atomic
def complete(a: Analysis, *, actor: Optional[User] = None, notes: str = '') -> Analysis:
    _ensure_scheduled(a, Analysis.STATUS_COMPLETED)
    a.status = Analysis.STATUS_COMPLETED
    a.completed_at = timezone.now()
    a.completed_by = actor if actor and actor.pk else None
    if notes:
        a.notes = f'{a.notes}\n{notes}'.strip()
    a.save(update_fields=['status', 'completed_at', 'completed_by', 'notes', 'updated_at'])
    log_action(user=actor, action='analysis_completed', object_type='analysis', object_id=a.pk)
    return a


@transaction.atomic
def cancel(a: Analysis, *, reason: str = '', actor: Optional[User] = None) -> Analysis:
    _ensure_scheduled(a, Analysis.STATUS_CANCELLED)
    a.status = Analysis.STATUS_CANCELLED
    a.cancelled_at = timezone.now()
    a.cancellation_reason = reason[:255]
    a.save(update_fields=['status', 'cancelled_at', 'cancellation_reason', 'updated_at'])
    log_action(user=actor, action='analysis_cancelled', object_type='analysis', object_id=a.pk,
               detail={'reason': reason})
    notifications.notify_cancelled(a, reason)
    return a
