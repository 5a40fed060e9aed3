"""
Staff notifications and their WebSocket fan-out.
"""
from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db.models import Q
from django.utils import timezone

from analyses.exceptions import NotFoundError
from analyses.models import Analysis, Notification, RecurringAnalysis, User

logger = logging.getLogger(__name__)

GROUP = 'notifications'
SERIES = 'recurring_analysis'
ANALYSIS = 'analysis'
CANCELLED_NOTICE_TTL = timedelta(days=7)


def serialize(n: Notification) -> dict:
    return {
        'id': n.id,
        'type': n.type,
        'title': n.title,
        'message': n.message,
        'priority': n.priority,
        'isRead': n.is_read,
        'isDismissed': n.is_dismissed,
        'actionRequired': n.action_required,
        'relatedType': n.related_type or None,
        'relatedId': n.related_id,
        'dueDate': n.due_date.isoformat() if n.due_date else None,
        'metadata': n.metadata,
        'expiresAt': n.expires_at.isoformat() if n.expires_at else None,
        'createdAt': n.created_at.isoformat() if n.created_at else None,
    }


def _broadcast(n: Notification) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    async_to_sync(channel_layer.group_send)(GROUP, {'type': 'notification.created', 'notification': serialize(n)})


def notify_once(*, type: str, series: RecurringAnalysis, due_date: date, title: str, message: str,
                priority: str = 'normal', action_required: bool = False,
                metadata: Optional[dict] = None) -> tuple[Notification, bool]:
    """Create a series notification unless an undismissed one already exists.

    Returns ``(notification, created)``.
    """
    existing = Notification.objects.filter(
        type=type, related_type=SERIES, related_id=series.pk, due_date=due_date, is_dismissed=False,
    ).first()
    if existing is not None:
        return existing, False
    n = Notification.objects.create(
        type=type,
        title=title,
        message=message,
        priority=priority,
        action_required=action_required,
        related_type=SERIES,
        related_id=series.pk,
        due_date=due_date,
        metadata=metadata or {},
    )
    logger.info('notification %s raised for series %s due %s', type, series.pk, due_date)
    _broadcast(n)
    return n, True


def notify_cancelled(a: Analysis, reason: str = '') -> Notification:
    """Tell staff an analysis was cancelled; the notice expires after a week."""
    day = timezone.localtime(a.analysis_date).date()
    n = Notification.objects.create(
        type=Notification.TYPE_ANALYSIS_CANCELLED,
        title=f'Analysis cancelled ({a.analysis_type})',
        message=f'Analysis #{a.pk} planned for {day:%Y-%m-%d} was cancelled' + (f': {reason}' if reason else '.'),
        related_type=ANALYSIS,
        related_id=a.pk,
        due_date=day,
        metadata={'patientId': a.patient_id, 'recurringAnalysisId': a.recurring_analysis_id},
        expires_at=(a.cancelled_at or timezone.now()) + CANCELLED_NOTICE_TTL,
    )
    _broadcast(n)
    return n


def dismiss_for_series(series_id: int, *, types: tuple[str, ...] = (Notification.TYPE_PRESCRIPTION_VERIFICATION,
                                                                    Notification.TYPE_RECURRING_DUE)) -> int:
    return Notification.objects.filter(
        related_type=SERIES, related_id=series_id, type__in=types, is_dismissed=False,
    ).update(is_dismissed=True, updated_at=timezone.now())


def _visible_to(user: User):
    return Notification.objects.filter(Q(recipient__isnull=True) | Q(recipient=user))


def list_for_user(user: User, *, include_dismissed: bool = False, unread_only: bool = False):
    qs = _visible_to(user).filter(Q(expires_at__isnull=True) | Q(expires_at__gt=timezone.now()))
    if not include_dismissed:
        qs = qs.filter(is_dismissed=False)
    if unread_only:
        qs = qs.filter(is_read=False)
    return qs.order_by('-created_at')


def _get(user: User, pk: int) -> Notification:
    n = _visible_to(user).filter(pk=pk).first()
    if n is None:
        raise NotFoundError(f'notification {pk} not found')
    return n


def mark_read(user: User, pk: int) -> Notification:
    n = _get(user, pk)
    if not n.is_read:
        n.is_read = True
        n.save(update_fields=['is_read', 'updated_at'])
    return n


def dismiss(user: User, pk: int) -> Notification:
    n = _get(user, pk)
    if not n.is_dismissed:
        n.is_dismissed = True
        n.save(update_fields=['is_dismissed', 'updated_at'])
    return n
