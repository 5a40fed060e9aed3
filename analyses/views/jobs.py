"""
Manual triggers for the periodic jobs.

The same service functions back the management commands run by cron; these
endpoints let an administrator run them on demand.  A manual archive run
accepts ``force`` to archive even when ``auto_archive_enabled`` is off.
"""
from __future__ import annotations

from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from analyses.permissions import IsAdminRole
from analyses.serializers.workflow import JobTriggerSerializer
from analyses.services import archival, prescriptions, scheduler
from analyses.services.audit import log_action
from analyses.services.org_settings import load_snapshot


def _trigger_args(request):
    s = JobTriggerSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return s.validated_data.get('date') or timezone.localdate(), s.validated_data.get('force', False)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def run_recurring(request):
    today, _ = _trigger_args(request)
    report = scheduler.run_due_series(today, load_snapshot(), actor=request.user)
    log_action(user=request.user, action='job_recurring', detail=report.as_dict())
    return Response({'ok': True, 'data': report.as_dict()})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def run_archive(request):
    today, force = _trigger_args(request)
    report = archival.run_archival(today, load_snapshot(), force=force, actor=request.user)
    log_action(user=request.user, action='job_archive', detail=report.as_dict())
    return Response({'ok': True, 'data': report.as_dict()})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def run_prescription_check(request):
    today, _ = _trigger_args(request)
    snapshot = load_snapshot()
    data = prescriptions.expire_stale(today)
    data['notified'] = scheduler.notify_upcoming(today, snapshot)
    log_action(user=request.user, action='job_prescriptions', detail=dict(data, date=today.isoformat()))
    return Response({'ok': True, 'data': data})


for _view in (run_recurring, run_archive, run_prescription_check):
    _view.cls.throttle_scope = 'job_trigger'
