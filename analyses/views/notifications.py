from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from analyses.permissions import IsStaffRole
from analyses.services import notifications


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def notification_list(request):
    params = request.query_params
    qs = notifications.list_for_user(
        request.user,
        include_dismissed=params.get('includeDismissed') in ('1', 'true'),
        unread_only=params.get('unread') in ('1', 'true'),
    )
    data = [notifications.serialize(n) for n in qs[:200]]
    return Response({'ok': True, 'data': data, 'unread': sum(1 for n in data if not n['isRead'])})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def notification_read(request, pk: int):
    return Response({'ok': True, 'data': notifications.serialize(notifications.mark_read(request.user, pk))})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def notification_dismiss(request, pk: int):
    return Response({'ok': True, 'data': notifications.serialize(notifications.dismiss(request.user, pk))})
