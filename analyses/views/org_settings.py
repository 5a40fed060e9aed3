from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from analyses.permissions import IsAdminRole, IsStaffRole
from analyses.serializers.workflow import SettingUpdateSerializer
from analyses.services import org_settings


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def settings_list(request):
    return Response({'ok': True, 'data': org_settings.list_settings()})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def settings_update(request):
    s = SettingUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    data = org_settings.update_setting(v['key'], v['value'], user=request.user, data_type=v.get('dataType'))
    return Response({'ok': True, 'data': data})
