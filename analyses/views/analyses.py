from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from analyses.permissions import IsStaffRole
from analyses.serializers.workflow import CompleteSerializer, ReasonSerializer
from analyses.services import analyses as analysis_service
from analyses.views.common import serialize_analysis


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def analysis_detail(request, pk: int):
    return Response({'ok': True, 'data': serialize_analysis(analysis_service.get_live(pk))})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def analysis_complete(request, pk: int):
    s = CompleteSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    a = analysis_service.complete(analysis_service.get_live(pk), actor=request.user,
                                  notes=s.validated_data.get('notes', ''))
    return Response({'ok': True, 'data': serialize_analysis(a)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def analysis_cancel(request, pk: int):
    s = ReasonSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    a = analysis_service.cancel(analysis_service.get_live(pk), reason=s.validated_data.get('reason', ''),
                                actor=request.user)
    return Response({'ok': True, 'data': serialize_analysis(a)})
