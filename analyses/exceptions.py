"""
Domain errors of the analysis workflow and the unified API exception handler.

Services raise the :class:`WorkflowError` subclasses below; jobs catch them
per row, and the DRF handler renders them with the same envelope as every
other API error::

    {"ok": false, "error": {"code": "...", "message": "..."}}
"""
from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class WorkflowError(Exception):
    code = 'workflow_error'
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, *, detail: dict | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}

    def to_dict(self) -> dict:
        payload = {'code': self.code, 'message': self.message}
        if self.detail:
            payload['detail'] = self.detail
        return payload


class ValidationError(WorkflowError):
    """Bad input (inverted dates, non-positive counts, inactive series)."""
    code = 'validation_error'
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY


class NotFoundError(WorkflowError):
    code = 'not_found'
    http_status = status.HTTP_404_NOT_FOUND


class ConcurrencyConflict(WorkflowError):
    """Another writer consumed the prescription first.

    Retried once by the scheduler; if the retry loses as well the error is
    surfaced as a transient failure.
    """
    code = 'concurrency_conflict'
    http_status = status.HTTP_409_CONFLICT


class InvalidTransition(WorkflowError):
    code = 'invalid_transition'
    http_status = status.HTTP_409_CONFLICT


class ArchivalPartialFailure(WorkflowError):
    """One analysis could not be moved to the archive; the batch continues."""
    code = 'archival_partial_failure'
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, analysis_id: int, cause: Exception):
        super().__init__(f'failed to archive analysis {analysis_id}: {cause}', detail={'analysisId': analysis_id})
        self.analysis_id = analysis_id
        self.cause = cause


def api_exception_handler(exc, context):
    if isinstance(exc, WorkflowError):
        return Response({'ok': False, 'error': exc.to_dict()}, status=exc.http_status)
    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.exception('unhandled error in %s', context.get('view'), exc_info=exc)
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': 'internal server error'}}, status=500)
    # normalize response
    detail = None
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = str(resp.data)
    return Response({'ok': False, 'error': {'code': 'api_error', 'message': detail}}, status=resp.status_code)
