"""
Typed errors raised by the assessment engine, and the DRF handler that
turns them into HTTP responses.

Services never return error codes or None for failure; they raise one of
the kinds below and the view layer decides the status code.
"""
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class AssessmentError(Exception):
    kind = 'error'
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = 'Assessment engine error'

    def __init__(self, message=None, detail=None):
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)

    def as_dict(self):
        body = {'error': self.message, 'kind': self.kind}
        if self.detail is not None:
            body['detail'] = self.detail
        return body


class ValidationError(AssessmentError):
    kind = 'validation'
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Invalid input'


class AuthorizationError(AssessmentError):
    kind = 'authorization'
    status_code = status.HTTP_403_FORBIDDEN
    default_message = 'Not allowed'


class NotFoundError(AssessmentError):
    kind = 'not_found'
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'Not found'


class ConflictError(AssessmentError):
    kind = 'conflict'
    status_code = status.HTTP_409_CONFLICT
    default_message = 'Conflict'


class PersistenceError(AssessmentError):
    kind = 'persistence'
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = 'Storage operation failed'


def assessment_exception_handler(exc, context):
    """REST_FRAMEWORK['EXCEPTION_HANDLER'] entry point."""
    if isinstance(exc, AssessmentError):
        if isinstance(exc, PersistenceError):
            logger.error("Persistence failure in %s: %s", context.get('view'), exc.message)
        return Response(exc.as_dict(), status=exc.status_code)
    return exception_handler(exc, context)
