import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from assessments.exceptions import ExamEngineError

logger = logging.getLogger(__name__)


def exam_exception_handler(exc, context):
    """
    Turn errors into ``{"error": ...}`` responses.

    Engine errors carry their own status; DRF errors keep DRF's handling;
    anything else is logged and reported as a plain 500.
    """
    if isinstance(exc, ExamEngineError):
        return Response({"error": exc.detail}, status=exc.status_code)

    response = exception_handler(exc, context)
    if response is not None:
        return response

    view = context.get('view')
    logger.exception(f"Unhandled error in {view.__class__.__name__ if view else 'unknown view'}")
    return Response({"error": "An internal error occurred."}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
