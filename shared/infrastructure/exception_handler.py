"""DRF exception handler that renders booking core errors."""

import structlog
from rest_framework.response import Response  # type: ignore
from rest_framework.views import exception_handler  # type: ignore

from shared.domain.exceptions import BookingCoreError

logger = structlog.get_logger(__name__)


def core_exception_handler(exc, context):
    """
    Render ``BookingCoreError`` as ``{"error": {"code", "message", "details"}}``.

    Everything else falls through to the DRF default handler.
    """
    if isinstance(exc, BookingCoreError):
        view = context.get("view")
        logger.info(
            "booking_core_error",
            code=exc.code,
            status=exc.status_code,
            view=view.__class__.__name__ if view else None,
        )
        return Response({"error": exc.to_dict()}, status=exc.status_code)
    return exception_handler(exc, context)
