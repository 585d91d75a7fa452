"""
Domain Errors

Every failure the booking core reports to its callers is one of the
classes below. Each carries a stable machine-readable ``code``, the HTTP
status the API layer maps it to, and a ``details`` payload that is safe
to show to the caller.

Nothing here leaks database internals: driver errors are translated in
``shared.infrastructure.db`` before they reach this layer.
"""

from datetime import date
from typing import Any, Dict, Iterable, Optional


class BookingCoreError(Exception):
    """Base class for all expected booking core failures"""

    code = "booking_core_error"
    status_code = 400
    default_message = "Booking core error"

    def __init__(self, message: Optional[str] = None, **details: Any):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationFailed(BookingCoreError):
    code = "validation_error"
    status_code = 400
    default_message = "Invalid input"


class InvalidDateRange(BookingCoreError):
    code = "invalid_date_range"
    status_code = 400
    default_message = "check_out must be after check_in"

    def __init__(self, check_in: Any = None, check_out: Any = None, message: Optional[str] = None):
        super().__init__(
            message,
            check_in=_iso(check_in),
            check_out=_iso(check_out),
        )


class RoomNotAvailable(BookingCoreError):
    code = "room_not_available"
    status_code = 409
    default_message = "Room is not available for the requested dates"

    def __init__(self, room_id: Any = None, blocked_dates: Iterable[date] = (), message: Optional[str] = None):
        super().__init__(
            message,
            room_id=room_id,
            blocked_dates=[_iso(day) for day in blocked_dates],
        )


class InvalidStateTransition(BookingCoreError):
    code = "invalid_state_transition"
    status_code = 409
    default_message = "Booking status transition is not allowed"

    def __init__(self, current: Any = None, requested: Any = None, message: Optional[str] = None):
        current = getattr(current, "value", current)
        requested = getattr(requested, "value", requested)
        super().__init__(
            message or f"Cannot move booking from '{current}' to '{requested}'",
            current=current,
            requested=requested,
        )


class RefundExceedsPaid(BookingCoreError):
    code = "refund_exceeds_paid"
    status_code = 422
    default_message = "Refund would make the paid amount negative"

    def __init__(self, paid_amount: int = 0, requested: int = 0, message: Optional[str] = None):
        super().__init__(message, paid_amount=paid_amount, requested=requested)


class PaymentNotAllowed(BookingCoreError):
    code = "payment_not_allowed"
    status_code = 409
    default_message = "Payments cannot be recorded for this booking"


class TenantMismatch(BookingCoreError):
    code = "tenant_mismatch"
    status_code = 403
    default_message = "Operation is outside the active property scope"


class ConcurrencyConflict(BookingCoreError):
    code = "concurrency_conflict"
    status_code = 409
    default_message = "Concurrent update detected, please retry"


class NotFound(BookingCoreError):
    code = "not_found"
    status_code = 404
    entity = "Object"

    def __init__(self, entity_id: Any = None, message: Optional[str] = None):
        super().__init__(message or f"{self.entity} {entity_id} not found", id=entity_id)


class RoomNotFound(NotFound):
    code = "room_not_found"
    entity = "Room"


class GuestNotFound(NotFound):
    code = "guest_not_found"
    entity = "Guest"


class BookingNotFound(NotFound):
    code = "booking_not_found"
    entity = "Booking"


class PaymentNotFound(NotFound):
    code = "payment_not_found"
    entity = "Payment"


class RateNotFound(NotFound):
    code = "rate_not_found"
    entity = "Rate"


class InternalError(BookingCoreError):
    """Opaque wrapper for unexpected storage failures"""

    code = "internal_error"
    status_code = 500
    default_message = "Internal error"


def _iso(value: Any) -> Any:
    return value.isoformat() if hasattr(value, "isoformat") else value
