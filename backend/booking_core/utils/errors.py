from typing import Dict, Optional
from fastapi import HTTPException, status
import logging

logger = logging.getLogger(__name__)


def error_response(
    message: str,
    field_errors: Dict[str, str],
    code: int = status.HTTP_422_UNPROCESSABLE_ENTITY,
    error_code: Optional[str] = None,
) -> HTTPException:
    """Return an HTTPException with a consistent structure and log details."""
    logger.error("%s %s", message, field_errors)
    detail = {"message": message, "field_errors": field_errors}
    if error_code:
        detail["code"] = error_code
    return HTTPException(status_code=code, detail=detail)


class BookingCoreError(Exception):
    """Base class for every error the booking core raises on purpose.

    ``code`` is the stable machine-readable name, ``field`` the request field
    the caller should highlight (if any), and ``http_status`` how the API
    layer reports it.
    """

    code = "booking_core_error"
    http_status = status.HTTP_400_BAD_REQUEST
    default_field: Optional[str] = None

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field or self.default_field

    @property
    def field_errors(self) -> Dict[str, str]:
        if not self.field:
            return {}
        return {self.field: self.code}

    def to_http(self) -> HTTPException:
        return error_response(
            self.message, self.field_errors, self.http_status, error_code=self.code
        )


# Validation errors: caller-correctable

class ValidationError(BookingCoreError):
    code = "validation_error"
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY


class InvalidDuration(ValidationError):
    code = "invalid_duration"
    default_field = "duration_hours"


class InvalidGuestCount(ValidationError):
    code = "invalid_guest_count"
    default_field = "guest_count"


class InvalidRatePercent(ValidationError):
    code = "invalid_rate_percent"


class InvalidEventDate(ValidationError):
    code = "invalid_event_date"
    default_field = "event_date"


class InvalidPaymentAmount(ValidationError):
    code = "invalid_payment_amount"
    default_field = "amount"


class MissingReason(ValidationError):
    code = "reason_required"
    default_field = "reason"


class UnknownService(ValidationError):
    code = "unknown_service"
    http_status = status.HTTP_404_NOT_FOUND
    default_field = "service_id"


class NotFound(BookingCoreError):
    code = "not_found"
    http_status = status.HTTP_404_NOT_FOUND


# State errors: stale view or race, caller should refresh and retry

class StateError(BookingCoreError):
    code = "state_error"
    http_status = status.HTTP_409_CONFLICT


class InvalidTransition(StateError):
    code = "invalid_transition"
    default_field = "status"


class BookingNotPayable(StateError):
    code = "booking_not_payable"
    default_field = "booking_id"


class ConcurrentModification(StateError):
    code = "concurrent_modification"


# Conflict errors: need a human to resolve

class ConflictError(BookingCoreError):
    code = "conflict"
    http_status = status.HTTP_409_CONFLICT


class DuplicatePendingPayment(ConflictError):
    code = "duplicate_pending_payment"
    default_field = "booking_id"


class VettingAlreadyPending(ConflictError):
    code = "vetting_already_pending"


class AlreadyApproved(ConflictError):
    code = "already_approved"


# Authorization

class NotAuthorized(BookingCoreError):
    code = "not_authorized"
    http_status = status.HTTP_403_FORBIDDEN


class ClientBlocked(NotAuthorized):
    code = "client_blocked"
