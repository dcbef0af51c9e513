from enum import Enum
from typing import Any, Optional


class BookingError(Exception):
    error_code = "BOOKING_ERROR"
    status_code = 400
    retryable = False

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[dict[str, Any]] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.error_code,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }


class NotFoundError(BookingError):
    error_code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, field: str, value: Any):
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(f"{resource} not found with {field}: {value}",
                         details={"resource": resource, "field": field, "value": value})


class UnavailableReason(str, Enum):
    CANCELLED = "CANCELLED"
    SOLD_OUT = "SOLD_OUT"
    ALREADY_STARTED = "ALREADY_STARTED"
    TOO_CLOSE_TO_START = "TOO_CLOSE_TO_START"


class ShowtimeNotAvailableError(BookingError):
    error_code = "SHOWTIME_NOT_AVAILABLE"
    status_code = 400

    def __init__(self, showtime_id: int, reason: UnavailableReason, message: str, minutes_remaining: Optional[int] = None):
        self.showtime_id = showtime_id
        self.reason = reason
        self.minutes_remaining = minutes_remaining
        details = {"showtime_id": showtime_id, "reason": reason.value}
        if minutes_remaining is not None:
            details["minutes_remaining"] = minutes_remaining
        super().__init__(f"Showtime {showtime_id} is not available: {message}", details=details)

    @classmethod
    def cancelled(cls, showtime_id: int):
        return cls(showtime_id, UnavailableReason.CANCELLED, "showtime has been cancelled")

    @classmethod
    def sold_out(cls, showtime_id: int):
        return cls(showtime_id, UnavailableReason.SOLD_OUT, "showtime is sold out")

    @classmethod
    def already_started(cls, showtime_id: int):
        return cls(showtime_id, UnavailableReason.ALREADY_STARTED, "showtime has already started")

    @classmethod
    def too_close_to_start(cls, showtime_id: int, minutes_remaining: int, min_lead_minutes: int):
        return cls(showtime_id, UnavailableReason.TOO_CLOSE_TO_START,
                   f"too close to start time, {minutes_remaining} minutes remaining "
                   f"(bookings close {min_lead_minutes} minutes before start)",
                   minutes_remaining=minutes_remaining)


class SeatAlreadyBookedError(BookingError):
    error_code = "SEAT_ALREADY_BOOKED"
    status_code = 409

    def __init__(self, seat_ids: list[int], seat_labels: list[str]):
        self.seat_ids = seat_ids
        self.seat_labels = seat_labels
        super().__init__(f"Seats {', '.join(seat_labels)} are already booked. Please choose other seats.",
                         details={"seat_ids": seat_ids, "seat_labels": seat_labels})


class SeatLockConflictError(BookingError):
    error_code = "SEAT_LOCK_CONFLICT"
    status_code = 409
    retryable = True

    def __init__(self, showtime_id: int, attempts: int):
        self.showtime_id = showtime_id
        super().__init__("Too much contention on the requested seats, please retry",
                         details={"showtime_id": showtime_id, "attempts": attempts})


class BookingExpiredError(BookingError):
    error_code = "BOOKING_EXPIRED"
    status_code = 410

    def __init__(self, booking_id: int, booking_code: str):
        self.booking_id = booking_id
        self.booking_code = booking_code
        super().__init__(f"Booking {booking_code} hold has expired, please book again",
                         details={"booking_id": booking_id, "booking_code": booking_code})


class InvalidStateTransitionError(BookingError):
    error_code = "INVALID_STATE_TRANSITION"
    status_code = 409

    def __init__(self, booking_id: int, current_status: str, operation: str):
        self.booking_id = booking_id
        self.current_status = current_status
        self.operation = operation
        super().__init__(f"Cannot {operation} booking {booking_id} with status {current_status}",
                         details={"booking_id": booking_id, "current_status": current_status, "operation": operation})


class PaymentFailedError(BookingError):
    error_code = "PAYMENT_FAILED"
    status_code = 402

    def __init__(self, booking_id: int, payment_method: Optional[str], reason: str):
        self.booking_id = booking_id
        self.payment_method = payment_method
        self.reason = reason
        super().__init__(f"Payment failed for booking {booking_id} using {payment_method}: {reason}",
                         details={"booking_id": booking_id, "payment_method": payment_method, "reason": reason})


class BookingValidationError(BookingError):
    error_code = "VALIDATION_ERROR"
    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message, details={"field": field} if field else {})


class PermissionDeniedError(BookingError):
    error_code = "PERMISSION_DENIED"
    status_code = 403
