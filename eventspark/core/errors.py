"""Domain errors raised by the EventSpark services.

Every business-rule failure is a ``DomainError`` carrying a stable code, a
user-safe message and the HTTP status the API layer answers with.
"""

from enum import Enum
from typing import Iterable, Optional


class ErrorCode(str, Enum):
    """Domain error codes."""

    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    UNAUTHORIZED = "UNAUTHORIZED"
    VALIDATION = "VALIDATION"
    PAYMENT_FAILED = "PAYMENT_FAILED"


class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode = ErrorCode.VALIDATION
    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class NotFoundError(DomainError):
    code = ErrorCode.NOT_FOUND
    status_code = 404


class ConflictError(DomainError):
    code = ErrorCode.CONFLICT
    status_code = 409


class UnauthorizedError(DomainError):
    """Raised when a caller touches a resource it does not own."""

    code = ErrorCode.UNAUTHORIZED
    status_code = 403

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class ValidationError(DomainError):
    code = ErrorCode.VALIDATION
    status_code = 400


class PaymentFailedError(DomainError):
    code = ErrorCode.PAYMENT_FAILED
    status_code = 402

    def __init__(self, booking_id: int) -> None:
        super().__init__("Payment failed. Please try again.")
        self.booking_id = booking_id


class EventNotFoundError(NotFoundError):
    def __init__(self, event_id: Optional[int] = None) -> None:
        super().__init__("Event not found")
        self.event_id = event_id


class BookingNotFoundError(NotFoundError):
    def __init__(self, booking_id: Optional[int] = None) -> None:
        super().__init__("Booking not found")
        self.booking_id = booking_id


class UserNotFoundError(NotFoundError):
    def __init__(self) -> None:
        super().__init__("User not found")


class SeatAlreadyBookedError(ConflictError):
    """Raised when one or more seats already hold an active booking."""

    def __init__(self, seat_numbers: Iterable[str], bulk: bool = False) -> None:
        self.seat_numbers = list(seat_numbers)
        if bulk:
            message = f"Seats already booked: {', '.join(self.seat_numbers)}"
        else:
            message = "Seat is already booked"
        super().__init__(message)


class SoldOutError(ConflictError):
    def __init__(self) -> None:
        super().__init__("Event is sold out")


class InsufficientSeatsError(ConflictError):
    def __init__(self, available: int) -> None:
        super().__init__("Not enough seats available")
        self.available = available


class InvalidStateError(ConflictError):
    """Raised when a state transition is not allowed."""


class BookingContentionError(ConflictError):
    """Raised when concurrent sales keep moving the price under a request."""

    def __init__(self) -> None:
        super().__init__("Ticket demand is changing quickly, please try again")
