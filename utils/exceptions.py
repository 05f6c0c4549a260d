"""
Custom exception classes for booking, payment and review operations.
Each error is recoverable by the caller and maps to a user-facing message.
"""


class BookingError(Exception):
    """Base exception for booking rule violations."""

    pass


class InvalidSlotError(BookingError):
    """Raised when a requested start is outside availability or the horizon."""

    pass


class SlotConflictError(BookingError):
    """Raised when a requested interval overlaps an active booking."""

    def __init__(self, message: str, conflicting_booking_id: str | None = None):
        super().__init__(message)
        self.conflicting_booking_id = conflicting_booking_id


class AlreadyPaidError(BookingError):
    """Raised on a payment attempt for a booking whose payment succeeded."""

    pass


class PermissionDeniedError(BookingError):
    """Raised when a client acts on a booking that is not theirs."""

    pass


class PaymentAccountMissingError(BookingError):
    """Raised when the diviner has no connected payout account."""

    pass


class ReviewNotAllowedError(BookingError):
    """Raised when reviewing a booking that is not completed."""

    pass


class DuplicateReviewError(BookingError):
    """Raised when a booking already has a review."""

    pass


class DatabaseError(Exception):
    """Base exception for database operations."""

    pass


class ClientNotFoundError(DatabaseError):
    """Raised when a client is not found."""

    pass


class DivinerNotFoundError(DatabaseError):
    """Raised when a diviner is not found."""

    pass


class ServiceNotFoundError(DatabaseError):
    """Raised when a service is not found or is inactive."""

    pass


class BookingNotFoundError(DatabaseError):
    """Raised when a booking is not found."""

    pass


class PaymentNotFoundError(DatabaseError):
    """Raised when no payment record matches."""

    pass


class PaymentError(Exception):
    """Base exception for payment gateway operations."""

    pass


class PaymentIntentError(PaymentError):
    """Raised when payment intent creation/retrieval fails."""

    pass


class WebhookVerificationError(Exception):
    """Raised when webhook signature verification fails."""

    pass


class ValidationError(Exception):
    """Raised when input validation fails."""

    pass
