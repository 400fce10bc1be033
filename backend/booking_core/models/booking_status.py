import enum

class BookingStatus(str, enum.Enum):
    """Central booking status enumeration used across the application."""
    PENDING = "pending"
    QUOTE_REQUESTED = "quote_requested"
    QUOTE_SENT = "quote_sent"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.REJECTED}
)


class BookingPaymentStatus(str, enum.Enum):
    """Money received against a booking, independent of its lifecycle status."""
    UNPAID = "unpaid"
    DEPOSIT_PAID = "deposit_paid"
    FULLY_PAID = "fully_paid"
