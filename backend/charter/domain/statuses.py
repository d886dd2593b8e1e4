"""
Status vocabularies and allowed transitions for the four lifecycle entities.

The tables list the legal moves. Caller-driven moves (review, close, reject,
withdraw, flight status) check ``assert_transition`` up front for a clean
error. Every status write, including the ones made by acceptance, expiry and
payment confirmation, is a compare-and-swap whose expected statuses are only
ones the table lets reach the target, so a stale read still cannot make an
illegal move.
"""

from enum import Enum

from charter.core.exceptions import InvalidStateError


class RouteType(str, Enum):
    ONE_WAY = "One Way"
    ROUND_TRIP = "Round Trip"
    MULTI_CITY = "Multi City"


class InquiryStatus(str, Enum):
    NEW = "New"
    IN_PROGRESS = "In Progress"
    QUOTED = "Quoted"
    BOOKED = "Booked"
    CLOSED = "Closed"


class QuoteStatus(str, Enum):
    PENDING = "Pending"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"
    EXPIRED = "Expired"
    BOOKED = "Booked"


class BookingStatus(str, Enum):
    CONFIRMED = "Confirmed"
    SCHEDULED = "Scheduled"
    IN_FLIGHT = "In-Flight"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class PaymentStatus(str, Enum):
    """Booking-level settlement state."""

    UNPAID = "Unpaid"
    PARTIAL = "Partial"
    PAID = "Paid"


class TransactionStatus(str, Enum):
    NOT_STARTED = "not_started"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"


# Inquiries only move forward; Closed is reachable from anything not yet Booked.
INQUIRY_TRANSITIONS = {
    InquiryStatus.NEW: {
        InquiryStatus.IN_PROGRESS,
        InquiryStatus.QUOTED,
        InquiryStatus.BOOKED,
        InquiryStatus.CLOSED,
    },
    InquiryStatus.IN_PROGRESS: {InquiryStatus.QUOTED, InquiryStatus.BOOKED, InquiryStatus.CLOSED},
    InquiryStatus.QUOTED: {InquiryStatus.BOOKED, InquiryStatus.CLOSED},
    InquiryStatus.BOOKED: set(),
    InquiryStatus.CLOSED: set(),
}

QUOTE_TRANSITIONS = {
    QuoteStatus.PENDING: {QuoteStatus.ACCEPTED, QuoteStatus.REJECTED, QuoteStatus.EXPIRED},
    QuoteStatus.ACCEPTED: {QuoteStatus.BOOKED},
    QuoteStatus.REJECTED: set(),
    QuoteStatus.EXPIRED: set(),
    QuoteStatus.BOOKED: set(),
}

# Operators drive a booking forward; it can be cancelled until wheels-up.
BOOKING_TRANSITIONS = {
    BookingStatus.CONFIRMED: {BookingStatus.SCHEDULED, BookingStatus.CANCELLED},
    BookingStatus.SCHEDULED: {BookingStatus.IN_FLIGHT, BookingStatus.CANCELLED},
    BookingStatus.IN_FLIGHT: {BookingStatus.COMPLETED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
}

# Partial is reserved for deposit-style settlement; nothing sets it yet.
PAYMENT_STATUS_TRANSITIONS = {
    PaymentStatus.UNPAID: {PaymentStatus.PARTIAL, PaymentStatus.PAID},
    PaymentStatus.PARTIAL: {PaymentStatus.PAID},
    PaymentStatus.PAID: set(),
}

TRANSACTION_TRANSITIONS = {
    TransactionStatus.NOT_STARTED: {TransactionStatus.PROCESSING},
    TransactionStatus.PROCESSING: {TransactionStatus.SUCCEEDED, TransactionStatus.FAILED},
    TransactionStatus.SUCCEEDED: {TransactionStatus.REFUNDED},
    TransactionStatus.FAILED: set(),
    TransactionStatus.REFUNDED: set(),
}

OPEN_INQUIRY_STATUSES = (InquiryStatus.NEW, InquiryStatus.IN_PROGRESS, InquiryStatus.QUOTED)
WON_QUOTE_STATUSES = (QuoteStatus.ACCEPTED, QuoteStatus.BOOKED)
HISTORY_QUOTE_STATUSES = (QuoteStatus.EXPIRED, QuoteStatus.REJECTED, QuoteStatus.BOOKED)
TERMINAL_TRANSACTION_STATUSES = (
    TransactionStatus.SUCCEEDED,
    TransactionStatus.FAILED,
    TransactionStatus.REFUNDED,
)

_TABLES = {
    "inquiry": (InquiryStatus, INQUIRY_TRANSITIONS),
    "quote": (QuoteStatus, QUOTE_TRANSITIONS),
    "booking": (BookingStatus, BOOKING_TRANSITIONS),
    "payment_status": (PaymentStatus, PAYMENT_STATUS_TRANSITIONS),
    "transaction": (TransactionStatus, TRANSACTION_TRANSITIONS),
}


def can_transition(entity: str, current: str, target: str) -> bool:
    enum_cls, table = _TABLES[entity]
    try:
        return enum_cls(target) in table.get(enum_cls(current), set())
    except ValueError:
        return False


def assert_transition(entity: str, current: str, target: str, reason: str = "") -> None:
    """Raise InvalidStateError unless ``current -> target`` is allowed for ``entity``."""
    if not can_transition(entity, current, target):
        raise InvalidStateError(
            reason or f"{entity} cannot move from {_value(current)} to {_value(target)}"
        )


def _value(status) -> str:
    return status.value if isinstance(status, Enum) else str(status)
