"""
Booking Lifecycle

Finite state machines for a booking and its payment.

Booking transitions:
- PENDING -> CONFIRMED (payment succeeded)
- PENDING -> CANCELLED (payment failed/cancelled, or user cancelled)
- CONFIRMED -> CANCELLED (user cancelled inside the window)
- CONFIRMED -> COMPLETED (end time passed, completion sweep)

CANCELLED and COMPLETED are terminal. Nothing ever returns to PENDING.

Payment transitions:
- PENDING -> SUCCEEDED | FAILED
- SUCCEEDED -> REFUNDED
"""

from datetime import datetime, timedelta
from enum import Enum


class BookingStatus(str, Enum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    CANCELLED = 'cancelled'
    COMPLETED = 'completed'


class PaymentStatus(str, Enum):
    PENDING = 'pending'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'
    REFUNDED = 'refunded'


BOOKING_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.SUCCEEDED, PaymentStatus.FAILED}),
    PaymentStatus.SUCCEEDED: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.FAILED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
}

# Bookings in these states hold their court/time range.
BLOCKING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)

# Bookings shown as taken on the availability grid.
OCCUPYING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.COMPLETED)

CANCELLABLE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)

DEFAULT_CANCELLATION_WINDOW = timedelta(hours=2)


class IllegalTransition(ValueError):
    """Raised when a status change is not allowed by the lifecycle."""

    def __init__(self, kind: str, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move {kind} from {current} to {target}")


def can_transition(current, target) -> bool:
    return BookingStatus(target) in BOOKING_TRANSITIONS[BookingStatus(current)]


def ensure_transition(current, target) -> BookingStatus:
    """Validate a booking status change and return the target status"""
    current, target = BookingStatus(current), BookingStatus(target)
    if target not in BOOKING_TRANSITIONS[current]:
        raise IllegalTransition('booking', current.value, target.value)
    return target


def ensure_payment_transition(current, target) -> PaymentStatus:
    """Validate a payment status change and return the target status"""
    current, target = PaymentStatus(current), PaymentStatus(target)
    if target not in PAYMENT_TRANSITIONS[current]:
        raise IllegalTransition('payment', current.value, target.value)
    return target


def is_terminal(status) -> bool:
    return not BOOKING_TRANSITIONS[BookingStatus(status)]


def within_cancellation_window(
    start_at: datetime,
    now: datetime,
    window: timedelta = DEFAULT_CANCELLATION_WINDOW,
) -> bool:
    """A user may cancel only while ``now + window`` is still before the start"""
    return now + window < start_at
