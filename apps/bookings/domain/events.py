"""
Booking Domain Events

Events that represent things that have happened in the booking domain.
These are published after successful transaction commits.
"""

from dataclasses import dataclass
from datetime import datetime

from shared.domain.base import DomainEvent


@dataclass
class BookingReserved(DomainEvent):
    """
    Event: A court/time range was reserved (booking PENDING, payment PENDING)
    """
    booking_id: int
    court_id: int
    user_id: int
    start_at: datetime
    end_at: datetime
    amount: int
    currency: str


@dataclass
class BookingConfirmed(DomainEvent):
    """
    Event: Payment succeeded (PENDING -> CONFIRMED)

    Triggers:
    - Send booking confirmation to the player
    """
    booking_id: int
    payment_id: int
    provider_reference: str


@dataclass
class BookingCancelled(DomainEvent):
    """
    Event: Booking was cancelled

    Triggers:
    - Ask the payment provider to refund, when a paid booking was cancelled
    - Notify the player
    """
    booking_id: int
    payment_id: int | None
    reason: str
    old_status: str
    refund_requested: bool = False


@dataclass
class BookingCompleted(DomainEvent):
    """
    Event: Booking end time passed (CONFIRMED -> COMPLETED)
    """
    booking_id: int


@dataclass
class PaymentRefundRequested(DomainEvent):
    """
    Event: A succeeded payment was marked REFUNDED and the provider must return the money

    Triggers:
    - Ask the payment provider to refund
    """
    payment_id: int
    booking_id: int
    reason: str
