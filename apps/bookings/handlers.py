"""
Booking Event Handlers

Handlers for domain events published after commit. They only enqueue
Celery tasks; the tasks reload state from the database.
"""

import logging

from shared.application.message_bus import message_bus
from apps.bookings.domain.events import (
    BookingCancelled,
    BookingCompleted,
    BookingConfirmed,
    BookingReserved,
    PaymentRefundRequested,
)

logger = logging.getLogger(__name__)


def on_booking_reserved(event: BookingReserved):
    logger.info(
        f"Booking {event.booking_id} holds court {event.court_id} "
        f"{event.start_at.isoformat()} - {event.end_at.isoformat()}"
    )


def on_booking_confirmed(event: BookingConfirmed):
    from apps.bookings.tasks import notify_booking_confirmed

    notify_booking_confirmed.delay(event.booking_id)


def on_booking_cancelled(event: BookingCancelled):
    from apps.bookings.tasks import notify_booking_cancelled

    notify_booking_cancelled.delay(event.booking_id, event.refund_requested)


def on_booking_completed(event: BookingCompleted):
    logger.info(f"Booking {event.booking_id} completed")


def on_refund_requested(event: PaymentRefundRequested):
    from apps.payments.tasks import request_refund

    request_refund.delay(event.payment_id, event.reason)


def register_event_handlers():
    """Wire booking events to their handlers (called from BookingsConfig.ready)"""
    message_bus.register_event_handler(BookingReserved, on_booking_reserved)
    message_bus.register_event_handler(BookingConfirmed, on_booking_confirmed)
    message_bus.register_event_handler(BookingCancelled, on_booking_cancelled)
    message_bus.register_event_handler(BookingCompleted, on_booking_completed)
    message_bus.register_event_handler(PaymentRefundRequested, on_refund_requested)
