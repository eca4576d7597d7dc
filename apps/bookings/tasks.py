"""Celery tasks for the booking domain."""

from __future__ import annotations

import logging

from celery import shared_task  # type: ignore
from django.conf import settings  # type: ignore
from django.core.mail import send_mail  # type: ignore
from django.utils import timezone  # type: ignore

from .application.command_handlers import (
    CompleteFinishedBookingsCommand,
    CompleteFinishedBookingsHandler,
)
from .models import Booking

logger = logging.getLogger(__name__)


# ============================================================================
# PERIODIC TASKS (run by Celery Beat)
# ============================================================================

@shared_task(name="bookings.complete_finished_bookings")
def complete_finished_bookings() -> dict[str, int]:
    """
    Move confirmed bookings whose end time has passed to COMPLETED.

    Runs every 15 minutes through Celery Beat. Safe to run repeatedly:
    a second run finds nothing to do.

    Returns:
        dict: {"completed": number of bookings transitioned}
    """
    completed = CompleteFinishedBookingsHandler().handle(
        CompleteFinishedBookingsCommand(now=timezone.now())
    )
    return {"completed": completed}


# ============================================================================
# NOTIFICATION TASKS
# ============================================================================

def _local(moment):
    return timezone.localtime(moment).strftime("%d.%m.%Y %H:%M")


def _send(booking: Booking, subject: str, message: str) -> bool:
    recipient = booking.user.email
    if not recipient:
        logger.info(f"[NOTIFICATION] User {booking.user_id} has no email, skipping '{subject}'")
        return False
    try:
        send_mail(
            subject=subject,
            message=message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[recipient],
            fail_silently=False,
        )
    except Exception as e:
        logger.error(f"Failed to send email to {recipient}: {e}", exc_info=True)
        return False
    logger.info(f"[NOTIFICATION] '{subject}' sent to {recipient}")
    return True


@shared_task(name="bookings.notify_booking_confirmed")
def notify_booking_confirmed(booking_id: int) -> bool:
    """Email the player that the booking is paid and confirmed."""
    booking = (
        Booking.objects.select_related("user", "court", "court__venue", "payment")
        .filter(pk=booking_id)
        .first()
    )
    if booking is None:
        return False
    message = (
        f"Your booking of {booking.court.name} at {booking.court.venue.name} "
        f"from {_local(booking.start_at)} to {_local(booking.end_at)} is confirmed.\n"
        f"Amount paid: {booking.payment.money}."
    )
    return _send(booking, f"Booking #{booking.pk} confirmed", message)


@shared_task(name="bookings.notify_booking_cancelled")
def notify_booking_cancelled(booking_id: int, refund_requested: bool = False) -> bool:
    """Email the player that the booking was cancelled."""
    booking = (
        Booking.objects.select_related("user", "court", "court__venue")
        .filter(pk=booking_id)
        .first()
    )
    if booking is None:
        return False
    message = (
        f"Your booking of {booking.court.name} at {booking.court.venue.name} "
        f"on {_local(booking.start_at)} was cancelled."
    )
    if refund_requested:
        message += "\nA full refund has been requested and will reach you within a few days."
    return _send(booking, f"Booking #{booking.pk} cancelled", message)
