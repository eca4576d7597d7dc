"""Object builders shared by the booking and payment tests."""

from __future__ import annotations

import uuid
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.utils import timezone

from apps.bookings.application.command_handlers import ReserveCourtCommand, ReserveCourtHandler
from apps.bookings.models import Booking
from apps.payments.models import Payment
from apps.venues.models import Court, Venue
from shared.domain.value_objects import TimeRange

User = get_user_model()


def make_user(username: str, **extra):
    return User.objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password="PlayerPass123",
        **extra,
    )


def make_court(
    owner=None,
    *,
    approved: bool = True,
    open_hour: int = 6,
    close_hour: int = 22,
    price: int = 50_000,
    name: str = "Court 1",
) -> Court:
    owner = owner or make_user(f"owner-{uuid.uuid4().hex[:8]}")
    venue = Venue.objects.create(
        owner=owner,
        name="Smash Arena",
        city="Pune",
        address="FC Road 12",
        status=Venue.Status.APPROVED if approved else Venue.Status.PENDING,
    )
    return Court.objects.create(
        venue=venue,
        name=name,
        sport="badminton",
        open_hour=open_hour,
        close_hour=close_hour,
        price_per_hour=price,
    )


def future_day(days: int = 2):
    return timezone.localdate() + timedelta(days=days)


def reserve(user, court, day, start_hour: int, hours: int = 1, key: str | None = None, note: str = ""):
    return ReserveCourtHandler().handle(
        ReserveCourtCommand(
            requester_id=user.pk,
            court_id=court.pk,
            day=day,
            start_hour=start_hour,
            duration_hours=hours,
            note=note,
            idempotency_key=key,
        )
    )


def book(
    user,
    court,
    start_at,
    hours: int = 1,
    *,
    status: str = Booking.Status.PENDING,
    payment_status: str = Payment.Status.PENDING,
    provider_reference: str | None = None,
) -> Booking:
    """Insert a booking and its payment directly, bypassing the reservation checks."""
    booking = Booking.objects.create(
        user=user,
        court=court,
        start_at=start_at,
        end_at=start_at + timedelta(hours=hours),
        status=status,
        idempotency_key=uuid.uuid4().hex,
    )
    Payment.objects.create(
        booking=booking,
        amount=court.price_per_hour * hours,
        currency=court.currency,
        status=payment_status,
        provider_reference=provider_reference,
    )
    return booking


def slot(day, start_hour: int, hours: int = 1) -> TimeRange:
    return TimeRange.for_slot(day, start_hour, hours, timezone.get_current_timezone())
