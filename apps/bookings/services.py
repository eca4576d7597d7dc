"""Query services for booking workflows."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable

from django.db import transaction  # type: ignore
from django.db.models import Q  # type: ignore
from django.db.utils import NotSupportedError  # type: ignore
from django.utils import timezone  # type: ignore

from shared.domain.value_objects import TimeRange

from .domain.availability import TimeSlot, iter_time_slots
from .domain.lifecycle import BLOCKING_STATUSES, OCCUPYING_STATUSES
from .models import Booking


def _lock_queryset_if_possible(queryset):
    """Apply select_for_update when inside transaction.atomic()."""

    if not transaction.get_connection().in_atomic_block:
        return queryset

    try:
        return queryset.select_for_update()
    except NotSupportedError:
        return queryset


def lock_court(court_id: int):
    """Load the court with its venue and lock the court row for this transaction."""

    from apps.venues.models import Court

    queryset = Court.objects.select_related("venue").filter(pk=court_id)
    connection = transaction.get_connection()
    if connection.in_atomic_block and connection.features.has_select_for_update_of:
        # Lock only the court; other courts of the venue stay bookable.
        queryset = queryset.select_for_update(of=("self",))
    else:
        queryset = _lock_queryset_if_possible(queryset)
    return queryset.first()


def overlapping_bookings(court_id: int, span: TimeRange, statuses: Iterable[str] = BLOCKING_STATUSES):
    """Bookings on the court whose range overlaps ``span``."""

    return Booking.objects.filter(
        court_id=court_id,
        status__in=[str(getattr(value, "value", value)) for value in statuses],
    ).filter(Q(start_at__lt=span.end) & Q(end_at__gt=span.start))


@dataclass(frozen=True)
class CourtDay:
    court: object
    day: date
    slots: list[TimeSlot]
    bookings: list[Booking]


def court_day_availability(court, day: date, now: datetime | None = None) -> CourtDay:
    """Hourly availability of ``court`` on ``day`` in the current time zone."""

    now = now or timezone.now()
    tz = timezone.get_current_timezone()
    day_start = datetime.combine(day, datetime.min.time(), tzinfo=tz)
    day_span = TimeRange(day_start, day_start + timedelta(days=1))

    bookings = list(
        overlapping_bookings(court.pk, day_span, statuses=OCCUPYING_STATUSES).order_by("start_at")
    )
    slots = list(
        iter_time_slots(
            court.open_hour,
            court.close_hour,
            day,
            (booking.time_range for booking in bookings),
            now,
            tz,
        )
    )
    return CourtDay(court=court, day=day, slots=slots, bookings=bookings)
