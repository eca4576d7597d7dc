"""
Availability Calculator

Hour-by-hour availability grid for one court on one calendar day.

The grid is a hint for the booking UI only. A client composes several
consecutive available hours into one request, and the reservation
transaction re-checks the whole range against live bookings before
anything is written.
"""

from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import Iterable, Iterator

from shared.domain.value_objects import TimeRange


@dataclass(frozen=True)
class TimeSlot:
    """One hour of a court's day"""
    hour: int
    available: bool
    is_past: bool
    has_conflict: bool

    @property
    def label(self) -> str:
        return f"{self.hour:02d}:00"


def iter_time_slots(
    open_hour: int,
    close_hour: int,
    day: date,
    booked: Iterable[TimeRange],
    now: datetime,
    tz: tzinfo | None = None,
) -> Iterator[TimeSlot]:
    """
    Yield a slot for every hour in [open_hour, close_hour)

    ``now`` is an aware datetime; ``tz`` is the court's local time zone and
    defaults to ``now``'s. A slot is past only on the current day, for the
    hour in progress and those before it.
    """
    tz = tz or now.tzinfo
    local_now = now.astimezone(tz)
    booked = tuple(booked)
    is_today = day == local_now.date()

    for hour in range(open_hour, close_hour):
        candidate = TimeRange.for_slot(day, hour, 1, tz)
        is_past = is_today and hour <= local_now.hour
        has_conflict = any(candidate.overlaps(taken) for taken in booked)
        yield TimeSlot(
            hour=hour,
            available=not is_past and not has_conflict,
            is_past=is_past,
            has_conflict=has_conflict,
        )

