"""
Common Value Objects

Value objects used across multiple contexts:
- Money: Monetary amount in integer minor units (paisa, cents) with currency
- TimeRange: Half-open interval between two timezone-aware datetimes
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from decimal import ROUND_HALF_UP, Decimal

from shared.domain.base import ValueObject

SUPPORTED_CURRENCIES = ('INR', 'USD', 'EUR', 'KZT')

HOUR = timedelta(hours=1)


@dataclass(frozen=True)
class Money(ValueObject):
    """
    Money value object

    The amount is an integer number of minor currency units. Floats are
    rejected so that prices never drift between the API and the ledger.
    """
    amount: int
    currency: str = 'INR'

    def __post_init__(self):
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise TypeError("Money amount must be an integer number of minor units")
        if self.amount < 0:
            raise ValueError("Amount cannot be negative")
        if not self.currency:
            raise ValueError("Currency is required")
        if self.currency not in SUPPORTED_CURRENCIES:
            raise ValueError(f"Unsupported currency: {self.currency}")

    @classmethod
    def from_major(cls, value: str | Decimal, currency: str = 'INR') -> 'Money':
        """Build from a major-unit decimal string such as "500.00"."""
        minor = (Decimal(str(value)) * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP)
        return cls(int(minor), currency)

    def __add__(self, other: 'Money') -> 'Money':
        """Add two money objects"""
        if not isinstance(other, Money):
            raise TypeError("Can only add Money to Money")
        if self.currency != other.currency:
            raise ValueError(f"Cannot add different currencies: {self.currency} and {other.currency}")
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: 'Money') -> 'Money':
        """Subtract two money objects"""
        if not isinstance(other, Money):
            raise TypeError("Can only subtract Money from Money")
        if self.currency != other.currency:
            raise ValueError(f"Cannot subtract different currencies: {self.currency} and {other.currency}")
        return Money(self.amount - other.amount, self.currency)

    def __mul__(self, factor: int) -> 'Money':
        """Multiply money by a whole number (hours, quantity)"""
        if isinstance(factor, bool) or not isinstance(factor, int):
            raise TypeError("Can only multiply Money by an integer")
        return Money(self.amount * factor, self.currency)

    @property
    def major(self) -> Decimal:
        return Decimal(self.amount) / 100

    def __str__(self):
        return f"{self.major:,.2f} {self.currency}"

    def __repr__(self):
        return f"Money({self.amount}, '{self.currency}')"


@dataclass(frozen=True)
class TimeRange(ValueObject):
    """
    Time range value object

    Represents the interval [start, end): start is inclusive, end is exclusive.
    Used for booking periods and for the one-hour candidates of the
    availability grid.
    """
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start ({self.start}) must be before end ({self.end})")

    @classmethod
    def for_slot(cls, day: date, start_hour: int, hours: int, tz: tzinfo) -> 'TimeRange':
        """
        Range of ``hours`` whole hours starting at ``start_hour`` on ``day``

        The start is built as local wall time in ``tz``.
        """
        if not 0 <= start_hour <= 23:
            raise ValueError(f"Start hour must be between 0 and 23, got {start_hour}")
        if hours < 1:
            raise ValueError("A time range must last at least one hour")
        start = datetime.combine(day, time(hour=start_hour), tzinfo=tz)
        return cls(start, start + hours * HOUR)

    def overlaps(self, other: 'TimeRange') -> bool:
        """
        Check if this range overlaps with another

        Adjacent ranges do not overlap: [10, 11) and [11, 12) share no instant.
        """
        if not isinstance(other, TimeRange):
            raise TypeError("Can only check overlap with another TimeRange")
        return self.start < other.end and other.start < self.end

    @property
    def is_hour_aligned(self) -> bool:
        return all(
            moment.minute == 0 and moment.second == 0 and moment.microsecond == 0
            for moment in (self.start, self.end)
        )

    @property
    def duration_hours(self) -> int:
        """
        Length in whole hours; partial hours are not a valid booking length

        Only the length is checked: a range loaded back in UTC is not on the
        hour for zones with a half-hour offset.
        """
        length = self.end - self.start
        if length % HOUR:
            raise ValueError(f"{self!r} does not last a whole number of hours")
        return length // HOUR

    def within_operating_hours(self, open_hour: int, close_hour: int) -> bool:
        """
        Check the range fits inside [open_hour, close_hour) of its start day

        Hours are counted from midnight of the start's calendar day, so a
        range running past midnight ends after hour 24 and never fits.
        """
        if not self.is_hour_aligned:
            return False
        midnight = self.start.replace(hour=0)
        start_offset = (self.start - midnight) // HOUR
        end_offset = (self.end - midnight) // HOUR
        return start_offset >= open_hour and end_offset <= close_hour

    def __str__(self):
        return f"{self.start.strftime('%d.%m.%Y %H:%M')} - {self.end.strftime('%H:%M')}"

    def __repr__(self):
        return f"TimeRange({self.start.isoformat()}, {self.end.isoformat()})"
