"""Booking models for CourtBook."""

from __future__ import annotations

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from shared.domain.value_objects import TimeRange

from .domain.lifecycle import BookingStatus, ensure_transition


class Booking(models.Model):
    """Reservation of one court for one whole-hour time range."""

    class Status(models.TextChoices):
        PENDING = BookingStatus.PENDING.value, _("Awaiting payment")
        CONFIRMED = BookingStatus.CONFIRMED.value, _("Confirmed")
        CANCELLED = BookingStatus.CANCELLED.value, _("Cancelled")
        COMPLETED = BookingStatus.COMPLETED.value, _("Completed")

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="bookings",
    )
    court = models.ForeignKey(
        "venues.Court",
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    start_at = models.DateTimeField()
    end_at = models.DateTimeField()
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
    )
    note = models.TextField(blank=True)
    idempotency_key = models.CharField(max_length=255, unique=True)
    request_fingerprint = models.CharField(
        max_length=64,
        blank=True,
        help_text=_("SHA-256 of the reservation request that used the idempotency key."),
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    confirmed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = _("Booking")
        verbose_name_plural = _("Bookings")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(end_at__gt=models.F("start_at")),
                name="booking_end_after_start",
            ),
        ]
        indexes = [
            models.Index(fields=["court", "start_at", "end_at"], name="booking_court_range_idx"),
            models.Index(fields=["status", "end_at"], name="booking_status_end_idx"),
        ]

    def __str__(self) -> str:
        return f"Booking #{self.pk} on court {self.court_id} ({self.status})"

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(self.start_at, self.end_at)

    @property
    def duration_hours(self) -> int:
        return self.time_range.duration_hours

    def transition_to(self, target: str, *, at=None) -> list[str]:
        """
        Move to ``target`` if the lifecycle allows it.

        Returns the changed field names for ``save(update_fields=...)``.
        Raises ``IllegalTransition`` otherwise.
        """
        ensure_transition(self.status, target)
        at = at or timezone.now()
        self.status = target
        changed = ["status", "updated_at"]
        stamp_field = {
            self.Status.CONFIRMED: "confirmed_at",
            self.Status.CANCELLED: "cancelled_at",
            self.Status.COMPLETED: "completed_at",
        }.get(target)
        if stamp_field:
            setattr(self, stamp_field, at)
            changed.append(stamp_field)
        return changed
