"""Venue and court models for CourtBook.

A venue is a sports facility listed by an owner; each court inside it is a
single bookable resource with its own operating hours and hourly price.
Prices are stored in minor currency units (paisa) so they can be
multiplied by booking length without rounding.
"""

from __future__ import annotations

from django.conf import settings  # type: ignore
from django.core.validators import MaxValueValidator, MinValueValidator  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from shared.domain.value_objects import Money


class Venue(models.Model):
    """Sports facility containing one or more courts."""

    class Status(models.TextChoices):
        PENDING = "pending", _("Awaiting approval")
        APPROVED = "approved", _("Approved")
        REJECTED = "rejected", _("Rejected")

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="venues",
    )
    name = models.CharField(max_length=255)
    city = models.CharField(max_length=100)
    address = models.CharField(max_length=255, blank=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Venue")
        verbose_name_plural = _("Venues")
        ordering = ["name"]

    def __str__(self) -> str:
        return f"{self.name} ({self.city})"

    @property
    def is_approved(self) -> bool:
        return self.status == self.Status.APPROVED


class Court(models.Model):
    """A single bookable court, open during [open_hour, close_hour)."""

    venue = models.ForeignKey(
        Venue,
        on_delete=models.CASCADE,
        related_name="courts",
    )
    name = models.CharField(max_length=120)
    sport = models.CharField(max_length=50)
    open_hour = models.PositiveSmallIntegerField(
        default=6,
        validators=[MaxValueValidator(23)],
    )
    close_hour = models.PositiveSmallIntegerField(
        default=22,
        validators=[MinValueValidator(1), MaxValueValidator(24)],
    )
    price_per_hour = models.PositiveIntegerField(
        help_text=_("Hourly price in minor currency units (paisa)."),
    )
    currency = models.CharField(max_length=3, default="INR")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Court")
        verbose_name_plural = _("Courts")
        ordering = ["venue", "name"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(open_hour__lt=models.F("close_hour")),
                name="court_open_before_close",
            ),
            models.CheckConstraint(
                condition=models.Q(close_hour__lte=24),
                name="court_close_within_day",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} @ {self.venue.name}"

    @property
    def hourly_rate(self) -> Money:
        return Money(self.price_per_hour, self.currency)
