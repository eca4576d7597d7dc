"""Tests for venue and court models."""

from __future__ import annotations

from django.db import IntegrityError, transaction
from django.test import TestCase

from apps.bookings.tests.helpers import make_court, make_user
from apps.venues.models import Court, Venue
from shared.domain.value_objects import Money


class CourtModelTests(TestCase):
    def test_hourly_rate_is_money(self) -> None:
        court = make_court(price=45_000)
        self.assertEqual(court.hourly_rate, Money(45_000, "INR"))

    def test_venue_approval(self) -> None:
        self.assertTrue(make_court().venue.is_approved)
        self.assertFalse(make_court(approved=False).venue.is_approved)

    def test_operating_hours_constraints(self) -> None:
        venue = Venue.objects.create(owner=make_user("owner"), name="Arena", city="Pune")
        for open_hour, close_hour in ((10, 10), (12, 8), (6, 25)):
            with self.subTest(open_hour=open_hour, close_hour=close_hour):
                with self.assertRaises(IntegrityError):
                    with transaction.atomic():
                        Court.objects.create(
                            venue=venue,
                            name="Bad",
                            sport="tennis",
                            open_hour=open_hour,
                            close_hour=close_hour,
                            price_per_hour=1000,
                        )
        Court.objects.create(
            venue=venue, name="Full day", sport="tennis", open_hour=0, close_hour=24, price_per_hour=1000
        )
