"""Tests for the reservation transaction and the idempotency guard."""

from __future__ import annotations

from unittest import mock

from django.db import OperationalError
from django.test import TestCase

from apps.bookings import idempotency
from apps.bookings.application.command_handlers import ReserveCourtCommand, ReserveCourtHandler
from apps.bookings.models import Booking
from apps.bookings.services import lock_court
from apps.payments.models import Payment
from shared.application.uow import DjangoUnitOfWork, TransactionTimeout
from shared.domain.outcomes import ErrorKind

from .helpers import book, future_day, make_court, make_user, reserve, slot


class ReserveCourtTests(TestCase):
    def setUp(self) -> None:
        self.player = make_user("player")
        self.rival = make_user("rival")
        self.court = make_court(price=60_000)
        self.day = future_day()

    def test_creates_pending_booking_with_pending_payment(self) -> None:
        outcome = reserve(self.player, self.court, self.day, 18, hours=2, note="doubles")

        self.assertTrue(outcome.is_ok, outcome.failure)
        booking, payment = outcome.value.booking, outcome.value.payment
        self.assertFalse(outcome.value.replayed)
        self.assertEqual(booking.status, Booking.Status.PENDING)
        self.assertEqual(booking.time_range, slot(self.day, 18, 2))
        self.assertEqual(booking.note, "doubles")
        self.assertEqual(payment.status, Payment.Status.PENDING)
        self.assertEqual(payment.booking_id, booking.pk)

    def test_amount_is_price_times_hours(self) -> None:
        outcome = reserve(self.player, self.court, self.day, 9, hours=3)
        self.assertEqual(outcome.value.payment.amount, 180_000)
        self.assertEqual(outcome.value.payment.currency, "INR")

    def test_price_change_does_not_touch_existing_payment(self) -> None:
        outcome = reserve(self.player, self.court, self.day, 9, hours=2)
        self.court.price_per_hour = 99_000
        self.court.save()

        payment = Payment.objects.get(pk=outcome.value.payment.pk)
        self.assertEqual(payment.amount, 120_000)

    def test_overlapping_request_is_a_conflict(self) -> None:
        self.assertTrue(reserve(self.player, self.court, self.day, 10, hours=2).is_ok)

        outcome = reserve(self.rival, self.court, self.day, 11)

        self.assertEqual(outcome.kind, ErrorKind.CONFLICT)
        self.assertEqual(Booking.objects.count(), 1)
        self.assertEqual(Payment.objects.count(), 1)

    def test_adjacent_ranges_are_both_accepted(self) -> None:
        self.assertTrue(reserve(self.player, self.court, self.day, 10).is_ok)
        self.assertTrue(reserve(self.rival, self.court, self.day, 11).is_ok)
        self.assertTrue(reserve(self.rival, self.court, self.day, 9).is_ok)

    def test_ranges_overlapping_an_existing_booking_conflict(self) -> None:
        self.assertTrue(reserve(self.player, self.court, self.day, 10).is_ok)

        for start, hours in ((10, 2), (9, 2), (9, 3), (10, 1)):
            outcome = reserve(self.rival, self.court, self.day, start, hours=hours)
            self.assertEqual(outcome.kind, ErrorKind.CONFLICT, (start, hours))
        self.assertEqual(Booking.objects.count(), 1)

    def test_cancelled_and_completed_bookings_do_not_block(self) -> None:
        book(self.rival, self.court, slot(self.day, 10).start, status=Booking.Status.CANCELLED)
        book(self.rival, self.court, slot(self.day, 11).start, status=Booking.Status.COMPLETED)

        self.assertTrue(reserve(self.player, self.court, self.day, 10, hours=2).is_ok)

    def test_other_court_is_independent(self) -> None:
        other = make_court(name="Court 2")
        self.assertTrue(reserve(self.player, self.court, self.day, 10).is_ok)
        self.assertTrue(reserve(self.rival, other, self.day, 10).is_ok)

    def test_missing_court_is_not_found(self) -> None:
        outcome = ReserveCourtHandler().handle(
            ReserveCourtCommand(
                requester_id=self.player.pk,
                court_id=self.court.pk + 1000,
                day=self.day,
                start_hour=10,
                duration_hours=1,
            )
        )
        self.assertEqual(outcome.kind, ErrorKind.NOT_FOUND)

    def test_unapproved_venue_is_forbidden(self) -> None:
        court = make_court(approved=False)
        outcome = reserve(self.player, court, self.day, 10)
        self.assertEqual(outcome.kind, ErrorKind.FORBIDDEN)
        self.assertFalse(Booking.objects.exists())

    def test_outside_operating_hours_is_invalid(self) -> None:
        for start, hours in ((5, 1), (22, 1), (21, 2), (23, 1)):
            outcome = reserve(self.player, self.court, self.day, start, hours=hours)
            self.assertEqual(outcome.kind, ErrorKind.INVALID_REQUEST, (start, hours))
        self.assertTrue(reserve(self.player, self.court, self.day, 21).is_ok)
        self.assertTrue(reserve(self.player, self.court, self.day, 6).is_ok)
        self.assertFalse(Booking.objects.filter(start_at__lt=slot(self.day, 6).start).exists())

    def test_conflict_is_checked_before_venue_approval(self) -> None:
        court = make_court(approved=False)
        book(self.rival, court, slot(self.day, 10).start)
        self.assertEqual(reserve(self.player, court, self.day, 10).kind, ErrorKind.CONFLICT)

    def test_deadline_overrun_rolls_everything_back(self) -> None:
        with mock.patch.object(
            DjangoUnitOfWork,
            "check_deadline",
            side_effect=[None, TransactionTimeout("slow")],
        ):
            outcome = reserve(self.player, self.court, self.day, 10)

        self.assertEqual(outcome.kind, ErrorKind.TIMEOUT)
        self.assertTrue(outcome.kind.retryable)
        self.assertFalse(Booking.objects.exists())
        self.assertFalse(Payment.objects.exists())

    def test_transient_error_is_retried_once(self) -> None:
        with mock.patch(
            "apps.bookings.application.command_handlers.lock_court",
            side_effect=_fail_then(lock_court),
        ) as locker:
            outcome = reserve(self.player, self.court, self.day, 10)

        self.assertTrue(outcome.is_ok, outcome.failure)
        self.assertEqual(locker.call_count, 2)
        self.assertEqual(Booking.objects.count(), 1)

    def test_persistent_transient_error_becomes_timeout(self) -> None:
        with mock.patch(
            "apps.bookings.application.command_handlers.lock_court",
            side_effect=OperationalError("could not serialize access"),
        ) as locker:
            outcome = reserve(self.player, self.court, self.day, 10)

        self.assertEqual(outcome.kind, ErrorKind.TIMEOUT)
        self.assertEqual(locker.call_count, 2)
        self.assertFalse(Booking.objects.exists())


def _fail_then(real):
    calls = {"count": 0}

    def side_effect(*args, **kwargs):
        calls["count"] += 1
        if calls["count"] == 1:
            raise OperationalError("database is locked")
        return real(*args, **kwargs)

    return side_effect


class IdempotencyTests(TestCase):
    def setUp(self) -> None:
        self.player = make_user("player")
        self.court = make_court()
        self.day = future_day()

    def test_same_key_returns_the_original_booking(self) -> None:
        first = reserve(self.player, self.court, self.day, 10, key="retry-123")
        second = reserve(self.player, self.court, self.day, 10, key="retry-123")

        self.assertTrue(second.is_ok)
        self.assertTrue(second.value.replayed)
        self.assertEqual(second.value.booking.pk, first.value.booking.pk)
        self.assertEqual(second.value.payment.pk, first.value.payment.pk)
        self.assertEqual(Booking.objects.count(), 1)
        self.assertEqual(Payment.objects.count(), 1)

    def test_key_reused_for_a_different_request_is_a_conflict(self) -> None:
        reserve(self.player, self.court, self.day, 10, key="retry-123")
        outcome = reserve(self.player, self.court, self.day, 14, key="retry-123")

        self.assertEqual(outcome.kind, ErrorKind.CONFLICT)
        self.assertEqual(Booking.objects.count(), 1)

    def test_key_of_another_user_is_not_replayed(self) -> None:
        reserve(self.player, self.court, self.day, 10, key="shared-key")
        intruder = make_user("intruder")
        outcome = reserve(intruder, self.court, self.day, 10, key="shared-key")
        self.assertEqual(outcome.kind, ErrorKind.CONFLICT)

    def test_missing_key_gets_a_unique_fallback(self) -> None:
        first = reserve(self.player, self.court, self.day, 10)
        second = reserve(self.player, self.court, self.day, 12)

        keys = {first.value.booking.idempotency_key, second.value.booking.idempotency_key}
        self.assertEqual(len(keys), 2)
        for key in keys:
            self.assertTrue(key.startswith(f"{self.player.pk}-"))

    def test_blank_key_is_treated_as_missing(self) -> None:
        self.assertTrue(idempotency.resolve_key("   ", 7).startswith("7-"))
        self.assertEqual(idempotency.resolve_key(" abc ", 7), "abc")

    def test_fingerprint_covers_the_payload(self) -> None:
        base = ReserveCourtCommand(1, 2, self.day, 10, 1, note="", idempotency_key="k")
        same = ReserveCourtCommand(1, 2, self.day, 10, 1, note="", idempotency_key="other")
        moved = ReserveCourtCommand(1, 2, self.day, 11, 1, note="", idempotency_key="k")
        self.assertEqual(idempotency.fingerprint(base), idempotency.fingerprint(same))
        self.assertNotEqual(idempotency.fingerprint(base), idempotency.fingerprint(moved))
