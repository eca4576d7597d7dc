"""Concurrent reservations against the real database."""

from __future__ import annotations

import threading

from django.db import connection
from django.test import TransactionTestCase

from apps.bookings.models import Booking
from apps.payments.models import Payment
from shared.domain.outcomes import ErrorKind

from .helpers import future_day, make_court, make_user, reserve

WORKERS = 6


class ConcurrentReservationTests(TransactionTestCase):
    def _race(self, requests):
        barrier = threading.Barrier(len(requests))
        outcomes = [None] * len(requests)

        def worker(index, args):
            try:
                barrier.wait(timeout=10)
                outcomes[index] = reserve(*args)
            finally:
                connection.close()

        threads = [
            threading.Thread(target=worker, args=(index, args))
            for index, args in enumerate(requests)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)
        return outcomes

    def test_exactly_one_of_many_overlapping_requests_wins(self) -> None:
        court = make_court()
        day = future_day()
        players = [make_user(f"player{index}") for index in range(WORKERS)]

        # Every request covers 18:00-19:00 with a different start/length.
        shapes = [(18, 1), (17, 2), (18, 2), (16, 3), (18, 1), (17, 2)]
        outcomes = self._race(
            [(player, court, day, start, hours) for player, (start, hours) in zip(players, shapes)]
        )

        winners = [outcome for outcome in outcomes if outcome is not None and outcome.is_ok]
        losers = [outcome for outcome in outcomes if outcome is not None and not outcome.is_ok]
        self.assertEqual(len(winners), 1)
        self.assertEqual(len(losers), WORKERS - 1)
        for outcome in losers:
            self.assertIn(outcome.kind, (ErrorKind.CONFLICT, ErrorKind.TIMEOUT))
        self.assertEqual(Booking.objects.count(), 1)
        self.assertEqual(Payment.objects.count(), 1)

    def test_disjoint_requests_all_succeed(self) -> None:
        court = make_court()
        other_court = make_court(name="Court 2")
        day = future_day()
        players = [make_user(f"player{index}") for index in range(4)]

        outcomes = self._race([
            (players[0], court, day, 8, 1),
            (players[1], court, day, 9, 2),
            (players[2], other_court, day, 8, 1),
            (players[3], other_court, day, 9, 2),
        ])

        self.assertTrue(all(outcome is not None and outcome.is_ok for outcome in outcomes))
        self.assertEqual(Booking.objects.count(), 4)

    def test_concurrent_retries_with_one_key_create_one_booking(self) -> None:
        court = make_court()
        day = future_day()
        player = make_user("player")

        outcomes = self._race([(player, court, day, 10, 1, "same-key")] * 4)

        self.assertTrue(all(outcome is not None and outcome.is_ok for outcome in outcomes))
        self.assertEqual({outcome.value.booking.pk for outcome in outcomes}, {Booking.objects.get().pk})
        self.assertEqual(sum(1 for outcome in outcomes if not outcome.value.replayed), 1)
