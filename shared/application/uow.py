"""
Unit of Work Pattern

Manages database transactions and ensures that domain events
are published only after successful transaction commit.
"""

from typing import List
import logging
import time

from django.db import connection, transaction

from shared.domain.base import DomainEvent

logger = logging.getLogger(__name__)


class TransactionTimeout(Exception):
    """Raised when a unit of work runs past its deadline; the work is rolled back."""


class DjangoUnitOfWork:
    """
    Django implementation of Unit of Work

    Manages Django database transactions and ensures domain events
    are published after successful commit.

    Usage:
        with DjangoUnitOfWork(serializable=True, timeout=10) as uow:
            booking = Booking.objects.select_for_update().get(pk=booking_id)
            booking.transition_to(Booking.Status.CONFIRMED)
            booking.save()

            uow.record(BookingConfirmed(...))
            uow.check_deadline()

            # Transaction commits here
        # Events are published after commit

    ``serializable`` and ``timeout`` only take effect on PostgreSQL and only
    when this unit of work opens the outermost transaction; SQLite already
    serialises writers.
    """

    def __init__(self, *, serializable: bool = False, timeout: float | None = None):
        self.serializable = serializable
        self.timeout = timeout
        self._events: List[DomainEvent] = []
        self._transaction = None
        self._started_at: float | None = None

    def __enter__(self):
        """Start database transaction"""
        outermost = not connection.in_atomic_block
        self._transaction = transaction.atomic()
        self._transaction.__enter__()
        self._started_at = time.monotonic()
        if outermost and connection.vendor == 'postgresql':
            self._configure_postgres_transaction()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Complete or rollback transaction"""
        try:
            if exc_type is None:
                self.commit()
            else:
                self.rollback()
        finally:
            if self._transaction:
                self._transaction.__exit__(exc_type, exc_val, exc_tb)

    def _configure_postgres_transaction(self):
        with connection.cursor() as cursor:
            if self.serializable:
                cursor.execute("SET TRANSACTION ISOLATION LEVEL SERIALIZABLE")
            if self.timeout:
                millis = int(self.timeout * 1000)
                cursor.execute(f"SET LOCAL statement_timeout = {millis}")
                cursor.execute(f"SET LOCAL lock_timeout = {millis}")

    @property
    def elapsed(self) -> float:
        if self._started_at is None:
            return 0.0
        return time.monotonic() - self._started_at

    def check_deadline(self):
        """Abort the unit of work if it has run longer than its timeout"""
        if self.timeout is not None and self.elapsed > self.timeout:
            raise TransactionTimeout(
                f"Transaction exceeded {self.timeout}s (ran {self.elapsed:.2f}s)"
            )

    def commit(self):
        """
        Commit changes and publish events

        Events are published using Django's transaction.on_commit()
        to ensure they're only sent after database commit succeeds.
        """
        logger.debug(f"Committing transaction with {len(self._events)} events")

        events = self._events.copy()
        self._events.clear()

        if events:
            transaction.on_commit(lambda: self._publish_events(events))

    def rollback(self):
        """Rollback changes and discard events"""
        if self._events:
            logger.warning(f"Rolling back transaction, discarding {len(self._events)} events")
        self._events.clear()

    def record(self, *events: DomainEvent):
        """Queue domain events for publication after commit"""
        self._events.extend(events)

    def _publish_events(self, events: List[DomainEvent]):
        """
        Publish collected events to message bus

        Called after successful transaction commit.
        """
        from shared.application.message_bus import message_bus

        logger.info(f"Publishing {len(events)} domain events after commit")

        try:
            message_bus.publish_events(events)
        except Exception as e:
            # The data is committed; a lost notification is recovered by monitoring.
            logger.error(f"Error publishing events: {e}", exc_info=True)
