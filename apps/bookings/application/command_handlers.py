"""
Booking Command Handlers

These are the use cases for the booking domain.
They orchestrate domain operations within transactions and return an
``Outcome`` instead of raising for expected business rejections.

Commands:
- ReserveCourtCommand: Reserve a court for a whole-hour range
- ApplyPaymentResultCommand: Apply a provider-verified payment status
- CancelBookingCommand: Cancel a booking on the player's request
- CompleteFinishedBookingsCommand: Complete confirmed bookings that have ended
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
import logging

from django.conf import settings
from django.db import DatabaseError, IntegrityError, OperationalError
from django.utils import timezone

from shared.application.uow import DjangoUnitOfWork, TransactionTimeout
from shared.domain.outcomes import ErrorKind, Outcome
from shared.domain.value_objects import TimeRange
from apps.bookings.domain.events import (
    BookingCancelled,
    BookingCompleted,
    BookingConfirmed,
    BookingReserved,
    PaymentRefundRequested,
)
from apps.bookings.domain.lifecycle import (
    CANCELLABLE_STATUSES,
    BookingStatus,
    PaymentStatus,
    within_cancellation_window,
)
from apps.bookings.idempotency import find_replay, fingerprint, resolve_key
from apps.bookings.models import Booking
from apps.bookings.services import _lock_queryset_if_possible, lock_court, overlapping_bookings
from apps.payments.models import Payment, PaymentTransaction

logger = logging.getLogger(__name__)

SLOT_TAKEN_MESSAGE = "Time slot already booked."
TIMEOUT_MESSAGE = "The booking service is busy, please try again."


# ===== Commands =====

@dataclass
class ReserveCourtCommand:
    """
    Command to reserve a court

    This is the primary entry point for creating bookings.
    """
    requester_id: int
    court_id: int
    day: date
    start_hour: int
    duration_hours: int
    note: str = ''
    idempotency_key: str | None = None


@dataclass
class ApplyPaymentResultCommand:
    """Command to apply a payment status reported by the provider"""
    booking_id: int
    status: str
    provider_reference: str = ''
    receipt: str = ''
    source: str = 'webhook'
    payload: dict = field(default_factory=dict)


@dataclass
class CancelBookingCommand:
    """Command to cancel a booking"""
    booking_id: int
    requester_id: int
    reason: str = 'user_request'


@dataclass
class CompleteFinishedBookingsCommand:
    """Command to complete every confirmed booking that has ended"""
    now: datetime | None = None


# ===== Results =====

@dataclass(frozen=True)
class Reservation:
    booking: Booking
    payment: Payment
    replayed: bool = False


@dataclass(frozen=True)
class PaymentResultApplied:
    booking: Booking
    payment: Payment
    changed: bool


# ===== Command Handlers =====

class ReserveCourtHandler:
    """
    Handler for ReserveCourt command

    This implements the critical business logic for creating bookings
    with double booking prevention.

    Strategy (Defense in Depth):
    1. Start database transaction (SERIALIZABLE + timeouts on PostgreSQL,
       BEGIN IMMEDIATE on SQLite)
    2. Replay an earlier request made with the same idempotency key
    3. Lock the Court row with SELECT FOR UPDATE (pessimistic lock)
    4. Reject overlapping PENDING/CONFIRMED bookings
    5. Check venue approval and operating hours
    6. Create Booking and Payment with the price snapshot
    7. Commit transaction, then publish events
    8. PostgreSQL EXCLUDE constraint as final safety net
    """

    def __init__(self, *, timeout=None, max_retries=None, serializable=None):
        self.timeout = timeout if timeout is not None else settings.RESERVATION_TIMEOUT_SECONDS
        self.max_retries = max_retries if max_retries is not None else settings.RESERVATION_MAX_RETRIES
        self.serializable = (
            serializable if serializable is not None else settings.RESERVATION_SERIALIZABLE
        )

    def handle(self, command: ReserveCourtCommand) -> Outcome[Reservation]:
        key = resolve_key(command.idempotency_key, command.requester_id)
        request_fingerprint = fingerprint(command)

        logger.info(
            f"Reserving court {command.court_id} for user {command.requester_id}: "
            f"{command.day} {command.start_hour:02d}:00 +{command.duration_hours}h"
        )

        attempts = 1 + max(self.max_retries, 0)
        for attempt in range(1, attempts + 1):
            try:
                outcome = self._reserve(command, key, request_fingerprint)
            except TransactionTimeout as e:
                logger.warning(f"Reservation on court {command.court_id} rolled back: {e}")
                return Outcome.fail(ErrorKind.TIMEOUT, TIMEOUT_MESSAGE)
            except IntegrityError as e:
                # Either a concurrent request with the same key won, or the
                # exclusion constraint caught an overlap.
                replay = find_replay(key, request_fingerprint)
                if replay is not None:
                    return self._replayed(replay)
                logger.warning(f"Reservation on court {command.court_id} hit a constraint: {e}")
                return Outcome.fail(ErrorKind.CONFLICT, SLOT_TAKEN_MESSAGE)
            except OperationalError as e:
                if attempt < attempts:
                    logger.warning(
                        f"Transient database error reserving court {command.court_id} "
                        f"(attempt {attempt}/{attempts}): {e}"
                    )
                    continue
                logger.error(f"Reservation on court {command.court_id} gave up: {e}")
                return Outcome.fail(ErrorKind.TIMEOUT, TIMEOUT_MESSAGE)

            if outcome.is_ok:
                reservation = outcome.value
                if not reservation.replayed:
                    logger.info(
                        f"Booking {reservation.booking.pk} reserved on court {command.court_id} "
                        f"for {reservation.payment.money}"
                    )
            else:
                logger.info(f"Reservation on court {command.court_id} rejected: {outcome.failure}")
            return outcome

        return Outcome.fail(ErrorKind.TIMEOUT, TIMEOUT_MESSAGE)

    def _reserve(self, command: ReserveCourtCommand, key: str, request_fingerprint: str):
        with DjangoUnitOfWork(serializable=self.serializable, timeout=self.timeout) as uow:
            replay = find_replay(key, request_fingerprint)
            if replay is not None:
                return self._replayed(replay)

            court = lock_court(command.court_id)
            if court is None or not court.is_active:
                return Outcome.fail(ErrorKind.NOT_FOUND, "Court not found.")

            try:
                span = TimeRange.for_slot(
                    command.day,
                    command.start_hour,
                    command.duration_hours,
                    timezone.get_current_timezone(),
                )
            except ValueError as e:
                return Outcome.fail(ErrorKind.INVALID_REQUEST, str(e))

            if overlapping_bookings(court.pk, span).exists():
                return Outcome.fail(ErrorKind.CONFLICT, SLOT_TAKEN_MESSAGE)

            if not court.venue.is_approved:
                return Outcome.fail(ErrorKind.FORBIDDEN, "Venue is not approved for bookings.")

            if not span.within_operating_hours(court.open_hour, court.close_hour):
                return Outcome.fail(
                    ErrorKind.INVALID_REQUEST,
                    f"Court is open from {court.open_hour:02d}:00 to {court.close_hour:02d}:00.",
                )

            uow.check_deadline()

            booking = Booking.objects.create(
                user_id=command.requester_id,
                court=court,
                start_at=span.start,
                end_at=span.end,
                status=Booking.Status.PENDING,
                note=command.note or '',
                idempotency_key=key,
                request_fingerprint=request_fingerprint,
            )
            amount = court.hourly_rate * span.duration_hours
            payment = Payment.objects.create(
                booking=booking,
                amount=amount.amount,
                currency=amount.currency,
            )

            uow.record(BookingReserved(
                aggregate_id=booking.pk,
                booking_id=booking.pk,
                court_id=court.pk,
                user_id=command.requester_id,
                start_at=span.start,
                end_at=span.end,
                amount=amount.amount,
                currency=amount.currency,
            ))

            uow.check_deadline()
            # Transaction commits here automatically (__exit__)

        return Outcome.ok(Reservation(booking=booking, payment=payment))

    @staticmethod
    def _replayed(replay: Outcome) -> Outcome[Reservation]:
        if not replay.is_ok:
            return replay
        booking = replay.value
        logger.info(f"Replaying booking {booking.pk} for idempotency key {booking.idempotency_key}")
        return Outcome.ok(Reservation(booking=booking, payment=booking.payment, replayed=True))


SUCCEEDED_RESULTS = {'succeeded', 'success', 'paid'}
FAILED_RESULTS = {'failed', 'canceled', 'cancelled'}
PENDING_RESULTS = {'pending', 'processing', 'requires_action'}
REFUNDED_RESULTS = {'refunded'}


class ApplyPaymentResultHandler:
    """
    Handler for provider payment results

    succeeded -> payment SUCCEEDED, booking CONFIRMED
    failed/canceled -> payment FAILED, booking CANCELLED
    pending/processing -> nothing changes
    refunded -> provider confirmed a refund

    Results that were already applied are no-ops. A success for a booking
    that was cancelled meanwhile is captured and immediately refunded.
    """

    def handle(self, command: ApplyPaymentResultCommand) -> Outcome[PaymentResultApplied]:
        result = (command.status or '').strip().lower()
        known = SUCCEEDED_RESULTS | FAILED_RESULTS | PENDING_RESULTS | REFUNDED_RESULTS
        if result not in known:
            return Outcome.fail(ErrorKind.INVALID_REQUEST, f"Unknown payment status: {command.status}")

        with DjangoUnitOfWork() as uow:
            booking = _lock_queryset_if_possible(
                Booking.objects.filter(pk=command.booking_id)
            ).first()
            if booking is None:
                return Outcome.fail(ErrorKind.NOT_FOUND, "Booking not found.")
            payment = _lock_queryset_if_possible(
                Payment.objects.filter(booking_id=booking.pk)
            ).first()
            if payment is None:
                return Outcome.fail(ErrorKind.NOT_FOUND, "Payment not found.")

            if (
                command.provider_reference
                and payment.provider_reference
                and payment.provider_reference != command.provider_reference
            ):
                return Outcome.fail(
                    ErrorKind.CONFLICT, "Payment reference does not belong to this booking."
                )
            if (
                command.provider_reference
                and not payment.provider_reference
                and Payment.objects.filter(provider_reference=command.provider_reference)
                .exclude(pk=payment.pk)
                .exists()
            ):
                return Outcome.fail(
                    ErrorKind.CONFLICT, "Payment reference is already used by another booking."
                )

            PaymentTransaction.objects.create(
                payment=payment,
                event=f"{command.source}.{result}",
                payload=command.payload or {
                    'status': result,
                    'provider_reference': command.provider_reference,
                },
                status=result,
            )

            if result in SUCCEEDED_RESULTS:
                changed = self._apply_success(uow, booking, payment, command)
            elif result in FAILED_RESULTS:
                changed = self._apply_failure(uow, booking, payment, result)
            elif result in REFUNDED_RESULTS:
                changed = self._apply_refund(uow, booking, payment)
            else:
                changed = False

        logger.info(
            f"Payment result '{result}' for booking {booking.pk} from {command.source}: "
            f"booking={booking.status} payment={payment.status} changed={changed}"
        )
        return Outcome.ok(PaymentResultApplied(booking=booking, payment=payment, changed=changed))

    def _apply_success(self, uow, booking, payment, command) -> bool:
        if payment.status != Payment.Status.PENDING:
            if payment.status == Payment.Status.FAILED:
                # FAILED is terminal; keep the reference for manual reconciliation.
                payment.metadata['late_success_reference'] = command.provider_reference
                payment.save(update_fields=['metadata', 'updated_at'])
                logger.warning(
                    f"Payment {payment.pk} succeeded after it was marked failed "
                    f"(booking {booking.pk})"
                )
            return False

        payment.save(update_fields=payment.mark_succeeded(
            command.provider_reference or None, command.receipt,
        ))

        if booking.status == Booking.Status.PENDING:
            booking.save(update_fields=booking.transition_to(Booking.Status.CONFIRMED))
            uow.record(BookingConfirmed(
                aggregate_id=booking.pk,
                booking_id=booking.pk,
                payment_id=payment.pk,
                provider_reference=payment.provider_reference or '',
            ))
            return True

        # The booking was cancelled while the payment was in flight.
        payment.save(update_fields=payment.mark_refunded('booking_cancelled'))
        uow.record(PaymentRefundRequested(
            aggregate_id=booking.pk,
            payment_id=payment.pk,
            booking_id=booking.pk,
            reason='booking_cancelled',
        ))
        logger.warning(
            f"Payment {payment.pk} succeeded for {booking.status} booking {booking.pk}; refunding"
        )
        return True

    def _apply_failure(self, uow, booking, payment, result) -> bool:
        changed = False
        if payment.status == Payment.Status.PENDING:
            payment.save(update_fields=payment.mark_failed(f"payment_{result}"))
            changed = True
        if booking.status == Booking.Status.PENDING and payment.status == Payment.Status.FAILED:
            old_status = booking.status
            booking.save(update_fields=booking.transition_to(Booking.Status.CANCELLED))
            uow.record(BookingCancelled(
                aggregate_id=booking.pk,
                booking_id=booking.pk,
                payment_id=payment.pk,
                reason=f"payment_{result}",
                old_status=old_status,
            ))
            changed = True
        return changed

    def _apply_refund(self, uow, booking, payment) -> bool:
        if payment.status == Payment.Status.REFUNDED:
            if payment.refund_confirmed_at:
                return False
            payment.refund_confirmed_at = timezone.now()
            payment.save(update_fields=['refund_confirmed_at', 'updated_at'])
            return True
        if payment.status != Payment.Status.SUCCEEDED:
            return False

        # Refund issued on the provider side without a cancellation here.
        fields = payment.mark_refunded('provider_refund')
        payment.refund_confirmed_at = payment.refunded_at
        payment.save(update_fields=fields + ['refund_confirmed_at'])
        if booking.status in CANCELLABLE_STATUSES:
            old_status = booking.status
            booking.save(update_fields=booking.transition_to(Booking.Status.CANCELLED))
            uow.record(BookingCancelled(
                aggregate_id=booking.pk,
                booking_id=booking.pk,
                payment_id=payment.pk,
                reason='provider_refund',
                old_status=old_status,
                refund_requested=True,
            ))
        return True


class CancelBookingHandler:
    """Handler for cancelling a booking on the player's request"""

    def __init__(self, *, window: timedelta | None = None):
        self.window = window or timedelta(hours=settings.BOOKING_CANCELLATION_WINDOW_HOURS)

    def handle(self, command: CancelBookingCommand, now: datetime | None = None) -> Outcome[Booking]:
        now = now or timezone.now()
        logger.info(f"Cancelling booking {command.booking_id}, reason: {command.reason}")

        with DjangoUnitOfWork() as uow:
            booking = _lock_queryset_if_possible(
                Booking.objects.filter(pk=command.booking_id)
            ).first()
            if booking is None:
                return Outcome.fail(ErrorKind.NOT_FOUND, "Booking not found.")
            if booking.user_id != command.requester_id:
                return Outcome.fail(ErrorKind.FORBIDDEN, "You can only cancel your own bookings.")
            if booking.status not in CANCELLABLE_STATUSES:
                return Outcome.fail(
                    ErrorKind.INVALID_REQUEST, f"Booking is already {booking.status}."
                )
            if not within_cancellation_window(booking.start_at, now, self.window):
                hours = int(self.window.total_seconds() // 3600)
                return Outcome.fail(
                    ErrorKind.INVALID_REQUEST,
                    f"Bookings can only be cancelled more than {hours} hours before the start time.",
                )

            old_status = booking.status
            booking.save(update_fields=booking.transition_to(Booking.Status.CANCELLED, at=now))

            payment = _lock_queryset_if_possible(
                Payment.objects.filter(booking_id=booking.pk)
            ).first()
            refund_requested = False
            if payment is not None and payment.status == PaymentStatus.SUCCEEDED:
                payment.save(update_fields=payment.mark_refunded(command.reason))
                refund_requested = True
                uow.record(PaymentRefundRequested(
                    aggregate_id=booking.pk,
                    payment_id=payment.pk,
                    booking_id=booking.pk,
                    reason=command.reason,
                ))

            uow.record(BookingCancelled(
                aggregate_id=booking.pk,
                booking_id=booking.pk,
                payment_id=payment.pk if payment else None,
                reason=command.reason,
                old_status=old_status,
                refund_requested=refund_requested,
            ))

        logger.info(
            f"Booking {booking.pk} cancelled (was {old_status}, refund={refund_requested})"
        )
        return Outcome.ok(booking)


class CompleteFinishedBookingsHandler:
    """
    Handler for the completion sweep

    Each row is moved with its own conditional update, so a crash mid-sweep
    leaves the remaining rows for the next run.
    """

    def handle(self, command: CompleteFinishedBookingsCommand) -> int:
        now = command.now or timezone.now()
        candidates = list(
            Booking.objects.filter(
                status=BookingStatus.CONFIRMED.value,
                end_at__lt=now,
            ).values_list('pk', flat=True)
        )

        completed = 0
        for booking_id in candidates:
            try:
                with DjangoUnitOfWork() as uow:
                    updated = Booking.objects.filter(
                        pk=booking_id,
                        status=BookingStatus.CONFIRMED.value,
                        end_at__lt=now,
                    ).update(
                        status=BookingStatus.COMPLETED.value,
                        completed_at=now,
                        updated_at=now,
                    )
                    if updated:
                        uow.record(BookingCompleted(aggregate_id=booking_id, booking_id=booking_id))
                completed += updated
            except DatabaseError as e:
                logger.error(f"Error completing booking {booking_id}: {e}", exc_info=True)

        if completed:
            logger.info(f"Completed {completed} finished bookings")
        return completed
