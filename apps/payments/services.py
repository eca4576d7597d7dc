"""Payment services: provider intents and client-side confirmations."""

from __future__ import annotations

import logging

from django.db import transaction  # type: ignore

from shared.domain.outcomes import ErrorKind, Outcome

from . import gateway
from .models import Payment, PaymentTransaction

logger = logging.getLogger(__name__)


def create_intent_for_booking(booking, requester_id: int) -> Outcome[dict]:
    """
    Create (or reuse) the provider payment intent for a pending booking.

    The intent amount is always the stored snapshot, never recomputed.
    """

    if booking.user_id != requester_id:
        return Outcome.fail(ErrorKind.FORBIDDEN, "You can only pay for your own bookings.")

    with transaction.atomic():
        payment = Payment.objects.select_for_update().filter(booking=booking).first()
        if payment is None:
            return Outcome.fail(ErrorKind.NOT_FOUND, "Payment not found.")
        if payment.status != Payment.Status.PENDING or booking.status != booking.Status.PENDING:
            return Outcome.fail(ErrorKind.INVALID_REQUEST, "Booking is not awaiting payment.")

        if payment.provider_reference and payment.metadata.get("client_secret"):
            return Outcome.ok(_intent_body(payment))

        try:
            intent = gateway.create_payment_intent(booking.pk, payment.money)
        except gateway.PaymentGatewayError as e:
            logger.error(f"Could not create payment intent for booking {booking.pk}: {e}")
            return Outcome.fail(ErrorKind.INTERNAL, str(e))

        payment.provider_reference = intent["reference"]
        payment.metadata["client_secret"] = intent["client_secret"]
        payment.save(update_fields=["provider_reference", "metadata", "updated_at"])
        PaymentTransaction.objects.create(
            payment=payment,
            event="intent.created",
            payload={key: value for key, value in intent.items() if key != "client_secret"},
            status=intent.get("status", ""),
        )

    logger.info(f"Payment intent {payment.provider_reference} ready for booking {booking.pk}")
    return Outcome.ok(_intent_body(payment))


def _intent_body(payment: Payment) -> dict:
    return {
        "paymentIntentId": payment.provider_reference,
        "clientSecret": payment.metadata.get("client_secret", ""),
        "amount": payment.amount,
        "currency": payment.currency,
    }


def verified_intent(payment: Payment, reference: str) -> Outcome[dict]:
    """
    Re-read a client-reported payment intent from the provider.

    The intent must be the one created for this payment, and whatever the
    provider reports about amount, currency and booking must match the
    stored snapshot.
    """

    if not payment.provider_reference:
        return Outcome.fail(
            ErrorKind.INVALID_REQUEST, "No payment intent was created for this booking."
        )
    if payment.provider_reference != reference:
        return Outcome.fail(
            ErrorKind.INVALID_REQUEST, "Payment intent does not belong to this booking."
        )

    try:
        intent = gateway.retrieve_payment_intent(reference)
    except gateway.PaymentGatewayError as e:
        return Outcome.fail(ErrorKind.TIMEOUT, str(e))

    mismatches = []
    if intent.get("amount") is not None and intent["amount"] != payment.amount:
        mismatches.append(f"amount {intent['amount']} != {payment.amount}")
    if intent.get("currency") and intent["currency"].upper() != payment.currency:
        mismatches.append(f"currency {intent['currency']} != {payment.currency}")
    if intent.get("booking_id") is not None and str(intent["booking_id"]) != str(payment.booking_id):
        mismatches.append(f"booking {intent['booking_id']} != {payment.booking_id}")
    if mismatches:
        logger.warning(f"Payment intent {reference} rejected for payment {payment.pk}: {', '.join(mismatches)}")
        return Outcome.fail(
            ErrorKind.INVALID_REQUEST, "Payment intent does not match this booking's payment."
        )

    return Outcome.ok(intent)
