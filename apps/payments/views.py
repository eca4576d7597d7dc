"""API views for payment processing.

Players create a provider payment intent for their pending booking; the
provider reports the outcome through the signed webhook. Status changes
always go through the booking command handlers so the booking and its
payment move together in one transaction.
"""

from __future__ import annotations

import json

import structlog  # type: ignore
from django.utils.decorators import method_decorator  # type: ignore
from django.views.decorators.csrf import csrf_exempt  # type: ignore
from rest_framework import permissions, status  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import APIView  # type: ignore

from apps.bookings.application.command_handlers import (
    ApplyPaymentResultCommand,
    ApplyPaymentResultHandler,
)
from apps.bookings.models import Booking
from shared.domain.outcomes import ErrorKind, Failure
from shared.interfaces.http import failure_response

from .gateway import verify_webhook_signature
from .models import Payment
from .serializers import PaymentIntentRequestSerializer
from .services import create_intent_for_booking

logger = structlog.get_logger(__name__)

SIGNATURE_HEADER = "HTTP_X_PAYMENT_SIGNATURE"

WEBHOOK_EVENTS = {
    "payment.succeeded": "succeeded",
    "payment.failed": "failed",
    "payment.canceled": "canceled",
    "payment.refunded": "refunded",
}


class PaymentIntentView(APIView):
    """POST ``{bookingId}`` -> provider payment intent for the booking."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):  # type: ignore
        serializer = PaymentIntentRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        booking = Booking.objects.filter(pk=serializer.validated_data["bookingId"]).first()
        if booking is None:
            return failure_response(Failure(ErrorKind.NOT_FOUND, "Booking not found."))

        outcome = create_intent_for_booking(booking, request.user.id)
        if not outcome.is_ok:
            return failure_response(outcome.failure)
        return Response(outcome.value, status=status.HTTP_201_CREATED)


@method_decorator(csrf_exempt, name="dispatch")
class PaymentWebhookView(APIView):
    """Provider callback; trusted only with a valid HMAC signature."""

    permission_classes = [permissions.AllowAny]
    authentication_classes: list = []

    def post(self, request):  # type: ignore
        body = request.body
        if not verify_webhook_signature(body, request.META.get(SIGNATURE_HEADER)):
            logger.warning("payments.webhook.bad_signature")
            return failure_response(Failure(ErrorKind.INVALID_REQUEST, "Invalid signature."))

        try:
            event = json.loads(body or b"{}")
        except ValueError:
            return failure_response(Failure(ErrorKind.INVALID_REQUEST, "Malformed payload."))

        event_type = event.get("type", "")
        result = WEBHOOK_EVENTS.get(event_type)
        if result is None:
            logger.info("payments.webhook.ignored", event_type=event_type)
            return Response({"received": True})

        data = event.get("data") or {}
        reference = data.get("reference", "")
        booking_id = self._booking_id(data, reference)
        if booking_id is None:
            logger.warning("payments.webhook.unknown_payment", reference=reference)
            return failure_response(Failure(ErrorKind.NOT_FOUND, "Payment not found."))

        outcome = ApplyPaymentResultHandler().handle(
            ApplyPaymentResultCommand(
                booking_id=booking_id,
                status=result,
                provider_reference=reference,
                receipt=data.get("receipt", ""),
                source="webhook",
                payload=event,
            )
        )
        if not outcome.is_ok:
            logger.warning(
                "payments.webhook.rejected",
                booking_id=booking_id,
                event_type=event_type,
                code=outcome.kind.value,
            )
            return failure_response(outcome.failure)

        logger.info(
            "payments.webhook.applied",
            booking_id=booking_id,
            event_type=event_type,
            changed=outcome.value.changed,
        )
        return Response({"received": True})

    @staticmethod
    def _booking_id(data: dict, reference: str) -> int | None:
        if reference:
            payment = Payment.objects.filter(provider_reference=reference).only("booking_id").first()
            if payment is not None:
                return payment.booking_id
        raw = (data.get("metadata") or {}).get("booking_id") or data.get("bookingId")
        try:
            return int(raw) if raw is not None else None
        except (TypeError, ValueError):
            return None
