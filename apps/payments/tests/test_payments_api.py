"""Integration tests for payment intents, the webhook and the refund task."""

from __future__ import annotations

import json
from unittest import mock

import requests
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.bookings.models import Booking
from apps.bookings.tests.helpers import book, future_day, make_court, make_user, slot
from apps.payments import gateway
from apps.payments.models import Payment, PaymentTransaction
from apps.payments.tasks import request_refund
from shared.domain.value_objects import Money


class PaymentIntentAPITests(APITestCase):
    def setUp(self) -> None:
        self.player = make_user("player")
        self.court = make_court(price=25_000)
        self.booking = book(self.player, self.court, slot(future_day(), 10).start, hours=2)
        self.url = reverse("payment-intent")
        self.client.force_authenticate(self.player)

    def test_intent_uses_the_stored_amount(self) -> None:
        self.court.price_per_hour = 1
        self.court.save()

        response = self.client.post(self.url, {"bookingId": self.booking.pk}, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["amount"], 50_000)
        self.assertTrue(response.data["paymentIntentId"].startswith("pi_"))
        payment = Payment.objects.get(booking=self.booking)
        self.assertEqual(payment.provider_reference, response.data["paymentIntentId"])

    def test_second_request_reuses_the_intent(self) -> None:
        first = self.client.post(self.url, {"bookingId": self.booking.pk}, format="json")
        second = self.client.post(self.url, {"bookingId": self.booking.pk}, format="json")
        self.assertEqual(first.data["paymentIntentId"], second.data["paymentIntentId"])
        self.assertEqual(PaymentTransaction.objects.filter(event="intent.created").count(), 1)

    def test_only_the_owner_of_a_pending_booking_can_pay(self) -> None:
        self.client.force_authenticate(make_user("stranger"))
        response = self.client.post(self.url, {"bookingId": self.booking.pk}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.player)
        Booking.objects.filter(pk=self.booking.pk).update(status=Booking.Status.CANCELLED)
        response = self.client.post(self.url, {"bookingId": self.booking.pk}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(self.url, {"bookingId": 999_999}, format="json")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class PaymentWebhookTests(APITestCase):
    def setUp(self) -> None:
        self.player = make_user("player")
        self.court = make_court()
        self.booking = book(
            self.player, self.court, slot(future_day(), 10).start, provider_reference="pi_hook"
        )
        self.url = reverse("payment-webhook")

    def _deliver(self, event_type: str, reference: str = "pi_hook", signature: str | None = None, **data):
        body = json.dumps({"type": event_type, "data": {"reference": reference, **data}}).encode()
        signature = signature if signature is not None else gateway.compute_signature(body)
        return self.client.post(
            self.url,
            data=body,
            content_type="application/json",
            HTTP_X_PAYMENT_SIGNATURE=signature,
        )

    def test_bad_or_missing_signature_is_rejected(self) -> None:
        for signature in ("sha256=deadbeef", ""):
            response = self._deliver("payment.succeeded", signature=signature)
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.Status.PENDING)

    def test_succeeded_confirms_booking(self) -> None:
        response = self._deliver("payment.succeeded", receipt="ch_42")

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.Status.CONFIRMED)
        payment = self.booking.payment
        self.assertEqual(payment.status, Payment.Status.SUCCEEDED)
        self.assertEqual(payment.receipt_reference, "ch_42")
        self.assertTrue(PaymentTransaction.objects.filter(event="webhook.succeeded").exists())

    def test_redelivery_is_harmless(self) -> None:
        self._deliver("payment.succeeded")
        response = self._deliver("payment.succeeded")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Booking.objects.get(pk=self.booking.pk).status, Booking.Status.CONFIRMED)

    def test_failed_cancels_booking(self) -> None:
        self._deliver("payment.failed")
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.Status.CANCELLED)
        self.assertEqual(self.booking.payment.status, Payment.Status.FAILED)

    def test_booking_can_be_found_from_metadata(self) -> None:
        Payment.objects.filter(booking=self.booking).update(provider_reference=None)
        response = self._deliver(
            "payment.succeeded", reference="pi_new", metadata={"booking_id": str(self.booking.pk)}
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Payment.objects.get(booking=self.booking).provider_reference, "pi_new")

    def test_unknown_payment_is_404_and_unknown_event_is_ignored(self) -> None:
        self.assertEqual(self._deliver("payment.succeeded", reference="pi_ghost").status_code, 404)
        response = self._deliver("customer.created")
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_refund_confirmation(self) -> None:
        Booking.objects.filter(pk=self.booking.pk).update(status=Booking.Status.CANCELLED)
        Payment.objects.filter(booking=self.booking).update(status=Payment.Status.REFUNDED)

        self._deliver("payment.refunded")

        self.assertIsNotNone(Payment.objects.get(booking=self.booking).refund_confirmed_at)

    @override_settings(PAYMENT_WEBHOOK_SECRET="")
    def test_missing_secret_rejects_everything(self) -> None:
        body = b"{}"
        self.assertFalse(gateway.verify_webhook_signature(body, gateway.compute_signature(body, "x")))


class RefundTaskTests(TestCase):
    def setUp(self) -> None:
        self.player = make_user("player")
        self.court = make_court()
        self.booking = book(
            self.player,
            self.court,
            slot(future_day(), 10).start,
            status=Booking.Status.CANCELLED,
            payment_status=Payment.Status.REFUNDED,
            provider_reference="pi_refund",
        )
        self.payment = self.booking.payment

    def test_requests_refund_once(self) -> None:
        self.assertEqual(request_refund(self.payment.pk, "user_request"), {"status": "pending"})
        self.payment.refresh_from_db()
        self.assertTrue(self.payment.metadata["refund_reference"].startswith("re_"))
        self.assertEqual(request_refund(self.payment.pk), {"status": "already_requested"})

    def test_skips_payments_that_are_not_refunded(self) -> None:
        Payment.objects.filter(pk=self.payment.pk).update(status=Payment.Status.SUCCEEDED)
        self.assertEqual(request_refund(self.payment.pk), {"status": "skipped"})
        self.assertEqual(request_refund(424242), {"status": "missing"})


@override_settings(PAYMENT_PROVIDER_API_KEY="sk_live", DEBUG=False)
class GatewayTests(TestCase):
    def _response(self, payload: dict) -> mock.Mock:
        response = mock.Mock()
        response.json.return_value = payload
        response.raise_for_status.return_value = None
        return response

    def test_create_intent_calls_provider(self) -> None:
        with mock.patch("apps.payments.gateway.requests.request") as call:
            call.return_value = self._response({"id": "pi_real", "client_secret": "sec", "status": "requires_payment_method"})
            intent = gateway.create_payment_intent(7, Money(90_000, "INR"))

        self.assertEqual(intent["reference"], "pi_real")
        method, url = call.call_args.args
        self.assertEqual(method, "POST")
        self.assertTrue(url.endswith("/payment_intents"))
        self.assertEqual(call.call_args.kwargs["json"]["amount"], 90_000)
        self.assertEqual(call.call_args.kwargs["headers"]["Authorization"], "Bearer sk_live")

    def test_network_errors_become_gateway_errors(self) -> None:
        with mock.patch(
            "apps.payments.gateway.requests.request",
            side_effect=requests.exceptions.ConnectionError("down"),
        ):
            with self.assertRaises(gateway.PaymentGatewayError):
                gateway.retrieve_payment_intent("pi_real")
