"""
Payment provider gateway.

Thin client over the provider's REST API: payment intents, status lookups
and refunds. Without an API key (or with DEBUG on) every call is emulated
locally so the booking flow can be exercised end to end.
"""

import hashlib
import hmac
import logging
import uuid

import requests
from django.conf import settings
from django.utils import timezone

from shared.domain.value_objects import Money

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30
SIGNATURE_PREFIX = "sha256="


class PaymentGatewayError(Exception):
    """Raised when the provider cannot be reached or rejects a request."""

    pass


def _api_key() -> str:
    return getattr(settings, "PAYMENT_PROVIDER_API_KEY", "")


def _base_url() -> str:
    return getattr(settings, "PAYMENT_PROVIDER_BASE_URL", "https://api.payments.example/v1/").rstrip("/") + "/"


def is_emulated() -> bool:
    return settings.DEBUG or not _api_key()


def _headers() -> dict:
    return {
        "Authorization": f"Bearer {_api_key()}",
        "Content-Type": "application/json",
        "Accept": "application/json",
    }


def _call(method: str, path: str, **kwargs) -> dict:
    try:
        response = requests.request(
            method,
            f"{_base_url()}{path}",
            headers=_headers(),
            timeout=REQUEST_TIMEOUT,
            **kwargs,
        )
        response.raise_for_status()
        return response.json()
    except requests.exceptions.RequestException as e:
        logger.error(f"Payment provider request {method} {path} failed: {e}")
        raise PaymentGatewayError(f"Payment provider unavailable: {e}") from e
    except ValueError as e:
        logger.error(f"Payment provider returned invalid JSON for {method} {path}: {e}")
        raise PaymentGatewayError("Payment provider returned an invalid response") from e


def create_payment_intent(booking_id: int, amount: Money, description: str = "") -> dict:
    """
    Create a payment intent for a booking.

    Returns ``{"reference", "client_secret", "status", "amount", "currency"}``
    with the amount in minor units.
    """
    logger.info(f"Creating payment intent for booking {booking_id}: {amount}")

    if is_emulated():
        reference = f"pi_{uuid.uuid4().hex[:24]}"
        logger.warning(f"Emulating payment intent {reference} (no provider API key)")
        return {
            "reference": reference,
            "client_secret": f"{reference}_secret_{uuid.uuid4().hex[:12]}",
            "status": "pending",
            "amount": amount.amount,
            "currency": amount.currency,
        }

    result = _call(
        "POST",
        "payment_intents",
        json={
            "amount": amount.amount,
            "currency": amount.currency.lower(),
            "description": description or f"Court booking #{booking_id}",
            "metadata": {"booking_id": str(booking_id)},
            "idempotency_key": f"booking-{booking_id}",
        },
    )
    return {
        "reference": result.get("id"),
        "client_secret": result.get("client_secret", ""),
        "status": result.get("status", "pending"),
        "amount": result.get("amount", amount.amount),
        "currency": (result.get("currency") or amount.currency).upper(),
    }


def retrieve_payment_intent(reference: str) -> dict:
    """
    Fetch the provider-side status of a payment intent.

    Returns ``{"reference", "status", "receipt", "amount", "currency", "booking_id"}``;
    amount, currency and booking_id are None when the provider omits them.
    """
    logger.info(f"Checking payment intent status: {reference}")

    if is_emulated():
        return {
            "reference": reference,
            "status": "succeeded",
            "receipt": f"rcpt_{reference[-12:]}",
            "amount": None,
            "currency": None,
            "booking_id": None,
        }

    result = _call("GET", f"payment_intents/{reference}")
    return {
        "reference": result.get("id", reference),
        "status": result.get("status", ""),
        "receipt": result.get("latest_charge") or result.get("receipt", ""),
        "amount": result.get("amount"),
        "currency": (result.get("currency") or "").upper() or None,
        "booking_id": (result.get("metadata") or {}).get("booking_id"),
    }


def request_refund(reference: str, amount: Money, reason: str = "") -> dict:
    """Ask the provider to refund a captured payment in full."""
    logger.info(f"Requesting refund of {amount} for {reference}, reason: {reason}")

    if is_emulated():
        return {
            "refund_reference": f"re_{uuid.uuid4().hex[:24]}",
            "status": "pending",
            "requested_at": timezone.now().isoformat(),
        }

    result = _call(
        "POST",
        "refunds",
        json={
            "payment_intent": reference,
            "amount": amount.amount,
            "reason": reason or "requested_by_customer",
        },
    )
    return {
        "refund_reference": result.get("id", ""),
        "status": result.get("status", "pending"),
        "requested_at": timezone.now().isoformat(),
    }


def compute_signature(body: bytes, secret: str | None = None) -> str:
    secret = secret if secret is not None else getattr(settings, "PAYMENT_WEBHOOK_SECRET", "")
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_webhook_signature(body: bytes, signature: str | None) -> bool:
    """
    Check the ``X-Payment-Signature`` header against the raw request body.

    The header carries ``sha256=<hex HMAC of the body>`` keyed with
    ``PAYMENT_WEBHOOK_SECRET``. A missing secret rejects every delivery.
    """
    secret = getattr(settings, "PAYMENT_WEBHOOK_SECRET", "")
    if not secret or not signature:
        return False
    return hmac.compare_digest(compute_signature(body, secret), signature.strip())
