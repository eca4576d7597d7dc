"""Celery tasks for the payments domain."""

from __future__ import annotations

import logging

from celery import shared_task  # type: ignore

from . import gateway
from .models import Payment, PaymentTransaction

logger = logging.getLogger(__name__)


@shared_task(
    name="payments.request_refund",
    autoretry_for=(gateway.PaymentGatewayError,),
    retry_backoff=True,
    max_retries=5,
)
def request_refund(payment_id: int, reason: str = "") -> dict[str, str]:
    """
    Ask the provider to return the money for a payment marked REFUNDED.

    The provider confirms asynchronously through the webhook, which sets
    ``refund_confirmed_at``.
    """
    try:
        payment = Payment.objects.get(pk=payment_id)
    except Payment.DoesNotExist:
        logger.warning(f"Refund requested for missing payment {payment_id}")
        return {"status": "missing"}

    if payment.status != Payment.Status.REFUNDED:
        logger.warning(f"Refund skipped for payment {payment_id} in status {payment.status}")
        return {"status": "skipped"}
    if payment.refund_confirmed_at or payment.metadata.get("refund_reference"):
        return {"status": "already_requested"}
    if not payment.provider_reference:
        logger.error(f"Payment {payment_id} has no provider reference to refund")
        return {"status": "no_reference"}

    result = gateway.request_refund(payment.provider_reference, payment.money, reason)

    payment.metadata["refund_reference"] = result.get("refund_reference", "")
    payment.save(update_fields=["metadata", "updated_at"])
    PaymentTransaction.objects.create(
        payment=payment,
        event="refund.requested",
        payload=result,
        status=result.get("status", ""),
    )
    logger.info(f"Refund {result.get('refund_reference')} requested for payment {payment_id}")
    return {"status": result.get("status", "pending")}
