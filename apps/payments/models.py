"""Payment models for CourtBook."""

from __future__ import annotations

from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from apps.bookings.domain.lifecycle import PaymentStatus, ensure_payment_transition
from shared.domain.value_objects import Money


class Payment(models.Model):
    """Payment for a booking; the amount is fixed when the booking is reserved."""

    class Status(models.TextChoices):
        PENDING = PaymentStatus.PENDING.value, _("Awaiting payment")
        SUCCEEDED = PaymentStatus.SUCCEEDED.value, _("Paid")
        FAILED = PaymentStatus.FAILED.value, _("Failed")
        REFUNDED = PaymentStatus.REFUNDED.value, _("Refunded")

    class Method(models.TextChoices):
        CARD = "card", _("Card")
        UPI = "upi", _("UPI")
        WALLET = "wallet", _("Wallet")

    booking = models.OneToOneField(
        "bookings.Booking",
        on_delete=models.CASCADE,
        related_name="payment",
    )
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    method = models.CharField(max_length=20, choices=Method.choices, default=Method.CARD)
    amount = models.PositiveIntegerField(help_text=_("Amount in minor currency units"))
    currency = models.CharField(max_length=3, default="INR")
    provider_reference = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text=_("Payment intent id at the provider"),
    )
    receipt_reference = models.CharField(max_length=255, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    refund_confirmed_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Payment")
        verbose_name_plural = _("Payments")
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"Payment {self.booking_id} ({self.status})"

    @property
    def money(self) -> Money:
        return Money(self.amount, self.currency)

    def mark_succeeded(self, provider_reference: str | None = None, receipt: str = "") -> list[str]:
        ensure_payment_transition(self.status, self.Status.SUCCEEDED)
        self.status = self.Status.SUCCEEDED
        if provider_reference:
            self.provider_reference = provider_reference
        if receipt:
            self.receipt_reference = receipt
        self.paid_at = timezone.now()
        return ["status", "provider_reference", "receipt_reference", "paid_at", "updated_at"]

    def mark_failed(self, reason: str | None = None) -> list[str]:
        ensure_payment_transition(self.status, self.Status.FAILED)
        self.status = self.Status.FAILED
        if reason:
            self.metadata["failure_reason"] = reason
        return ["status", "metadata", "updated_at"]

    def mark_refunded(self, reason: str | None = None) -> list[str]:
        ensure_payment_transition(self.status, self.Status.REFUNDED)
        self.status = self.Status.REFUNDED
        if reason:
            self.metadata["refund_reason"] = reason
        self.refunded_at = timezone.now()
        return ["status", "metadata", "refunded_at", "updated_at"]


class PaymentTransaction(models.Model):
    """History of interactions with the payment provider (webhooks, confirmations, refunds)."""

    payment = models.ForeignKey(
        Payment,
        on_delete=models.CASCADE,
        related_name="transactions",
    )
    event = models.CharField(max_length=50)
    payload = models.JSONField()
    status = models.CharField(max_length=20, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Payment transaction")
        verbose_name_plural = _("Payment transactions")
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.event} for payment {self.payment_id}"
