"""URL routing for the payments domain."""

from __future__ import annotations

from django.urls import path  # type: ignore

from .views import PaymentIntentView, PaymentWebhookView

urlpatterns = [
    path("intents/", PaymentIntentView.as_view(), name="payment-intent"),
    path("webhook/", PaymentWebhookView.as_view(), name="payment-webhook"),
]
