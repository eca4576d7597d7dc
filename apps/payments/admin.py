"""Admin registration for payments."""

from __future__ import annotations

from django.contrib import admin

from .models import Payment, PaymentTransaction


class PaymentTransactionInline(admin.TabularInline):
    model = PaymentTransaction
    extra = 0
    readonly_fields = ("event", "status", "payload", "created_at")
    can_delete = False


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "booking", "amount", "currency", "status", "provider_reference", "paid_at")
    list_filter = ("status", "currency", "method")
    search_fields = ("provider_reference", "receipt_reference", "booking__user__email")
    readonly_fields = ("amount", "currency", "paid_at", "refunded_at", "refund_confirmed_at", "created_at", "updated_at")
    inlines = [PaymentTransactionInline]
