"""Admin registration for bookings."""

from __future__ import annotations

from django.contrib import admin

from .models import Booking


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "court",
        "user",
        "status",
        "start_at",
        "end_at",
        "created_at",
    )
    list_filter = ("status", "court__venue")
    search_fields = ("idempotency_key", "user__email", "court__name")
    readonly_fields = (
        "idempotency_key",
        "request_fingerprint",
        "created_at",
        "updated_at",
        "confirmed_at",
        "cancelled_at",
        "completed_at",
    )
