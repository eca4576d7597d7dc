"""Admin registrations for venues and courts."""

from __future__ import annotations

from django.contrib import admin

from .models import Court, Venue


class CourtInline(admin.TabularInline):
    model = Court
    extra = 0
    fields = ("name", "sport", "open_hour", "close_hour", "price_per_hour", "currency", "is_active")


@admin.register(Venue)
class VenueAdmin(admin.ModelAdmin):
    list_display = ("name", "city", "owner", "status", "created_at")
    list_filter = ("status", "city")
    search_fields = ("name", "city", "owner__email")
    inlines = [CourtInline]
    actions = ["approve", "reject"]

    @admin.action(description="Approve selected venues")
    def approve(self, request, queryset):
        updated = queryset.update(status=Venue.Status.APPROVED)
        self.message_user(request, f"{updated} venue(s) approved.")

    @admin.action(description="Reject selected venues")
    def reject(self, request, queryset):
        updated = queryset.update(status=Venue.Status.REJECTED)
        self.message_user(request, f"{updated} venue(s) rejected.")


@admin.register(Court)
class CourtAdmin(admin.ModelAdmin):
    list_display = ("name", "venue", "sport", "open_hour", "close_hour", "price_per_hour", "is_active")
    list_filter = ("sport", "is_active")
    search_fields = ("name", "venue__name")
