"""Serializers for the booking domain."""

from __future__ import annotations

from datetime import datetime, time

from django.conf import settings  # type: ignore
from django.utils import timezone  # type: ignore
from rest_framework import serializers  # type: ignore

from apps.payments.serializers import PaymentSerializer

from .models import Booking


class ReservationRequestSerializer(serializers.Serializer):
    """Reservation request body: ``{courtId, date, startTime, duration, notes?}``."""

    courtId = serializers.IntegerField(min_value=1)
    date = serializers.DateField()
    startTime = serializers.IntegerField(min_value=0, max_value=23)
    duration = serializers.IntegerField(min_value=1)
    notes = serializers.CharField(required=False, allow_blank=True, default="", max_length=1000)

    def validate_duration(self, value: int) -> int:
        limit = settings.BOOKING_MAX_DURATION_HOURS
        if value > limit:
            raise serializers.ValidationError(f"Duration must be between 1 and {limit} hours.")
        return value

    def validate(self, attrs):  # type: ignore
        start = datetime.combine(
            attrs["date"],
            time(hour=attrs["startTime"]),
            tzinfo=timezone.get_current_timezone(),
        )
        if start < timezone.now():
            raise serializers.ValidationError({"startTime": "Start time cannot be in the past."})
        return attrs


class BookingSerializer(serializers.ModelSerializer):
    """Booking as returned by the API."""

    courtId = serializers.ReadOnlyField(source="court_id")
    userId = serializers.ReadOnlyField(source="user_id")
    startTime = serializers.DateTimeField(source="start_at", read_only=True)
    endTime = serializers.DateTimeField(source="end_at", read_only=True)
    durationHours = serializers.IntegerField(source="duration_hours", read_only=True)
    notes = serializers.CharField(source="note", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    cancelledAt = serializers.DateTimeField(source="cancelled_at", read_only=True)

    class Meta:
        model = Booking
        fields = [
            "id",
            "courtId",
            "userId",
            "startTime",
            "endTime",
            "durationHours",
            "status",
            "notes",
            "createdAt",
            "cancelledAt",
        ]
        read_only_fields = fields


class BookingDetailSerializer(BookingSerializer):
    """Booking with its court and payment."""

    court = serializers.SerializerMethodField()
    payment = PaymentSerializer(read_only=True)

    class Meta(BookingSerializer.Meta):
        fields = BookingSerializer.Meta.fields + ["court", "payment"]
        read_only_fields = fields

    def get_court(self, obj: Booking) -> dict:
        return court_summary(obj.court)


def court_summary(court) -> dict:
    return {
        "id": court.pk,
        "name": court.name,
        "sport": court.sport,
        "openHour": court.open_hour,
        "closeHour": court.close_hour,
        "pricePerHour": court.price_per_hour,
        "currency": court.currency,
        "venue": {
            "id": court.venue_id,
            "name": court.venue.name,
            "city": court.venue.city,
        },
    }


class TimeSlotSerializer(serializers.Serializer):
    hour = serializers.IntegerField()
    time = serializers.CharField(source="label")
    available = serializers.BooleanField()
    isPast = serializers.BooleanField(source="is_past")
    hasConflict = serializers.BooleanField(source="has_conflict")
    price = serializers.SerializerMethodField()

    def get_price(self, obj) -> int:
        return self.context["price"]


class BookedRangeSerializer(serializers.ModelSerializer):
    startTime = serializers.DateTimeField(source="start_at")
    endTime = serializers.DateTimeField(source="end_at")

    class Meta:
        model = Booking
        fields = ["startTime", "endTime", "status"]


class AvailabilityQuerySerializer(serializers.Serializer):
    courtId = serializers.IntegerField(min_value=1)
    date = serializers.DateField()


class PaymentConfirmationSerializer(serializers.Serializer):
    status = serializers.CharField(max_length=32)
    paymentIntentId = serializers.CharField(max_length=255)
