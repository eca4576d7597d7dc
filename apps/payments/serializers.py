"""Serializers for the payments domain."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .models import Payment, PaymentTransaction


class PaymentTransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentTransaction
        fields = ["id", "event", "status", "created_at"]
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    """Payment details; the amount is in minor currency units."""

    bookingId = serializers.ReadOnlyField(source="booking_id")
    providerReference = serializers.ReadOnlyField(source="provider_reference")
    receiptReference = serializers.ReadOnlyField(source="receipt_reference")
    paidAt = serializers.DateTimeField(source="paid_at", read_only=True)
    refundedAt = serializers.DateTimeField(source="refunded_at", read_only=True)

    class Meta:
        model = Payment
        fields = [
            "id",
            "bookingId",
            "amount",
            "currency",
            "status",
            "method",
            "providerReference",
            "receiptReference",
            "paidAt",
            "refundedAt",
        ]
        read_only_fields = fields


class PaymentDetailSerializer(PaymentSerializer):
    transactions = PaymentTransactionSerializer(many=True, read_only=True)

    class Meta(PaymentSerializer.Meta):
        fields = PaymentSerializer.Meta.fields + ["transactions"]
        read_only_fields = fields


class PaymentIntentRequestSerializer(serializers.Serializer):
    bookingId = serializers.IntegerField(min_value=1)
