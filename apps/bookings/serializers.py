"""Serializers for the booking API.

Input serializers only check shapes and types; every business rule is
enforced by the booking core and reported through its error payload.
"""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from apps.finances.models import Payment

from .domain.entities import BookingStatus
from .models import Booking, BookingHistory


class BookingSerializer(serializers.ModelSerializer):
    balance = serializers.SerializerMethodField()
    room_name = serializers.CharField(source="room.name", read_only=True)
    guest_name = serializers.CharField(source="guest.get_full_name", read_only=True)

    class Meta:
        model = Booking
        fields = [
            "id",
            "booking_number",
            "room",
            "room_name",
            "guest",
            "guest_name",
            "rate",
            "check_in",
            "check_out",
            "nights",
            "adults",
            "children",
            "total_amount",
            "paid_amount",
            "balance",
            "status",
            "source",
            "source_reference",
            "notes",
            "cancelled_at",
            "cancel_reason",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_balance(self, obj: Booking) -> int:
        return obj.get_balance()


class BookingHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = BookingHistory
        fields = ["id", "action", "old_value", "new_value", "created_at"]
        read_only_fields = fields


class BookingCreateSerializer(serializers.Serializer):
    room_id = serializers.IntegerField(min_value=1)
    guest_id = serializers.IntegerField(min_value=1)
    check_in = serializers.DateField()
    check_out = serializers.DateField()
    adults = serializers.IntegerField(min_value=1, default=1)
    children = serializers.IntegerField(min_value=0, default=0)
    source = serializers.ChoiceField(choices=Booking.Source.choices, default=Booking.Source.DIRECT)
    source_reference = serializers.CharField(max_length=100, required=False, allow_blank=True)
    total_amount = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    rate_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class BookingUpdateSerializer(serializers.Serializer):
    room_id = serializers.IntegerField(min_value=1, required=False)
    guest_id = serializers.IntegerField(min_value=1, required=False)
    check_in = serializers.DateField(required=False)
    check_out = serializers.DateField(required=False)
    adults = serializers.IntegerField(min_value=1, required=False)
    children = serializers.IntegerField(min_value=0, required=False)
    source = serializers.ChoiceField(choices=Booking.Source.choices, required=False)
    source_reference = serializers.CharField(max_length=100, required=False, allow_blank=True)
    total_amount = serializers.IntegerField(min_value=0, required=False)
    rate_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):  # type: ignore
        if not attrs:
            raise serializers.ValidationError("Nothing to update.")
        return attrs


class TransitionSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=BookingStatus.choices())
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class PaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = ["id", "booking", "amount", "method", "reference", "notes", "paid_at", "created_at"]
        read_only_fields = fields


class PaymentCreateSerializer(serializers.Serializer):
    amount = serializers.IntegerField()
    method = serializers.ChoiceField(choices=Payment.Method.choices)
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True)
    notes = serializers.CharField(max_length=255, required=False, allow_blank=True)

    def validate_amount(self, value: int) -> int:
        if value == 0:
            raise serializers.ValidationError("Amount cannot be zero.")
        return value


class StayQuerySerializer(serializers.Serializer):
    room_id = serializers.IntegerField(min_value=1)
    check_in = serializers.DateField()
    check_out = serializers.DateField()


class AvailabilityQuerySerializer(StayQuerySerializer):
    exclude_booking_id = serializers.IntegerField(min_value=1, required=False)


class PriceQuerySerializer(StayQuerySerializer):
    rate_id = serializers.IntegerField(min_value=1, required=False)
