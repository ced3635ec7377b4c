"""Serializers for validating API input and rendering domain models."""

import re

from rest_framework import serializers

from events.domain import LineItem
from events.services.checkout import CheckoutRequest
from events.services.free_booking import FreeBookingRequest

NAME_PATTERN = re.compile(r"^[a-zA-Z\s'-]+$")
# Nigerian mobile numbers, local or international form.
PHONE_PATTERN = re.compile(r"^(\+234|0)[789][01]\d{8}$")
MAX_TICKETS_PER_TYPE = 10


class TicketTypeSerializer(serializers.Serializer):
    """Serializer for TicketType domain model."""

    id = serializers.SerializerMethodField()
    name = serializers.CharField()
    price = serializers.SerializerMethodField()
    capacity = serializers.SerializerMethodField()

    def get_id(self, obj) -> str:
        return str(obj.id)

    def get_price(self, obj) -> int:
        return obj.price.amount

    def get_capacity(self, obj) -> int | None:
        return obj.capacity.value if obj.capacity is not None else None


class EventSerializer(serializers.Serializer):
    """Serializer for Event domain model."""

    id = serializers.SerializerMethodField()
    name = serializers.CharField()
    description = serializers.CharField()
    location = serializers.CharField()
    image_url = serializers.CharField(allow_null=True)
    starts_at = serializers.DateTimeField()
    created_at = serializers.DateTimeField()
    ticket_types = TicketTypeSerializer(many=True)

    def get_id(self, obj) -> str:
        return str(obj.id)


class TicketOrderSerializer(serializers.Serializer):
    ticketTypeId = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1, max_value=MAX_TICKETS_PER_TYPE)
    attendeeName = serializers.CharField(min_length=2, max_length=100)
    attendeeEmail = serializers.EmailField(max_length=255)
    attendeePhone = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate_attendeeName(self, value: str) -> str:
        if not NAME_PATTERN.match(value):
            raise serializers.ValidationError(
                "Name can only contain letters, spaces, hyphens and apostrophes"
            )
        return value

    def validate_attendeeEmail(self, value: str) -> str:
        return value.strip().lower()

    def validate_attendeePhone(self, value: str | None) -> str | None:
        if not value or not value.strip():
            return None
        if not PHONE_PATTERN.match(re.sub(r"\s", "", value)):
            raise serializers.ValidationError("Please enter a valid Nigerian phone number")
        return value.strip()


def _line_items(tickets) -> tuple[LineItem, ...]:
    return tuple(
        LineItem(
            ticket_type_id=str(ticket["ticketTypeId"]),
            quantity=ticket["quantity"],
            attendee_name=ticket["attendeeName"],
            attendee_email=ticket["attendeeEmail"],
            attendee_phone=ticket.get("attendeePhone"),
        )
        for ticket in tickets
    )


class CheckoutRequestSerializer(serializers.Serializer):
    eventId = serializers.UUIDField()
    tickets = TicketOrderSerializer(many=True, allow_empty=False)
    amount = serializers.IntegerField(min_value=0)
    customerEmail = serializers.EmailField(max_length=255)

    def validate_customerEmail(self, value: str) -> str:
        return value.strip().lower()

    def to_checkout_request(self) -> CheckoutRequest:
        data = self.validated_data
        return CheckoutRequest(
            event_id=str(data["eventId"]),
            line_items=_line_items(data["tickets"]),
            amount=data["amount"],
            customer_email=data["customerEmail"],
        )


class FreeBookingRequestSerializer(serializers.Serializer):
    eventId = serializers.UUIDField()
    tickets = TicketOrderSerializer(many=True, allow_empty=False)

    def to_free_booking_request(self) -> FreeBookingRequest:
        data = self.validated_data
        return FreeBookingRequest(
            event_id=str(data["eventId"]),
            line_items=_line_items(data["tickets"]),
        )


def flatten_errors(errors, prefix: str = "") -> list[str]:
    """Turn nested serializer errors into `path: message` strings."""
    if isinstance(errors, dict):
        flat = []
        for key, value in errors.items():
            flat.extend(flatten_errors(value, f"{prefix}.{key}" if prefix else str(key)))
        return flat
    if isinstance(errors, list):
        flat = []
        for index, value in enumerate(errors):
            if isinstance(value, (dict, list)):
                flat.extend(flatten_errors(value, f"{prefix}.{index}" if prefix else str(index)))
            else:
                flat.append(f"{prefix}: {value}" if prefix else str(value))
        return flat
    return [f"{prefix}: {errors}" if prefix else str(errors)]
