"""Django ORM models (persistence layer).

These models handle database concerns. Domain logic lives in domain/models.py.
"""

import uuid

from django.db import models


class Event(models.Model):
    """Persistence model for events."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    description = models.TextField()
    location = models.CharField(max_length=255)
    image_url = models.URLField(max_length=500, blank=True, null=True)
    starts_at = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["-created_at"], name="event_created_idx"),
        ]

    def __str__(self) -> str:
        return self.name


class TicketType(models.Model):
    """Persistence model for ticket types.

    A null capacity means the ticket type is unlimited.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event = models.ForeignKey(
        Event, on_delete=models.CASCADE, related_name="ticket_types"
    )
    name = models.CharField(max_length=100)
    price = models.PositiveIntegerField(help_text="Unit price in kobo")
    capacity = models.PositiveIntegerField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["event"], name="ticket_type_event_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.name} - {self.price}"


class Payment(models.Model):
    """Persistence model for one checkout attempt."""

    STATUS_PENDING = "PENDING"
    STATUS_COMPLETED = "COMPLETED"
    STATUS_FAILED = "FAILED"
    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_FAILED, "Failed"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    reference = models.CharField(max_length=100, unique=True)
    amount = models.PositiveIntegerField(help_text="Amount payable in kobo")
    platform_fee = models.PositiveIntegerField()
    organizer_amount = models.PositiveIntegerField()
    currency = models.CharField(max_length=10, default="NGN")
    customer_email = models.EmailField()
    event = models.ForeignKey(
        Event, on_delete=models.PROTECT, related_name="payments"
    )
    status = models.CharField(
        max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING
    )
    failure_reason = models.CharField(max_length=32, blank=True, null=True)
    metadata = models.JSONField()
    gateway_data = models.JSONField(blank=True, null=True)
    paid_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["event", "status"], name="payment_event_status_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.reference} ({self.status})"


class Ticket(models.Model):
    """Persistence model for a minted ticket (one row per unit)."""

    STATUS_ACTIVE = "ACTIVE"
    STATUS_USED = "USED"
    STATUS_REFUNDED = "REFUNDED"
    STATUS_CHOICES = [
        (STATUS_ACTIVE, "Active"),
        (STATUS_USED, "Used"),
        (STATUS_REFUNDED, "Refunded"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    confirmation_code = models.CharField(max_length=16, unique=True)
    ticket_type = models.ForeignKey(
        TicketType, on_delete=models.PROTECT, related_name="tickets"
    )
    payment = models.ForeignKey(
        Payment,
        on_delete=models.PROTECT,
        related_name="tickets",
        blank=True,
        null=True,
    )
    event = models.ForeignKey(Event, on_delete=models.PROTECT, related_name="tickets")
    attendee_name = models.CharField(max_length=100)
    attendee_email = models.EmailField()
    attendee_phone = models.CharField(max_length=20, blank=True, null=True)
    price = models.PositiveIntegerField()
    status = models.CharField(
        max_length=10, choices=STATUS_CHOICES, default=STATUS_ACTIVE
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["ticket_type", "status"], name="ticket_type_status_idx"),
        ]

    def __str__(self) -> str:
        return self.confirmation_code
