"""Django ORM models (persistence layer).

These models handle database concerns. Domain logic lives in domain/models.py.
"""

import uuid

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q


class Ticket(models.Model):
    """Persistence model for issued tickets."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event_id = models.UUIDField()
    tier_id = models.UUIDField()
    purchaser_name = models.CharField(max_length=255, blank=True, null=True)
    purchaser_email = models.EmailField(blank=True, null=True)
    is_validated = models.BooleanField(default=False)
    validated_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "tickets"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["event_id"], name="tickets_event_id_idx"),
        ]

    def __str__(self) -> str:
        return f"Ticket {self.id}"


class Subscription(models.Model):
    """Persistence model for purchased subscriptions."""

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        ACTIVE = "active", "Active"
        EXPIRED = "expired", "Expired"
        CANCELLED = "cancelled", "Cancelled"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    subscription_type_id = models.UUIDField()
    purchaser_name = models.CharField(max_length=255, blank=True, null=True)
    purchaser_email = models.EmailField(blank=True, null=True)
    valid_from = models.DateTimeField()
    valid_to = models.DateTimeField()
    gateway_subscription_id = models.CharField(
        max_length=255, unique=True, blank=True, null=True
    )
    status = models.CharField(
        max_length=16, choices=Status.choices, default=Status.PENDING
    )

    class Meta:
        db_table = "subscriptions"
        ordering = ["-valid_from"]
        constraints = [
            models.CheckConstraint(
                condition=Q(valid_from__lte=F("valid_to")),
                name="subscription_window_ordered",
            ),
        ]

    def clean(self) -> None:
        if self.valid_from and self.valid_to and self.valid_from > self.valid_to:
            raise ValidationError({"valid_to": "valid_to must not be before valid_from"})

    def __str__(self) -> str:
        return f"Subscription {self.id} ({self.valid_from:%Y-%m-%d} - {self.valid_to:%Y-%m-%d})"


class ProcessedEvent(models.Model):
    """Idempotency marker for gateway events whose side effects were applied."""

    event_id = models.CharField(max_length=255, primary_key=True)
    type = models.CharField(max_length=255)
    received_at = models.DateTimeField()

    class Meta:
        db_table = "processed_events"
        ordering = ["-received_at"]

    def __str__(self) -> str:
        return f"{self.type} {self.event_id}"
