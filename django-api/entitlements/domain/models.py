"""Domain models representing persisted entitlement state.

These are pure domain objects with no API input rules.
Django ORM models are in entitlements/models.py (persistence layer).
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from entitlements.domain.value_objects import SubscriptionId, TicketId, ValidityWindow


class SubscriptionStatus(Enum):
    """Cached lifecycle status stored alongside a subscription."""

    PENDING = "pending"
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Ticket:
    """Domain representation of a single-use access ticket."""

    id: TicketId
    event_id: UUID
    tier_id: UUID
    purchaser_name: str | None
    purchaser_email: str | None
    is_validated: bool
    validated_at: datetime | None
    created_at: datetime


@dataclass(frozen=True)
class Subscription:
    """Domain representation of a time-bounded subscription."""

    id: SubscriptionId
    subscription_type_id: UUID
    purchaser_name: str | None
    purchaser_email: str | None
    window: ValidityWindow
    gateway_subscription_id: str | None
    status: SubscriptionStatus

    @property
    def valid_from(self) -> datetime:
        return self.window.valid_from

    @property
    def valid_to(self) -> datetime:
        return self.window.valid_to


@dataclass(frozen=True)
class ProcessedEventMarker:
    """Record that a gateway event's side effects were already applied."""

    event_id: str
    type: str
    received_at: datetime
