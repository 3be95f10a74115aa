from entitlements.domain.models import (
    ProcessedEventMarker,
    Subscription,
    SubscriptionStatus,
    Ticket,
)
from entitlements.domain.value_objects import SubscriptionId, TicketId, ValidityWindow

__all__ = [
    "Ticket",
    "Subscription",
    "SubscriptionStatus",
    "ProcessedEventMarker",
    "TicketId",
    "SubscriptionId",
    "ValidityWindow",
]
