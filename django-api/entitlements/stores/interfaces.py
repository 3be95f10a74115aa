"""Store interfaces (repository pattern).

Stores must be swappable and return domain models. Every mutation is a
single-row conditional write; stores never hold entitlement state in memory
across calls.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from entitlements.domain import (
    ProcessedEventMarker,
    Subscription,
    SubscriptionId,
    SubscriptionStatus,
    Ticket,
    TicketId,
)


class EntitlementStore(ABC):
    """Interface for ticket, subscription and processed-event persistence.

    Implementations raise StoreUnavailableError when the backing store
    cannot be reached.
    """

    @abstractmethod
    def get_ticket(self, ticket_id: TicketId) -> Ticket | None:
        """Return a ticket by ID, or None if not found."""
        ...

    @abstractmethod
    def mark_ticket_validated(
        self, ticket_id: TicketId, validated_at: datetime
    ) -> Ticket | None:
        """Atomically flip is_validated from false to true.

        Returns the updated ticket only when this call performed the
        transition. Returns None when the ticket is missing or was already
        validated.
        """
        ...

    @abstractmethod
    def get_subscription(self, subscription_id: SubscriptionId) -> Subscription | None:
        """Return a subscription by ID, or None if not found."""
        ...

    @abstractmethod
    def find_subscription_by_gateway_reference(
        self, reference: str
    ) -> Subscription | None:
        """Return the subscription carrying the given gateway reference."""
        ...

    @abstractmethod
    def activate_subscription(self, subscription_id: SubscriptionId) -> bool:
        """Set status to active unless it is already active or cancelled.

        Returns True if this call changed the row.
        """
        ...

    @abstractmethod
    def update_subscription_terms(
        self,
        subscription_id: SubscriptionId,
        status: SubscriptionStatus,
        valid_to: datetime | None,
    ) -> Subscription | None:
        """Overwrite status and, when given, valid_to in one conditional write.

        Cancelled subscriptions are never changed. valid_to is raised to
        valid_from if it would fall before it. Returns the updated
        subscription, or None when the row is missing or cancelled.
        """
        ...

    @abstractmethod
    def record_processed_event(self, marker: ProcessedEventMarker) -> bool:
        """Insert a processed-event marker.

        Returns False if a marker with the same event id already exists.
        """
        ...

    @abstractmethod
    def forget_processed_event(self, event_id: str) -> None:
        """Delete a processed-event marker so the event can be applied again."""
        ...
