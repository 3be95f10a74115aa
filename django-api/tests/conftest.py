"""Pytest configuration and shared fixtures."""

import hashlib
import hmac
import json
import threading
import time
import uuid
from dataclasses import replace
from datetime import UTC, datetime

import pytest
from rest_framework.test import APIClient

from entitlements.domain import (
    ProcessedEventMarker,
    Subscription,
    SubscriptionId,
    SubscriptionStatus,
    Ticket,
    TicketId,
    ValidityWindow,
)
from entitlements.domain.errors import StoreUnavailableError
from entitlements.services.notifications import NotificationDispatcher, NotificationKind
from entitlements.stores.interfaces import EntitlementStore

WEBHOOK_SECRET = "whsec_test_secret"
NOW = datetime(2024, 1, 15, 12, 0, tzinfo=UTC)


class InMemoryEntitlementStore(EntitlementStore):
    """Store double with the same compare-and-set semantics as the database.

    The lock stands in for the row-level atomicity of the relational store.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.tickets: dict[uuid.UUID, Ticket] = {}
        self.subscriptions: dict[uuid.UUID, Subscription] = {}
        self.markers: dict[str, ProcessedEventMarker] = {}
        self.failing: set[str] = set()

    def add_ticket(self, **overrides) -> Ticket:
        ticket = Ticket(
            id=TicketId(value=uuid.uuid4()),
            event_id=uuid.uuid4(),
            tier_id=uuid.uuid4(),
            purchaser_name="Jonas",
            purchaser_email="jonas@example.com",
            is_validated=False,
            validated_at=None,
            created_at=NOW,
        )
        ticket = replace(ticket, **overrides)
        self.tickets[ticket.id.value] = ticket
        return ticket

    def add_subscription(self, **overrides) -> Subscription:
        subscription = Subscription(
            id=SubscriptionId(value=uuid.uuid4()),
            subscription_type_id=uuid.uuid4(),
            purchaser_name="Ona",
            purchaser_email="ona@example.com",
            window=ValidityWindow(
                valid_from=datetime(2024, 1, 1, tzinfo=UTC),
                valid_to=datetime(2024, 1, 31, tzinfo=UTC),
            ),
            gateway_subscription_id="sub_123",
            status=SubscriptionStatus.PENDING,
        )
        subscription = replace(subscription, **overrides)
        self.subscriptions[subscription.id.value] = subscription
        return subscription

    def _check(self, operation: str) -> None:
        if operation in self.failing:
            raise StoreUnavailableError(operation)

    def get_ticket(self, ticket_id):
        self._check("get_ticket")
        return self.tickets.get(ticket_id.value)

    def mark_ticket_validated(self, ticket_id, validated_at):
        self._check("mark_ticket_validated")
        with self._lock:
            ticket = self.tickets.get(ticket_id.value)
            if ticket is None or ticket.is_validated:
                return None
            ticket = replace(ticket, is_validated=True, validated_at=validated_at)
            self.tickets[ticket_id.value] = ticket
            return ticket

    def get_subscription(self, subscription_id):
        self._check("get_subscription")
        return self.subscriptions.get(subscription_id.value)

    def find_subscription_by_gateway_reference(self, reference):
        self._check("find_subscription_by_gateway_reference")
        for subscription in self.subscriptions.values():
            if subscription.gateway_subscription_id == reference:
                return subscription
        return None

    def activate_subscription(self, subscription_id):
        self._check("activate_subscription")
        with self._lock:
            subscription = self.subscriptions.get(subscription_id.value)
            if subscription is None or subscription.status in (
                SubscriptionStatus.ACTIVE,
                SubscriptionStatus.CANCELLED,
            ):
                return False
            self.subscriptions[subscription_id.value] = replace(
                subscription, status=SubscriptionStatus.ACTIVE
            )
            return True

    def update_subscription_terms(self, subscription_id, status, valid_to):
        self._check("update_subscription_terms")
        with self._lock:
            subscription = self.subscriptions.get(subscription_id.value)
            if subscription is None or subscription.status is SubscriptionStatus.CANCELLED:
                return None
            window = subscription.window
            if valid_to is not None:
                window = ValidityWindow(
                    valid_from=window.valid_from,
                    valid_to=max(window.valid_from, valid_to),
                )
            subscription = replace(subscription, status=status, window=window)
            self.subscriptions[subscription_id.value] = subscription
            return subscription

    def record_processed_event(self, marker):
        self._check("record_processed_event")
        with self._lock:
            if marker.event_id in self.markers:
                return False
            self.markers[marker.event_id] = marker
            return True

    def forget_processed_event(self, event_id):
        self._check("forget_processed_event")
        with self._lock:
            self.markers.pop(event_id, None)


class RecordingNotifier(NotificationDispatcher):
    """Collects every notification it is asked to send."""

    def __init__(self) -> None:
        self.sent: list[tuple[NotificationKind, str]] = []

    def notify(self, kind: NotificationKind, entity_id: str) -> None:
        self.sent.append((kind, entity_id))


class FailingNotifier(NotificationDispatcher):
    """Notifier whose delivery always fails."""

    def notify(self, kind: NotificationKind, entity_id: str) -> None:
        raise ConnectionError("smtp server unreachable")


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header value for the payload."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload}".encode()
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def checkout_completed_event(
    event_id: str = "evt_123",
    subscription: str | None = "sub_123",
    session_id: str = "cs_test_1",
    mode: str = "subscription",
) -> str:
    return json.dumps(
        {
            "id": event_id,
            "type": "checkout.session.completed",
            "data": {
                "object": {
                    "id": session_id,
                    "object": "checkout.session",
                    "mode": mode,
                    "subscription": subscription,
                    "customer_details": {"email": "ona@example.com"},
                }
            },
        }
    )


def subscription_event(
    event_type: str,
    event_id: str = "evt_sub",
    subscription: str = "sub_123",
    status: str | None = "active",
    current_period_end: int | None = None,
) -> str:
    obj = {"id": subscription, "object": "subscription"}
    if status is not None:
        obj["status"] = status
    if current_period_end is not None:
        obj["current_period_end"] = current_period_end
    return json.dumps({"id": event_id, "type": event_type, "data": {"object": obj}})


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


@pytest.fixture
def memory_store() -> InMemoryEntitlementStore:
    return InMemoryEntitlementStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def clock():
    return lambda: NOW
