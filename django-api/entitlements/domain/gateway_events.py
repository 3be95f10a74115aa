"""Typed payment-gateway events.

Webhook bodies are parsed into a discriminated union over the event kinds
the engine understands. Anything else becomes an UnhandledGatewayEvent.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Self

from entitlements.domain.errors import InvalidEventPayloadError
from entitlements.domain.models import SubscriptionStatus

CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"
SUBSCRIPTION_MODE = "subscription"

# Any gateway status not listed here maps to pending.
GATEWAY_STATUSES = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.ACTIVE,
    "canceled": SubscriptionStatus.CANCELLED,
    "incomplete_expired": SubscriptionStatus.EXPIRED,
}


@dataclass(frozen=True)
class CheckoutSessionCompleted:
    """A checkout session finished and was paid."""

    event_id: str
    type: str
    session_id: str
    mode: str | None
    subscription_reference: str | None
    customer_email: str | None

    @property
    def has_subscription_intent(self) -> bool:
        return self.mode == SUBSCRIPTION_MODE

    @property
    def references(self) -> tuple[str, ...]:
        """Gateway references to try, most specific first."""
        refs = (self.subscription_reference, self.session_id)
        return tuple(ref for ref in refs if ref)

    @classmethod
    def from_object(cls, event_id: str, event_type: str, obj: Mapping[str, Any]) -> Self:
        session_id = obj.get("id")
        if not isinstance(session_id, str) or not session_id:
            raise InvalidEventPayloadError("checkout session has no id")
        customer = obj.get("customer_details") or {}
        return cls(
            event_id=event_id,
            type=event_type,
            session_id=session_id,
            mode=obj.get("mode"),
            subscription_reference=_reference(obj.get("subscription")),
            customer_email=customer.get("email") if isinstance(customer, Mapping) else None,
        )


@dataclass(frozen=True)
class SubscriptionUpdated:
    """The gateway changed a subscription's status or billing period."""

    event_id: str
    type: str
    subscription_reference: str
    gateway_status: str | None
    current_period_end: datetime | None

    @property
    def lifecycle_status(self) -> SubscriptionStatus:
        return GATEWAY_STATUSES.get(self.gateway_status or "", SubscriptionStatus.PENDING)

    @classmethod
    def from_object(cls, event_id: str, event_type: str, obj: Mapping[str, Any]) -> Self:
        status = obj.get("status")
        return cls(
            event_id=event_id,
            type=event_type,
            subscription_reference=_subscription_id(obj),
            gateway_status=status if isinstance(status, str) else None,
            current_period_end=_period_end(obj),
        )


@dataclass(frozen=True)
class SubscriptionDeleted:
    """The gateway cancelled a subscription."""

    event_id: str
    type: str
    subscription_reference: str

    @classmethod
    def from_object(cls, event_id: str, event_type: str, obj: Mapping[str, Any]) -> Self:
        return cls(
            event_id=event_id,
            type=event_type,
            subscription_reference=_subscription_id(obj),
        )


@dataclass(frozen=True)
class UnhandledGatewayEvent:
    """Any event kind the engine does not act upon."""

    event_id: str
    type: str


GatewayEvent = (
    CheckoutSessionCompleted | SubscriptionUpdated | SubscriptionDeleted | UnhandledGatewayEvent
)

_HANDLED_KINDS = {
    CHECKOUT_SESSION_COMPLETED: CheckoutSessionCompleted,
    SUBSCRIPTION_UPDATED: SubscriptionUpdated,
    SUBSCRIPTION_DELETED: SubscriptionDeleted,
}


def parse_gateway_event(data: Any) -> GatewayEvent:
    """Build a typed event from a decoded webhook body.

    Raises:
        InvalidEventPayloadError: If the body lacks an event id, type or data object.
    """
    if not isinstance(data, Mapping):
        raise InvalidEventPayloadError("event body is not an object")

    event_id = data.get("id")
    event_type = data.get("type")
    if not isinstance(event_id, str) or not event_id:
        raise InvalidEventPayloadError("event has no id")
    if not isinstance(event_type, str) or not event_type:
        raise InvalidEventPayloadError("event has no type")

    kind = _HANDLED_KINDS.get(event_type)
    if kind is None:
        return UnhandledGatewayEvent(event_id=event_id, type=event_type)

    envelope = data.get("data")
    obj = envelope.get("object") if isinstance(envelope, Mapping) else None
    if not isinstance(obj, Mapping):
        raise InvalidEventPayloadError("event has no data object")
    return kind.from_object(event_id, event_type, obj)


def _reference(value: Any) -> str | None:
    # Expanded objects carry the reference in their own id.
    if isinstance(value, Mapping):
        value = value.get("id")
    if isinstance(value, str) and value:
        return value
    return None


def _subscription_id(obj: Mapping[str, Any]) -> str:
    reference = _reference(obj.get("id"))
    if reference is None:
        raise InvalidEventPayloadError("subscription has no id")
    return reference


def _period_end(obj: Mapping[str, Any]) -> datetime | None:
    value = obj.get("current_period_end")
    if value is None:
        # Newer API versions report the period on each subscription item.
        items = obj.get("items")
        entries = items.get("data") if isinstance(items, Mapping) else None
        if isinstance(entries, list) and entries and isinstance(entries[0], Mapping):
            value = entries[0].get("current_period_end")
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidEventPayloadError("current_period_end is not a timestamp")
    return datetime.fromtimestamp(value, tz=UTC)
