"""Closed result types returned by the entitlement services.

Each operation returns exactly one variant of its union so that callers
handle every outcome explicitly. None of these are errors.
"""

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar

from entitlements.domain.models import Subscription, Ticket
from entitlements.domain.value_objects import TicketId


@dataclass(frozen=True)
class Redeemed:
    """This call performed the ticket's unused -> used transition."""

    outcome: ClassVar[str] = "redeemed"

    ticket: Ticket


@dataclass(frozen=True)
class AlreadyRedeemed:
    """The ticket had already been redeemed by an earlier call."""

    outcome: ClassVar[str] = "already_used"

    ticket: Ticket


@dataclass(frozen=True)
class TicketNotFound:
    """No ticket exists with the requested ID."""

    outcome: ClassVar[str] = "not_found"

    ticket_id: TicketId


RedemptionResult = Redeemed | AlreadyRedeemed | TicketNotFound


class WindowStatus(Enum):
    """Validity of a subscription window at a given instant."""

    ACTIVE = "active"
    EXPIRED = "expired"
    NOT_YET_VALID = "pending"

    @property
    def public_status(self) -> str:
        return self.value


@dataclass(frozen=True)
class SubscriptionCheck:
    """A subscription together with its computed window status."""

    subscription: Subscription
    status: WindowStatus
    message: str


@dataclass(frozen=True)
class Applied:
    """The event was verified, recorded and activated its subscription."""

    outcome: ClassVar[str] = "applied"

    event_id: str
    subscription: Subscription
    newly_activated: bool


@dataclass(frozen=True)
class Updated:
    """The event changed a subscription's stored status or end date.

    ``changed`` is False when the subscription was already cancelled and
    the event could not alter it.
    """

    outcome: ClassVar[str] = "updated"

    event_id: str
    subscription: Subscription
    changed: bool


@dataclass(frozen=True)
class AlreadyProcessed:
    """The event id has a processed marker; this is a duplicate delivery."""

    outcome: ClassVar[str] = "already_processed"

    event_id: str


@dataclass(frozen=True)
class InvalidSignature:
    """The event failed authentication. Nothing was recorded."""

    outcome: ClassVar[str] = "invalid_signature"

    reason: str


@dataclass(frozen=True)
class ReferenceNotFound:
    """The event references a subscription that is not on file."""

    outcome: ClassVar[str] = "reference_not_found"

    event_id: str
    references: tuple[str, ...]


@dataclass(frozen=True)
class Ignored:
    """The event was recorded but carries no entitlement change."""

    outcome: ClassVar[str] = "ignored"

    event_id: str
    event_type: str


@dataclass(frozen=True)
class MalformedEvent:
    """The body was correctly signed but is not a usable gateway event.

    Nothing was recorded. Redelivering the same body cannot succeed, so it
    is acknowledged rather than rejected.
    """

    outcome: ClassVar[str] = "malformed_event"

    reason: str


ReconciliationResult = (
    Applied
    | Updated
    | AlreadyProcessed
    | InvalidSignature
    | ReferenceNotFound
    | Ignored
    | MalformedEvent
)
