"""Notification dispatch for entitlement facts.

Dispatchers are fire-and-forget collaborators. Callers go through
dispatch_notification, which logs and swallows every failure so that a
broken mail server never fails a redemption or a reconciliation.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum

from django.conf import settings
from django.core.mail import send_mail

from entitlements.domain import SubscriptionId, TicketId
from entitlements.stores.interfaces import EntitlementStore

logger = logging.getLogger(__name__)


class NotificationKind(Enum):
    """Facts the engine reports to the notification collaborator."""

    TICKET_REDEEMED = "ticket_redeemed"
    SUBSCRIPTION_ACTIVATED = "subscription_activated"


class NotificationDispatcher(ABC):
    """Interface for sending confirmation messages."""

    @abstractmethod
    def notify(self, kind: NotificationKind, entity_id: str) -> None:
        """Send a message about the given entity. May raise on delivery failure."""
        ...


class LoggingNotificationDispatcher(NotificationDispatcher):
    """Dispatcher that only records the fact in the log."""

    def __init__(self, store: EntitlementStore | None = None) -> None:
        """Takes the store only so every dispatcher is built the same way."""

    def notify(self, kind: NotificationKind, entity_id: str) -> None:
        logger.info(
            "Notification recorded",
            extra={"kind": kind.value, "entity_id": entity_id},
        )


class EmailNotificationDispatcher(NotificationDispatcher):
    """Sends confirmation e-mails to the purchaser on file."""

    SUBJECTS = {
        NotificationKind.TICKET_REDEEMED: "Your ticket has been used",
        NotificationKind.SUBSCRIPTION_ACTIVATED: "Your subscription is active",
    }

    def __init__(self, store: EntitlementStore) -> None:
        self._store = store

    def notify(self, kind: NotificationKind, entity_id: str) -> None:
        recipient, body = self._compose(kind, entity_id)
        if not recipient:
            logger.info(
                "No purchaser e-mail on file, skipping notification",
                extra={"kind": kind.value, "entity_id": entity_id},
            )
            return
        send_mail(
            subject=self.SUBJECTS[kind],
            message=body,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[recipient],
        )
        logger.info(
            "Notification sent",
            extra={"kind": kind.value, "entity_id": entity_id},
        )

    def _compose(self, kind: NotificationKind, entity_id: str) -> tuple[str | None, str]:
        if kind is NotificationKind.TICKET_REDEEMED:
            ticket = self._store.get_ticket(TicketId.from_string(entity_id))
            if ticket is None:
                return None, ""
            validated = ticket.validated_at.isoformat() if ticket.validated_at else ""
            body = f"Ticket {ticket.id} was scanned at {validated}."
            return ticket.purchaser_email, body

        subscription = self._store.get_subscription(SubscriptionId.from_string(entity_id))
        if subscription is None:
            return None, ""
        body = (
            f"Subscription {subscription.id} is active from "
            f"{subscription.valid_from:%Y-%m-%d} to {subscription.valid_to:%Y-%m-%d}."
        )
        return subscription.purchaser_email, body


def dispatch_notification(
    dispatcher: NotificationDispatcher, kind: NotificationKind, entity_id: str
) -> None:
    """Notify without ever propagating a dispatcher failure."""
    try:
        dispatcher.notify(kind, entity_id)
    except Exception:
        logger.exception(
            "Notification dispatch failed",
            extra={"kind": kind.value, "entity_id": entity_id},
        )
