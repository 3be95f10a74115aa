"""Ticket redemption - at-most-once transition of a ticket to used.

The guard never reads before writing. It issues the conditional write first
and only reads the ticket afterwards to tell a repeated scan apart from an
unknown ticket, so two concurrent scans can never both succeed.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from django.utils import timezone

from entitlements.domain import TicketId
from entitlements.domain.errors import InvalidTicketIdError
from entitlements.domain.results import (
    AlreadyRedeemed,
    Redeemed,
    RedemptionResult,
    TicketNotFound,
)
from entitlements.services.notifications import (
    NotificationDispatcher,
    NotificationKind,
    dispatch_notification,
)
from entitlements.stores.interfaces import EntitlementStore

logger = logging.getLogger(__name__)


def parse_ticket_id(ticket_id: str) -> TicketId:
    """Parse a raw ticket identifier.

    Raises:
        InvalidTicketIdError: If the value is blank or not a UUID.
    """
    if not ticket_id or not ticket_id.strip():
        raise InvalidTicketIdError()
    try:
        return TicketId.from_string(ticket_id.strip())
    except ValueError as exc:
        raise InvalidTicketIdError() from exc


class TicketRedemptionGuard:
    """Enforces that each ticket is redeemed at most once."""

    def __init__(
        self,
        store: EntitlementStore,
        notifier: NotificationDispatcher,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._clock = clock

    def redeem(self, ticket_id: str) -> RedemptionResult:
        """Redeem a ticket.

        Returns Redeemed when this call used the ticket, AlreadyRedeemed
        when an earlier call did, and TicketNotFound for unknown tickets.

        Raises:
            InvalidTicketIdError: If the ticket_id is not a valid UUID.
            StoreUnavailableError: If the store cannot be reached.
        """
        parsed = parse_ticket_id(ticket_id)

        ticket = self._store.mark_ticket_validated(parsed, validated_at=self._clock())
        if ticket is not None:
            logger.info("Ticket redeemed", extra={"ticket_id": str(parsed)})
            dispatch_notification(
                self._notifier, NotificationKind.TICKET_REDEEMED, str(parsed)
            )
            return Redeemed(ticket=ticket)

        existing = self._store.get_ticket(parsed)
        if existing is None:
            logger.info("Ticket not found", extra={"ticket_id": str(parsed)})
            return TicketNotFound(ticket_id=parsed)

        logger.info(
            "Ticket already redeemed",
            extra={
                "ticket_id": str(parsed),
                "validated_at": existing.validated_at.isoformat()
                if existing.validated_at
                else None,
            },
        )
        return AlreadyRedeemed(ticket=existing)
