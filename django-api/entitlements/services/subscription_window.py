"""Subscription validity window evaluation and activity checks."""

import logging
from collections.abc import Callable
from datetime import datetime

from django.utils import timezone

from entitlements.domain import Subscription, SubscriptionId, ValidityWindow
from entitlements.domain.errors import (
    InvalidSubscriptionIdError,
    SubscriptionNotFoundError,
)
from entitlements.domain.results import SubscriptionCheck, WindowStatus
from entitlements.stores.interfaces import EntitlementStore

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    WindowStatus.ACTIVE: "This subscription is valid.",
    WindowStatus.EXPIRED: "This subscription is not currently active.",
    WindowStatus.NOT_YET_VALID: "This subscription is not active yet.",
}


def evaluate_window(subject: Subscription | ValidityWindow, now: datetime) -> WindowStatus:
    """Return the window status of a subscription at ``now``.

    Both bounds are inclusive: a subscription is active at exactly
    valid_from and at exactly valid_to.
    """
    window = subject.window if isinstance(subject, Subscription) else subject
    if now < window.valid_from:
        return WindowStatus.NOT_YET_VALID
    if now > window.valid_to:
        return WindowStatus.EXPIRED
    return WindowStatus.ACTIVE


class SubscriptionAccessService:
    """Looks subscriptions up and reports whether they currently grant access."""

    def __init__(
        self,
        store: EntitlementStore,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self._store = store
        self._clock = clock

    def check(self, subscription_id: str) -> SubscriptionCheck:
        """Return a subscription with its current window status.

        Raises:
            InvalidSubscriptionIdError: If the subscription_id is not a valid UUID.
            SubscriptionNotFoundError: If the subscription does not exist.
        """
        try:
            parsed = SubscriptionId.from_string(subscription_id.strip())
        except ValueError as exc:
            raise InvalidSubscriptionIdError() from exc

        subscription = self._store.get_subscription(parsed)
        if subscription is None:
            raise SubscriptionNotFoundError(subscription_id)
        return self._describe(subscription)

    def check_by_gateway_reference(self, reference: str) -> SubscriptionCheck:
        """Return the subscription created for a gateway checkout reference.

        Raises:
            SubscriptionNotFoundError: If no subscription carries the reference.
        """
        subscription = None
        if reference and reference.strip():
            subscription = self._store.find_subscription_by_gateway_reference(
                reference.strip()
            )
        if subscription is None:
            raise SubscriptionNotFoundError(reference)
        return self._describe(subscription)

    def _describe(self, subscription: Subscription) -> SubscriptionCheck:
        status = evaluate_window(subscription, self._clock())
        logger.debug(
            "Subscription window evaluated",
            extra={"subscription_id": str(subscription.id), "status": status.value},
        )
        return SubscriptionCheck(
            subscription=subscription,
            status=status,
            message=STATUS_MESSAGES[status],
        )
