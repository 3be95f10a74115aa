"""Payment webhook reconciliation with idempotency support.

Processes gateway webhooks with:
- Signature verification before anything else
- Event deduplication through a unique processed-event marker
- Explicit classification of every event kind
- Conditional, idempotent subscription writes

Gateways deliver at least once and in any order, so the marker is inserted
atomically before side effects are applied.
"""

import json
import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

from django.utils import timezone

from entitlements.domain import ProcessedEventMarker, SubscriptionStatus
from entitlements.domain.errors import InvalidEventPayloadError, StoreUnavailableError
from entitlements.domain.gateway_events import (
    CheckoutSessionCompleted,
    GatewayEvent,
    SubscriptionDeleted,
    SubscriptionUpdated,
    parse_gateway_event,
)
from entitlements.domain.results import (
    AlreadyProcessed,
    Applied,
    Ignored,
    InvalidSignature,
    MalformedEvent,
    ReconciliationResult,
    ReferenceNotFound,
    Updated,
)
from entitlements.services.notifications import (
    NotificationDispatcher,
    NotificationKind,
    dispatch_notification,
)
from entitlements.services.signatures import StripeSignatureVerifier, WebhookSignatureError
from entitlements.stores.interfaces import EntitlementStore

logger = logging.getLogger(__name__)


class PaymentEventReconciler:
    """Turns signed payment-gateway events into durable entitlement state."""

    def __init__(
        self,
        store: EntitlementStore,
        verifier: StripeSignatureVerifier,
        notifier: NotificationDispatcher,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self._store = store
        self._verifier = verifier
        self._notifier = notifier
        self._clock = clock

    def reconcile(self, payload: bytes, signature: str | None) -> ReconciliationResult:
        """Verify, deduplicate and apply one webhook delivery.

        Args:
            payload: Raw request body exactly as received.
            signature: Value of the gateway signature header.

        Returns:
            Exactly one of Applied, Updated, AlreadyProcessed, InvalidSignature,
            ReferenceNotFound, Ignored or MalformedEvent.

        Raises:
            StoreUnavailableError: If the store fails. Any marker written for
                this delivery is removed first so a redelivery is applied.
        """
        try:
            body = self._verifier.verify(payload, signature)
        except WebhookSignatureError as exc:
            logger.warning(
                "Webhook signature verification failed", extra={"reason": str(exc)}
            )
            return InvalidSignature(reason=str(exc))

        try:
            event = self._parse(body)
        except InvalidEventPayloadError as exc:
            logger.warning(
                "Malformed webhook event acknowledged", extra={"reason": exc.detail}
            )
            return MalformedEvent(reason=exc.detail)

        marker = ProcessedEventMarker(
            event_id=event.event_id, type=event.type, received_at=self._clock()
        )
        if not self._store.record_processed_event(marker):
            logger.info(
                "Duplicate webhook skipped",
                extra={"event_id": event.event_id, "event_type": event.type},
            )
            return AlreadyProcessed(event_id=event.event_id)

        try:
            result = self._apply(event)
        except StoreUnavailableError:
            self._release(event.event_id)
            raise

        logger.info(
            "Webhook processed",
            extra={
                "event_id": event.event_id,
                "event_type": event.type,
                "outcome": result.outcome,
            },
        )
        return result

    def _parse(self, body: str) -> GatewayEvent:
        try:
            data = json.loads(body)
        except ValueError as exc:
            raise InvalidEventPayloadError("body is not JSON") from exc
        return parse_gateway_event(data)

    def _apply(self, event: GatewayEvent) -> ReconciliationResult:
        if isinstance(event, CheckoutSessionCompleted):
            return self._apply_checkout(event)
        if isinstance(event, SubscriptionUpdated):
            return self._apply_terms(event, event.lifecycle_status, event.current_period_end)
        if isinstance(event, SubscriptionDeleted):
            return self._apply_terms(event, SubscriptionStatus.CANCELLED, self._clock())
        return Ignored(event_id=event.event_id, event_type=event.type)

    def _apply_checkout(self, event: CheckoutSessionCompleted) -> ReconciliationResult:
        if not event.has_subscription_intent:
            logger.info(
                "Checkout session without subscription intent ignored",
                extra={"event_id": event.event_id, "mode": event.mode},
            )
            return Ignored(event_id=event.event_id, event_type=event.type)

        for reference in event.references:
            subscription = self._store.find_subscription_by_gateway_reference(reference)
            if subscription is None:
                continue

            newly_activated = self._store.activate_subscription(subscription.id)
            if newly_activated:
                dispatch_notification(
                    self._notifier,
                    NotificationKind.SUBSCRIPTION_ACTIVATED,
                    str(subscription.id),
                )
            if subscription.status is not SubscriptionStatus.CANCELLED:
                subscription = replace(subscription, status=SubscriptionStatus.ACTIVE)
            return Applied(
                event_id=event.event_id,
                subscription=subscription,
                newly_activated=newly_activated,
            )

        return self._reference_not_found(event.event_id, event.references)

    def _apply_terms(
        self,
        event: SubscriptionUpdated | SubscriptionDeleted,
        status: SubscriptionStatus,
        valid_to: datetime | None,
    ) -> ReconciliationResult:
        reference = event.subscription_reference
        subscription = self._store.find_subscription_by_gateway_reference(reference)
        if subscription is None:
            return self._reference_not_found(event.event_id, (reference,))

        if status is SubscriptionStatus.CANCELLED and valid_to is not None:
            # Cancellation only ever shortens the window.
            valid_to = min(valid_to, subscription.valid_to)

        updated = self._store.update_subscription_terms(subscription.id, status, valid_to)
        if updated is None:
            logger.info(
                "Cancelled subscription left unchanged",
                extra={"event_id": event.event_id, "subscription_id": str(subscription.id)},
            )
            return Updated(event_id=event.event_id, subscription=subscription, changed=False)
        return Updated(event_id=event.event_id, subscription=updated, changed=True)

    def _reference_not_found(
        self, event_id: str, references: tuple[str, ...]
    ) -> ReferenceNotFound:
        logger.warning(
            "Webhook references unknown subscription",
            extra={"event_id": event_id, "references": list(references)},
        )
        return ReferenceNotFound(event_id=event_id, references=references)

    def _release(self, event_id: str) -> None:
        try:
            self._store.forget_processed_event(event_id)
        except StoreUnavailableError:
            logger.error(
                "Could not release processed-event marker",
                extra={"event_id": event_id},
            )
