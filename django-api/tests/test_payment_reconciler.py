"""Unit tests for PaymentEventReconciler.

Run with: pytest tests/test_payment_reconciler.py -v
"""

import json
import time
from datetime import UTC, datetime, timedelta

import pytest
from django.core.exceptions import ImproperlyConfigured

from conftest import (
    NOW,
    WEBHOOK_SECRET,
    FailingNotifier,
    checkout_completed_event,
    sign_payload,
    subscription_event,
)
from entitlements.domain import SubscriptionStatus, ValidityWindow
from entitlements.domain.errors import StoreUnavailableError
from entitlements.domain.results import (
    AlreadyProcessed,
    Applied,
    Ignored,
    InvalidSignature,
    MalformedEvent,
    ReferenceNotFound,
    Updated,
    WindowStatus,
)
from entitlements.services.notifications import NotificationKind
from entitlements.services.payment_reconciler import PaymentEventReconciler
from entitlements.services.signatures import StripeSignatureVerifier
from entitlements.services.subscription_window import evaluate_window


@pytest.fixture
def reconciler(memory_store, notifier, clock) -> PaymentEventReconciler:
    return PaymentEventReconciler(
        memory_store, StripeSignatureVerifier(WEBHOOK_SECRET), notifier, clock=clock
    )


def deliver(reconciler: PaymentEventReconciler, body: str, signature: str | None = None):
    if signature is None:
        signature = sign_payload(body)
    return reconciler.reconcile(body.encode(), signature)


class TestSignatureVerification:
    """Events that fail authentication leave no trace."""

    def test_corrupted_signature_is_rejected(self, reconciler, memory_store):
        subscription = memory_store.add_subscription()
        body = checkout_completed_event()
        timestamp = sign_payload(body).split(",")[0]
        signature = f"{timestamp},v1={'0' * 64}"

        result = deliver(reconciler, body, signature)

        assert isinstance(result, InvalidSignature)
        assert memory_store.markers == {}
        assert memory_store.subscriptions[subscription.id.value].status is SubscriptionStatus.PENDING

    def test_signature_with_wrong_secret_is_rejected(self, reconciler, memory_store):
        memory_store.add_subscription()
        body = checkout_completed_event()

        result = deliver(reconciler, body, sign_payload(body, secret="whsec_other"))

        assert isinstance(result, InvalidSignature)
        assert memory_store.markers == {}

    def test_tampered_body_is_rejected(self, reconciler, memory_store):
        body = checkout_completed_event()
        signature = sign_payload(body)
        tampered = body.replace("sub_123", "sub_999")

        assert isinstance(deliver(reconciler, tampered, signature), InvalidSignature)
        assert memory_store.markers == {}

    def test_stale_timestamp_is_rejected(self, reconciler, memory_store):
        body = checkout_completed_event()
        signature = sign_payload(body, timestamp=int(time.time()) - 3600)

        assert isinstance(deliver(reconciler, body, signature), InvalidSignature)

    @pytest.mark.parametrize("signature", [None, ""])
    def test_missing_signature_is_rejected(self, reconciler, memory_store, signature):
        result = reconciler.reconcile(checkout_completed_event().encode(), signature)
        assert isinstance(result, InvalidSignature)
        assert memory_store.markers == {}

    def test_missing_secret_is_a_configuration_error(self, memory_store, notifier):
        reconciler = PaymentEventReconciler(memory_store, StripeSignatureVerifier(""), notifier)
        with pytest.raises(ImproperlyConfigured):
            deliver(reconciler, checkout_completed_event())


class TestDeduplication:
    """Duplicate deliveries apply their side effects once."""

    @pytest.mark.parametrize("deliveries", [1, 2, 5])
    def test_same_event_applied_once(self, reconciler, memory_store, notifier, deliveries):
        subscription = memory_store.add_subscription()
        body = checkout_completed_event(event_id="evt_dup")

        results = [deliver(reconciler, body) for _ in range(deliveries)]

        assert isinstance(results[0], Applied)
        assert all(isinstance(r, AlreadyProcessed) for r in results[1:])
        assert notifier.sent == [(NotificationKind.SUBSCRIPTION_ACTIVATED, str(subscription.id))]
        assert list(memory_store.markers) == ["evt_dup"]

    def test_marker_records_type_and_time(self, reconciler, memory_store, clock):
        memory_store.add_subscription()
        deliver(reconciler, checkout_completed_event(event_id="evt_7"))

        marker = memory_store.markers["evt_7"]
        assert marker.type == "checkout.session.completed"
        assert marker.received_at == clock()


class TestClassification:
    """Each verified event lands in exactly one branch."""

    def test_checkout_activates_subscription(self, reconciler, memory_store):
        subscription = memory_store.add_subscription()

        result = deliver(reconciler, checkout_completed_event())

        assert isinstance(result, Applied)
        assert result.newly_activated
        assert result.subscription.status is SubscriptionStatus.ACTIVE
        assert memory_store.subscriptions[subscription.id.value].status is SubscriptionStatus.ACTIVE

    def test_distinct_events_for_active_subscription_are_noops(self, reconciler, memory_store, notifier):
        memory_store.add_subscription(status=SubscriptionStatus.ACTIVE)

        result = deliver(reconciler, checkout_completed_event(event_id="evt_again"))

        assert isinstance(result, Applied)
        assert not result.newly_activated
        assert notifier.sent == []

    def test_session_id_is_used_as_fallback_reference(self, reconciler, memory_store):
        memory_store.add_subscription(gateway_subscription_id="cs_test_1")

        result = deliver(reconciler, checkout_completed_event(subscription=None))

        assert isinstance(result, Applied)

    def test_unknown_reference(self, reconciler, memory_store):
        """evt_123 referencing no subscription on file records only the marker."""
        subscription = memory_store.add_subscription(gateway_subscription_id="sub_other")

        result = deliver(reconciler, checkout_completed_event(event_id="evt_123"))

        assert isinstance(result, ReferenceNotFound)
        assert result.references == ("sub_123", "cs_test_1")
        assert list(memory_store.markers) == ["evt_123"]
        assert memory_store.subscriptions[subscription.id.value].status is SubscriptionStatus.PENDING

    def test_payment_mode_checkout_is_ignored(self, reconciler, memory_store):
        subscription = memory_store.add_subscription()

        result = deliver(reconciler, checkout_completed_event(mode="payment"))

        assert isinstance(result, Ignored)
        assert memory_store.subscriptions[subscription.id.value].status is SubscriptionStatus.PENDING

    def test_other_event_kinds_are_ignored(self, reconciler, memory_store):
        body = json.dumps({"id": "evt_9", "type": "invoice.paid", "data": {"object": {}}})

        result = deliver(reconciler, body)

        assert result == Ignored(event_id="evt_9", event_type="invoice.paid")
        assert "evt_9" in memory_store.markers

    @pytest.mark.parametrize(
        "body",
        [
            "not json",
            json.dumps({"id": "evt_x", "type": "checkout.session.completed", "data": {}}),
            json.dumps({"type": "checkout.session.completed"}),
            json.dumps({"id": "evt_x", "type": "customer.subscription.deleted", "data": {"object": {}}}),
        ],
    )
    def test_malformed_signed_body_is_acknowledged(self, reconciler, memory_store, body):
        """A signed body that is not a usable event returns an outcome and records nothing."""
        subscription = memory_store.add_subscription()

        result = deliver(reconciler, body)

        assert isinstance(result, MalformedEvent)
        assert result.outcome == "malformed_event"
        assert memory_store.markers == {}
        assert memory_store.subscriptions[subscription.id.value].status is SubscriptionStatus.PENDING

    def test_notification_failure_keeps_activation(self, memory_store, clock):
        subscription = memory_store.add_subscription()
        reconciler = PaymentEventReconciler(
            memory_store, StripeSignatureVerifier(WEBHOOK_SECRET), FailingNotifier(), clock=clock
        )

        result = deliver(reconciler, checkout_completed_event())

        assert isinstance(result, Applied)
        assert memory_store.subscriptions[subscription.id.value].status is SubscriptionStatus.ACTIVE


class TestSubscriptionLifecycle:
    """Gateway updates and cancellations rewrite status and end date."""

    def test_update_extends_window_to_period_end(self, reconciler, memory_store):
        subscription = memory_store.add_subscription(status=SubscriptionStatus.ACTIVE)
        period_end = datetime(2024, 2, 29, tzinfo=UTC)

        result = deliver(
            reconciler,
            subscription_event(
                "customer.subscription.updated",
                current_period_end=int(period_end.timestamp()),
            ),
        )

        assert isinstance(result, Updated)
        assert result.changed
        stored = memory_store.subscriptions[subscription.id.value]
        assert stored.status is SubscriptionStatus.ACTIVE
        assert stored.valid_to == period_end
        assert result.subscription == stored

    def test_update_without_period_keeps_end_date(self, reconciler, memory_store):
        subscription = memory_store.add_subscription(status=SubscriptionStatus.ACTIVE)

        deliver(reconciler, subscription_event("customer.subscription.updated", status="past_due"))

        stored = memory_store.subscriptions[subscription.id.value]
        assert stored.status is SubscriptionStatus.PENDING
        assert stored.valid_to == subscription.valid_to

    def test_deletion_cancels_and_ends_window_now(self, reconciler, memory_store):
        subscription = memory_store.add_subscription(status=SubscriptionStatus.ACTIVE)

        result = deliver(
            reconciler, subscription_event("customer.subscription.deleted", event_id="evt_del")
        )

        assert isinstance(result, Updated)
        stored = memory_store.subscriptions[subscription.id.value]
        assert stored.status is SubscriptionStatus.CANCELLED
        assert stored.valid_to == NOW
        assert evaluate_window(stored, NOW + timedelta(seconds=1)) is WindowStatus.EXPIRED

    def test_deletion_never_extends_window(self, reconciler, memory_store):
        ended = datetime(2024, 1, 10, tzinfo=UTC)
        subscription = memory_store.add_subscription(
            window=ValidityWindow(valid_from=datetime(2024, 1, 1, tzinfo=UTC), valid_to=ended)
        )

        deliver(reconciler, subscription_event("customer.subscription.deleted"))

        assert memory_store.subscriptions[subscription.id.value].valid_to == ended

    def test_deletion_before_start_keeps_window_ordered(self, reconciler, memory_store):
        starts = datetime(2024, 2, 1, tzinfo=UTC)
        subscription = memory_store.add_subscription(
            window=ValidityWindow(valid_from=starts, valid_to=datetime(2024, 2, 29, tzinfo=UTC))
        )

        deliver(reconciler, subscription_event("customer.subscription.deleted"))

        stored = memory_store.subscriptions[subscription.id.value]
        assert stored.valid_from == stored.valid_to == starts

    def test_late_update_does_not_revive_cancelled(self, reconciler, memory_store):
        subscription = memory_store.add_subscription(status=SubscriptionStatus.ACTIVE)
        deliver(reconciler, subscription_event("customer.subscription.deleted", event_id="evt_del"))

        result = deliver(
            reconciler,
            subscription_event(
                "customer.subscription.updated",
                event_id="evt_upd",
                current_period_end=int(datetime(2024, 6, 1, tzinfo=UTC).timestamp()),
            ),
        )

        assert isinstance(result, Updated)
        assert not result.changed
        stored = memory_store.subscriptions[subscription.id.value]
        assert stored.status is SubscriptionStatus.CANCELLED
        assert stored.valid_to == NOW

    def test_late_checkout_does_not_reactivate_cancelled(self, reconciler, memory_store, notifier):
        subscription = memory_store.add_subscription(status=SubscriptionStatus.CANCELLED)

        result = deliver(reconciler, checkout_completed_event())

        assert isinstance(result, Applied)
        assert not result.newly_activated
        assert result.subscription.status is SubscriptionStatus.CANCELLED
        assert memory_store.subscriptions[subscription.id.value].status is SubscriptionStatus.CANCELLED
        assert notifier.sent == []

    @pytest.mark.parametrize(
        "event_type", ["customer.subscription.updated", "customer.subscription.deleted"]
    )
    def test_unknown_reference(self, reconciler, memory_store, event_type):
        memory_store.add_subscription()

        result = deliver(
            reconciler, subscription_event(event_type, event_id="evt_miss", subscription="sub_missing")
        )

        assert result == ReferenceNotFound(event_id="evt_miss", references=("sub_missing",))
        assert "evt_miss" in memory_store.markers


class TestStoreFailures:
    """Infrastructure failures propagate and leave the event retryable."""

    def test_failure_after_marker_releases_it(self, reconciler, memory_store):
        memory_store.add_subscription()
        memory_store.failing.add("activate_subscription")
        body = checkout_completed_event(event_id="evt_retry")

        with pytest.raises(StoreUnavailableError):
            deliver(reconciler, body)
        assert memory_store.markers == {}

        memory_store.failing.clear()
        assert isinstance(deliver(reconciler, body), Applied)

    def test_failure_before_marker_propagates(self, reconciler, memory_store):
        memory_store.failing.add("record_processed_event")

        with pytest.raises(StoreUnavailableError):
            deliver(reconciler, checkout_completed_event())

    def test_failed_cancellation_releases_marker(self, reconciler, memory_store):
        subscription = memory_store.add_subscription(status=SubscriptionStatus.ACTIVE)
        memory_store.failing.add("update_subscription_terms")
        body = subscription_event("customer.subscription.deleted", event_id="evt_cancel")

        with pytest.raises(StoreUnavailableError):
            deliver(reconciler, body)
        assert memory_store.markers == {}

        memory_store.failing.clear()
        assert isinstance(deliver(reconciler, body), Updated)
        assert memory_store.subscriptions[subscription.id.value].status is SubscriptionStatus.CANCELLED
