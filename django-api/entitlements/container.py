"""Explicit dependency wiring for the entitlement engine.

The engine is built once by the app config at process start and handed to
the HTTP handlers. Tests build their own engine around test doubles.
"""

from dataclasses import dataclass

from django.conf import settings
from django.utils.module_loading import import_string

from entitlements.services.notifications import NotificationDispatcher
from entitlements.services.payment_reconciler import PaymentEventReconciler
from entitlements.services.qr_validation import QrCodeValidator
from entitlements.services.signatures import StripeSignatureVerifier
from entitlements.services.subscription_window import SubscriptionAccessService
from entitlements.services.ticket_redemption import TicketRedemptionGuard
from entitlements.stores.interfaces import EntitlementStore


@dataclass(frozen=True)
class EntitlementEngine:
    """Handles to every entitlement service, sharing one store."""

    store: EntitlementStore
    redemption_guard: TicketRedemptionGuard
    subscriptions: SubscriptionAccessService
    reconciler: PaymentEventReconciler
    qr_validator: QrCodeValidator


def assemble_engine(
    store: EntitlementStore,
    notifier: NotificationDispatcher,
    verifier: StripeSignatureVerifier,
    qr_max_age_hours: int = 24,
) -> EntitlementEngine:
    """Wire the services around already-constructed collaborators."""
    redemption_guard = TicketRedemptionGuard(store, notifier)
    subscriptions = SubscriptionAccessService(store)
    return EntitlementEngine(
        store=store,
        redemption_guard=redemption_guard,
        subscriptions=subscriptions,
        reconciler=PaymentEventReconciler(store, verifier, notifier),
        qr_validator=QrCodeValidator(
            redemption_guard, subscriptions, max_age_hours=qr_max_age_hours
        ),
    )


def build_engine() -> EntitlementEngine:
    """Build the production engine from Django settings."""
    from entitlements.stores.django_store import DjangoEntitlementStore

    store = DjangoEntitlementStore()
    dispatcher_class = import_string(settings.ENTITLEMENTS_NOTIFICATION_DISPATCHER)
    return assemble_engine(
        store=store,
        notifier=dispatcher_class(store),
        verifier=StripeSignatureVerifier(
            secret=settings.STRIPE_WEBHOOK_SECRET,
            tolerance=settings.STRIPE_WEBHOOK_TOLERANCE,
        ),
        qr_max_age_hours=settings.ENTITLEMENTS_QR_MAX_AGE_HOURS,
    )


def get_engine() -> EntitlementEngine:
    """Return the engine built by the app config at startup."""
    from django.apps import apps

    return apps.get_app_config("entitlements").engine
