from entitlements.handlers.views import (
    QrValidationView,
    StripeWebhookView,
    SubscriptionReferenceView,
    SubscriptionStatusView,
    TicketRedemptionView,
)

__all__ = [
    "TicketRedemptionView",
    "SubscriptionStatusView",
    "SubscriptionReferenceView",
    "StripeWebhookView",
    "QrValidationView",
]
