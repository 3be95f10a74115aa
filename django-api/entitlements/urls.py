from django.urls import path

from entitlements.handlers import (
    QrValidationView,
    StripeWebhookView,
    SubscriptionReferenceView,
    SubscriptionStatusView,
    TicketRedemptionView,
)

urlpatterns = [
    path(
        "tickets/<str:ticket_id>/redeem",
        TicketRedemptionView.as_view(),
        name="ticket-redeem",
    ),
    path(
        "subscriptions/by-reference/<str:reference>",
        SubscriptionReferenceView.as_view(),
        name="subscription-by-reference",
    ),
    path(
        "subscriptions/<str:subscription_id>/status",
        SubscriptionStatusView.as_view(),
        name="subscription-status",
    ),
    path("webhooks/stripe", StripeWebhookView.as_view(), name="stripe-webhook"),
    path("validate-qr", QrValidationView.as_view(), name="validate-qr"),
]
