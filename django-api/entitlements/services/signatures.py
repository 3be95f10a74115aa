"""Webhook signature verification using the Stripe signing scheme."""

import stripe
from django.core.exceptions import ImproperlyConfigured


class WebhookSignatureError(Exception):
    """Raised when a webhook body does not carry a valid signature."""


class StripeSignatureVerifier:
    """Verifies the ``Stripe-Signature`` header against a shared secret."""

    def __init__(self, secret: str, tolerance: int = stripe.Webhook.DEFAULT_TOLERANCE) -> None:
        self._secret = secret
        self._tolerance = tolerance

    def verify(self, payload: bytes, signature: str | None) -> str:
        """Return the verified body as text.

        Raises:
            WebhookSignatureError: If the signature is missing, stale or mismatched.
            ImproperlyConfigured: If no webhook secret is configured.
        """
        if not self._secret:
            raise ImproperlyConfigured("STRIPE_WEBHOOK_SECRET is not set")
        if not signature:
            raise WebhookSignatureError("missing signature header")
        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise WebhookSignatureError("body is not valid UTF-8") from exc

        try:
            stripe.WebhookSignature.verify_header(
                body, signature, self._secret, self._tolerance
            )
        except stripe.SignatureVerificationError as exc:
            raise WebhookSignatureError(str(exc)) from exc
        return body
