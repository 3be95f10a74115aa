"""Validation of scanned QR codes.

A QR code carries a small JSON document naming either a ticket or a
subscription together with the time it was generated. Ticket codes are
redeemed, subscription codes are checked against their window.
"""

import json
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from django.utils import timezone
from django.utils.dateparse import parse_datetime

from entitlements.domain.errors import InvalidQrCodeError, QrCodeExpiredError
from entitlements.domain.results import RedemptionResult, SubscriptionCheck
from entitlements.services.subscription_window import SubscriptionAccessService
from entitlements.services.ticket_redemption import TicketRedemptionGuard

TICKET = "ticket"
SUBSCRIPTION = "subscription"

# Allowed lead of a code over the server clock, for scanner and issuer drift.
CLOCK_SKEW = timedelta(minutes=5)


@dataclass(frozen=True)
class QrValidationResult:
    """Outcome of a scan: exactly one of the two fields is set."""

    kind: str
    redemption: RedemptionResult | None = None
    subscription_check: SubscriptionCheck | None = None


class QrCodeValidator:
    """Decodes QR payloads and routes them to the matching entitlement check."""

    def __init__(
        self,
        redemption_guard: TicketRedemptionGuard,
        subscriptions: SubscriptionAccessService,
        max_age_hours: int = 24,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self._redemption_guard = redemption_guard
        self._subscriptions = subscriptions
        self._max_age = timedelta(hours=max_age_hours)
        self._max_age_hours = max_age_hours
        self._clock = clock

    def validate(self, qr_data: str) -> QrValidationResult:
        """Validate one scanned code.

        Raises:
            InvalidQrCodeError: If the data is not a well-formed QR payload or
                was stamped later than the current time.
            QrCodeExpiredError: If the code is older than the allowed age.
        """
        payload = self._decode(qr_data)
        self._check_age(payload["timestamp"])

        kind = payload["type"]
        if kind == TICKET:
            return QrValidationResult(
                kind=kind,
                redemption=self._redemption_guard.redeem(_required(payload, "ticketId")),
            )
        if kind == SUBSCRIPTION:
            return QrValidationResult(
                kind=kind,
                subscription_check=self._subscriptions.check(
                    _required(payload, "subscriptionId")
                ),
            )
        raise InvalidQrCodeError("Unknown QR code type")

    def _decode(self, qr_data: str) -> dict:
        if not qr_data:
            raise InvalidQrCodeError("QR data is required")
        try:
            payload = json.loads(qr_data)
        except ValueError as exc:
            raise InvalidQrCodeError("Invalid QR code data format") from exc
        if not isinstance(payload, dict) or not payload.get("type") or not payload.get("timestamp"):
            raise InvalidQrCodeError("Invalid QR code data structure")
        return payload

    def _check_age(self, raw_timestamp: object) -> None:
        try:
            generated_at = parse_datetime(raw_timestamp) if isinstance(raw_timestamp, str) else None
        except ValueError:
            generated_at = None
        if generated_at is None:
            raise InvalidQrCodeError("Invalid QR code timestamp")
        if timezone.is_naive(generated_at):
            generated_at = generated_at.replace(tzinfo=UTC)
        now = self._clock()
        if generated_at - now > CLOCK_SKEW:
            raise InvalidQrCodeError("QR code timestamp is in the future")
        if now - generated_at > self._max_age:
            raise QrCodeExpiredError(self._max_age_hours)


def _required(payload: dict, key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise InvalidQrCodeError(f"QR code has no {key}")
    return value
