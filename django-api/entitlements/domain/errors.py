"""Domain error codes for the entitlements module."""

from dataclasses import dataclass
from enum import Enum


class ErrorCode(Enum):
    """Domain error codes."""

    INVALID_TICKET_ID = "INVALID_TICKET_ID"
    INVALID_SUBSCRIPTION_ID = "INVALID_SUBSCRIPTION_ID"
    SUBSCRIPTION_NOT_FOUND = "SUBSCRIPTION_NOT_FOUND"
    INVALID_EVENT_PAYLOAD = "INVALID_EVENT_PAYLOAD"
    INVALID_QR_CODE = "INVALID_QR_CODE"
    QR_CODE_EXPIRED = "QR_CODE_EXPIRED"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"


@dataclass(frozen=True)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class InvalidTicketIdError(DomainError):
    """Raised when a ticket ID is blank or malformed."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.INVALID_TICKET_ID,
            message="Invalid ticket ID format",
        )


class InvalidSubscriptionIdError(DomainError):
    """Raised when a subscription ID is blank or malformed."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.INVALID_SUBSCRIPTION_ID,
            message="Invalid subscription ID format",
        )


class SubscriptionNotFoundError(DomainError):
    """Raised when a subscription is not found."""

    def __init__(self, reference: str) -> None:
        super().__init__(
            code=ErrorCode.SUBSCRIPTION_NOT_FOUND,
            message="Subscription not found",
        )
        object.__setattr__(self, "reference", reference)


class InvalidEventPayloadError(DomainError):
    """Raised when a verified webhook body is not a well-formed gateway event."""

    def __init__(self, detail: str) -> None:
        super().__init__(
            code=ErrorCode.INVALID_EVENT_PAYLOAD,
            message="Malformed webhook event",
        )
        object.__setattr__(self, "detail", detail)


class InvalidQrCodeError(DomainError):
    """Raised when QR code data cannot be parsed or has the wrong structure."""

    def __init__(self, detail: str) -> None:
        super().__init__(
            code=ErrorCode.INVALID_QR_CODE,
            message=detail,
        )


class QrCodeExpiredError(DomainError):
    """Raised when a QR code was generated too long ago."""

    def __init__(self, max_age_hours: int) -> None:
        super().__init__(
            code=ErrorCode.QR_CODE_EXPIRED,
            message=f"QR code was generated more than {max_age_hours} hours ago",
        )


class StoreUnavailableError(DomainError):
    """Raised when the entitlement store cannot be reached. Safe to retry."""

    def __init__(self, operation: str) -> None:
        super().__init__(
            code=ErrorCode.STORE_UNAVAILABLE,
            message="Service temporarily unavailable",
        )
        object.__setattr__(self, "operation", operation)
