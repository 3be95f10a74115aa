"""Domain primitives that enforce validity at creation time."""

from dataclasses import dataclass
from datetime import datetime
from typing import Self
from uuid import UUID


@dataclass(frozen=True)
class TicketId:
    """Unique identifier for a Ticket."""

    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class SubscriptionId:
    """Unique identifier for a Subscription."""

    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class ValidityWindow:
    """Inclusive time range during which a subscription grants access."""

    valid_from: datetime
    valid_to: datetime

    def __post_init__(self) -> None:
        if self.valid_from > self.valid_to:
            raise ValueError("valid_from must not be after valid_to")
