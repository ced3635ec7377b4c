"""Domain primitives that enforce validity at creation time."""

import secrets
import string
import time
from dataclasses import dataclass
from typing import Self
from uuid import UUID

_BASE36 = string.digits + string.ascii_lowercase
_CONFIRMATION_ALPHABET = string.ascii_uppercase + string.digits


@dataclass(frozen=True)
class EventId:
    """Unique identifier for an Event."""

    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class TicketTypeId:
    """Unique identifier for a TicketType."""

    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class PaymentId:
    """Unique identifier for a Payment."""

    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Money:
    """Amount in minor currency units (kobo)."""

    amount: int

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError("Money amount cannot be negative")

    def __str__(self) -> str:
        return f"{self.amount / 100:,.2f}"


@dataclass(frozen=True)
class Capacity:
    """Non-negative integer representing capacity."""

    value: int

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValueError("Capacity cannot be negative")


@dataclass(frozen=True)
class PaymentReference:
    """Reference shared with the gateway for one checkout attempt."""

    value: str

    def __post_init__(self) -> None:
        if not self.value or not self.value.strip():
            raise ValueError("Payment reference cannot be blank")

    @classmethod
    def generate(cls, prefix: str) -> Self:
        """Build `<prefix>_<epoch-ms>_<9 random base36 chars>`."""
        suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
        return cls(value=f"{prefix}_{int(time.time() * 1000)}_{suffix}")

    def __str__(self) -> str:
        return self.value


def generate_confirmation_code(length: int = 8) -> str:
    return "".join(secrets.choice(_CONFIRMATION_ALPHABET) for _ in range(length))
