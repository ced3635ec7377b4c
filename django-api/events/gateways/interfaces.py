"""Payment gateway boundary.

The gateway owns the money movement. This side only asks it to start a
transaction, asks it how a transaction ended, and checks that pushed
notifications really came from it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

SUCCESS_STATUS = "success"
# Transactions the customer may still complete. Paystack reports an
# initialized but unpaid checkout as "abandoned".
IN_FLIGHT_STATUSES = frozenset(
    {"abandoned", "ongoing", "pending", "processing", "queued"}
)


class GatewayError(Exception):
    """The gateway could not be reached or answered with an error."""


class GatewayRejectedError(GatewayError):
    """The gateway explicitly refused the request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class GatewayInitialization:
    authorization_url: str
    access_code: str


@dataclass(frozen=True)
class GatewayVerification:
    reference: str
    status: str
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCESS_STATUS

    @property
    def in_flight(self) -> bool:
        return self.status in IN_FLIGHT_STATUSES


class PaymentGateway(ABC):
    """Interface for an external payment gateway."""

    @abstractmethod
    def initialize(
        self,
        reference: str,
        amount: int,
        currency: str,
        email: str,
        callback_url: str,
        metadata: dict[str, Any],
    ) -> GatewayInitialization:
        """Open a transaction and return where to send the customer.

        Raises:
            GatewayError: If the call fails or the gateway refuses it.
        """
        ...

    @abstractmethod
    def verify(self, reference: str) -> GatewayVerification:
        """Ask the gateway for the outcome of a transaction.

        Raises:
            GatewayError: If the gateway cannot be asked.
        """
        ...

    @abstractmethod
    def verify_signature(self, payload: bytes, signature: str) -> bool:
        """Check a webhook signature against the raw request body."""
        ...
