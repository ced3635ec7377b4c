"""Domain error codes for the events module."""

from dataclasses import dataclass
from enum import Enum


class ErrorCode(Enum):
    """Domain error codes."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_EVENT_ID = "INVALID_EVENT_ID"
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    INVALID_TICKET_TYPE = "INVALID_TICKET_TYPE"
    INSUFFICIENT_INVENTORY = "INSUFFICIENT_INVENTORY"
    AMOUNT_MISMATCH = "AMOUNT_MISMATCH"
    DUPLICATE_REFERENCE = "DUPLICATE_REFERENCE"
    PAYMENT_NOT_FOUND = "PAYMENT_NOT_FOUND"
    PAYMENT_NOT_DELETABLE = "PAYMENT_NOT_DELETABLE"
    GATEWAY_INIT_FAILED = "GATEWAY_INIT_FAILED"
    VERIFICATION_UNAVAILABLE = "VERIFICATION_UNAVAILABLE"
    OVERSOLD_AT_SETTLEMENT = "OVERSOLD_AT_SETTLEMENT"
    PAID_AFTER_FAILURE = "PAID_AFTER_FAILURE"
    ALREADY_BOOKED = "ALREADY_BOOKED"
    INVALID_WEBHOOK_SIGNATURE = "INVALID_WEBHOOK_SIGNATURE"


@dataclass(frozen=True)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class ValidationError(DomainError):
    """Raised when a request is malformed or missing fields."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(code=ErrorCode.VALIDATION_ERROR, message=message)
        self.errors = errors or []


class InvalidEventIdError(DomainError):
    """Raised when an event ID is invalid."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.INVALID_EVENT_ID,
            message="Invalid event ID format",
        )


class EventNotFoundError(DomainError):
    """Raised when an event is not found."""

    def __init__(self, event_id: str) -> None:
        super().__init__(
            code=ErrorCode.EVENT_NOT_FOUND,
            message="Event not found",
        )
        self.event_id = event_id


class InvalidTicketTypeError(DomainError):
    """Raised when a ticket type does not belong to the event being booked."""

    def __init__(self, ticket_type_id: str) -> None:
        super().__init__(
            code=ErrorCode.INVALID_TICKET_TYPE,
            message=f"Ticket type not found: {ticket_type_id}",
        )
        self.ticket_type_id = ticket_type_id


class InsufficientInventoryError(DomainError):
    """Raised when a ticket type cannot cover the requested quantity."""

    def __init__(self, ticket_type_name: str) -> None:
        super().__init__(
            code=ErrorCode.INSUFFICIENT_INVENTORY,
            message=f"Not enough tickets available for {ticket_type_name}",
        )
        self.ticket_type_name = ticket_type_name


class AmountMismatchError(DomainError):
    """Raised when the client total disagrees with the server breakdown."""

    def __init__(self, client_amount: int, server_amount: int) -> None:
        super().__init__(
            code=ErrorCode.AMOUNT_MISMATCH,
            message="Amount mismatch",
        )
        self.client_amount = client_amount
        self.server_amount = server_amount


class AlreadyBookedError(DomainError):
    """Raised when an attendee books a second free ticket for one event."""

    def __init__(self, attendee_email: str) -> None:
        super().__init__(
            code=ErrorCode.ALREADY_BOOKED,
            message="You already have a ticket for this event",
        )
        self.attendee_email = attendee_email


class DuplicateReferenceError(DomainError):
    def __init__(self, reference: str) -> None:
        super().__init__(
            code=ErrorCode.DUPLICATE_REFERENCE,
            message="Payment reference already exists",
        )
        self.reference = reference


class PaymentNotFoundError(DomainError):
    def __init__(self, reference: str) -> None:
        super().__init__(
            code=ErrorCode.PAYMENT_NOT_FOUND,
            message="Payment record not found",
        )
        self.reference = reference


class PaymentNotDeletableError(DomainError):
    """Raised when deleting a payment that has left PENDING or owns tickets."""

    def __init__(self, payment_id: str) -> None:
        super().__init__(
            code=ErrorCode.PAYMENT_NOT_DELETABLE,
            message="Only pending payments without tickets can be deleted",
        )
        self.payment_id = payment_id


class GatewayInitFailedError(DomainError):
    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.GATEWAY_INIT_FAILED,
            message="Payment initialization failed",
        )


class VerificationUnavailableError(DomainError):
    """Raised when the gateway could not be asked; safe to poll again."""

    def __init__(self, reference: str) -> None:
        super().__init__(
            code=ErrorCode.VERIFICATION_UNAVAILABLE,
            message="Payment verification is temporarily unavailable",
        )
        self.reference = reference


class OversoldAtSettlementError(DomainError):
    """Raised when the gateway collected money but inventory ran out.

    The payment is settled as FAILED and needs a manual refund.
    """

    def __init__(self, reference: str) -> None:
        super().__init__(
            code=ErrorCode.OVERSOLD_AT_SETTLEMENT,
            message="Tickets sold out before your payment was confirmed. "
            "A refund will be arranged.",
        )
        self.reference = reference


class PaidAfterFailureError(DomainError):
    """Raised when the gateway reports a successful charge for a payment
    already settled as declined. No tickets exist for it; it needs a manual
    refund or reissue.
    """

    def __init__(self, reference: str) -> None:
        super().__init__(
            code=ErrorCode.PAID_AFTER_FAILURE,
            message="Payment was confirmed after it had been marked as failed. "
            "Our team will follow up.",
        )
        self.reference = reference


class InvalidWebhookSignatureError(DomainError):
    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.INVALID_WEBHOOK_SIGNATURE,
            message="Invalid signature",
        )
