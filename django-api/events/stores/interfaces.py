"""Store interfaces (repository pattern).

Stores must be swappable and return domain models.
"""

from abc import ABC, abstractmethod
from typing import Any

from events.domain import (
    Event,
    EventId,
    FailureReason,
    Payment,
    PaymentDetail,
    PaymentId,
    PaymentMetadata,
    PaymentReference,
    Settlement,
    Ticket,
    TicketDraft,
    TicketTypeId,
)


class EventStore(ABC):
    """Interface for event persistence operations."""

    @abstractmethod
    def list_events(self) -> list[Event]:
        """Return all events ordered by created_at descending."""
        ...

    @abstractmethod
    def get_event(self, event_id: EventId) -> Event | None:
        """Return an event with its ticket types, or None if not found."""
        ...

    @abstractmethod
    def count_sold(self, ticket_type_id: TicketTypeId) -> int:
        """Count ACTIVE and USED tickets for a ticket type.

        Always reads the database; results must not be cached.
        """
        ...


class PaymentStore(ABC):
    """Interface for payment and ticket persistence operations."""

    @abstractmethod
    def create_payment(
        self,
        reference: PaymentReference,
        amount: int,
        platform_fee: int,
        organizer_amount: int,
        currency: str,
        customer_email: str,
        event_id: EventId,
        metadata: PaymentMetadata,
    ) -> Payment:
        """Insert a PENDING payment.

        Raises:
            DuplicateReferenceError: If the reference is already taken.
        """
        ...

    @abstractmethod
    def get_payment(self, reference: PaymentReference) -> PaymentDetail | None:
        """Return a payment with its tickets, or None if not found."""
        ...

    @abstractmethod
    def complete_payment(
        self,
        reference: PaymentReference,
        drafts: list[TicketDraft],
        gateway_data: dict[str, Any] | None = None,
    ) -> Settlement:
        """Atomically mint tickets and mark the payment COMPLETED.

        Runs in one transaction: the payment row is locked and its status
        re-checked, capacity is recounted under lock for every ticket type
        involved, and either all drafts are inserted or the payment is marked
        FAILED with reason OVERSOLD. A payment that is already terminal is
        returned unchanged.

        Raises:
            PaymentNotFoundError: If the reference is unknown.
        """
        ...

    @abstractmethod
    def book_free_tickets(
        self, event_id: EventId, drafts: list[TicketDraft]
    ) -> tuple[Ticket, ...]:
        """Atomically mint tickets that carry no payment.

        Capacity is recounted under the same locks `complete_payment` takes,
        and no attendee may hold more than one ACTIVE or USED ticket for the
        event.

        Raises:
            InvalidTicketTypeError: If a ticket type no longer exists.
            InsufficientInventoryError: If a ticket type cannot take its drafts.
            AlreadyBookedError: If an attendee already holds a ticket.
        """
        ...

    @abstractmethod
    def fail_payment(
        self,
        reference: PaymentReference,
        reason: FailureReason,
        gateway_data: dict[str, Any] | None = None,
    ) -> Settlement:
        """Atomically mark a PENDING payment FAILED; terminal payments are unchanged.

        Raises:
            PaymentNotFoundError: If the reference is unknown.
        """
        ...

    @abstractmethod
    def delete_pending_payment(self, payment_id: PaymentId) -> None:
        """Delete a payment that is still PENDING and has no tickets.

        Raises:
            PaymentNotFoundError: If the payment does not exist.
            PaymentNotDeletableError: If it has left PENDING or owns tickets.
        """
        ...
