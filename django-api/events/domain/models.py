"""Domain models representing persisted state.

These are pure domain objects with no API input rules.
Django ORM models are in events/models.py (persistence layer).
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Self

from events.domain.fees import PaymentBreakdown
from events.domain.value_objects import (
    Capacity,
    EventId,
    Money,
    PaymentId,
    PaymentReference,
    TicketTypeId,
)


class PaymentStatus(Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not PaymentStatus.PENDING


class TicketStatus(Enum):
    ACTIVE = "ACTIVE"
    USED = "USED"
    REFUNDED = "REFUNDED"


# Statuses that consume capacity.
SOLD_TICKET_STATUSES = (TicketStatus.ACTIVE, TicketStatus.USED)


class FailureReason(Enum):
    GATEWAY_DECLINED = "GATEWAY_DECLINED"
    OVERSOLD = "OVERSOLD"


@dataclass(frozen=True)
class TicketType:
    """Domain representation of a TicketType."""

    id: TicketTypeId
    event_id: EventId
    name: str
    price: Money
    capacity: Capacity | None
    created_at: datetime

    @property
    def is_unlimited(self) -> bool:
        return self.capacity is None

    def can_admit(self, sold: int, quantity: int) -> bool:
        """Whether `quantity` more tickets fit on top of `sold`."""
        if self.capacity is None:
            return True
        return sold + quantity <= self.capacity.value


@dataclass(frozen=True)
class Event:
    """Domain representation of an Event."""

    id: EventId
    name: str
    description: str
    location: str
    image_url: str | None
    starts_at: datetime
    created_at: datetime
    updated_at: datetime
    ticket_types: tuple[TicketType, ...] = ()

    def find_ticket_type(self, ticket_type_id: str) -> TicketType | None:
        for ticket_type in self.ticket_types:
            if str(ticket_type.id) == ticket_type_id:
                return ticket_type
        return None


@dataclass(frozen=True)
class LineItem:
    """One requested ticket type with the attendee it is issued to."""

    ticket_type_id: str
    quantity: int
    attendee_name: str
    attendee_email: str
    attendee_phone: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "ticketTypeId": self.ticket_type_id,
            "quantity": self.quantity,
            "attendeeName": self.attendee_name,
            "attendeeEmail": self.attendee_email,
        }
        if self.attendee_phone:
            data["attendeePhone"] = self.attendee_phone
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(
            ticket_type_id=str(data["ticketTypeId"]),
            quantity=int(data["quantity"]),
            attendee_name=data["attendeeName"],
            attendee_email=data["attendeeEmail"],
            attendee_phone=data.get("attendeePhone") or None,
        )


@dataclass(frozen=True)
class PaymentMetadata:
    """Snapshot taken at checkout and replayed verbatim at settlement.

    Unit prices and names are captured alongside the line items so
    settlement never looks at live ticket-type data.
    """

    line_items: tuple[LineItem, ...]
    unit_prices: dict[str, int]
    ticket_type_names: dict[str, str]
    event_title: str
    event_date: str
    event_location: str
    breakdown: PaymentBreakdown

    def to_dict(self) -> dict[str, Any]:
        return {
            "tickets": [item.to_dict() for item in self.line_items],
            "unitPrices": dict(self.unit_prices),
            "ticketTypeNames": dict(self.ticket_type_names),
            "event": {
                "title": self.event_title,
                "date": self.event_date,
                "location": self.event_location,
            },
            "paymentBreakdown": self.breakdown.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        event = data.get("event") or {}
        return cls(
            line_items=tuple(LineItem.from_dict(item) for item in data["tickets"]),
            unit_prices={k: int(v) for k, v in data.get("unitPrices", {}).items()},
            ticket_type_names=dict(data.get("ticketTypeNames", {})),
            event_title=event.get("title", ""),
            event_date=event.get("date", ""),
            event_location=event.get("location", ""),
            breakdown=PaymentBreakdown.from_dict(data["paymentBreakdown"]),
        )


@dataclass(frozen=True)
class Ticket:
    """Domain representation of a minted Ticket.

    Free bookings have no payment.
    """

    id: str
    confirmation_code: str
    ticket_type_id: TicketTypeId
    payment_id: PaymentId | None
    event_id: EventId
    attendee_name: str
    attendee_email: str
    attendee_phone: str | None
    price: Money
    status: TicketStatus
    created_at: datetime


@dataclass(frozen=True)
class TicketDraft:
    """A ticket waiting to be minted by a settlement."""

    ticket_type_id: TicketTypeId
    confirmation_code: str
    attendee_name: str
    attendee_email: str
    attendee_phone: str | None
    price: Money


@dataclass(frozen=True)
class Payment:
    """Domain representation of one checkout attempt."""

    id: PaymentId
    reference: PaymentReference
    amount: Money
    platform_fee: Money
    organizer_amount: Money
    currency: str
    customer_email: str
    event_id: EventId
    status: PaymentStatus
    metadata: PaymentMetadata
    failure_reason: FailureReason | None
    paid_at: datetime | None
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Settlement:
    """Outcome of a ledger transition.

    `applied` is False when the payment was already terminal and nothing
    changed. `oversold` is True only when this transition fell back to FAILED
    because capacity ran out.
    """

    payment: Payment
    tickets: tuple[Ticket, ...] = ()
    applied: bool = False
    oversold: bool = False


@dataclass(frozen=True)
class PaymentDetail:
    """A payment together with the tickets minted for it."""

    payment: Payment
    tickets: tuple[Ticket, ...] = ()
