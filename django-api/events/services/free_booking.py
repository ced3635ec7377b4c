"""Free booking - issues zero-priced tickets without going through the gateway.

Tickets are minted straight away under the same row locks that settle paid
checkouts, so free and paid tickets share one capacity count.
"""

import logging
from dataclasses import dataclass

from events.domain import LineItem, Money, Ticket, TicketDraft, TicketTypeId
from events.domain.errors import (
    EventNotFoundError,
    InvalidTicketTypeError,
    ValidationError,
)
from events.domain.value_objects import generate_confirmation_code
from events.services.event_service import parse_event_id
from events.services.inventory import InventoryGuard
from events.services.notifications import TicketNotifier
from events.stores.interfaces import EventStore, PaymentStore

logger = logging.getLogger(__name__)

MAX_FREE_TICKETS_PER_ATTENDEE = 1


@dataclass(frozen=True)
class FreeBookingRequest:
    event_id: str
    line_items: tuple[LineItem, ...]


class FreeBookingService:
    def __init__(
        self,
        event_store: EventStore,
        ticket_store: PaymentStore,
        notifier: TicketNotifier | None = None,
    ) -> None:
        self._event_store = event_store
        self._ticket_store = ticket_store
        self._guard = InventoryGuard(event_store)
        self._notifier = notifier

    def book(self, request: FreeBookingRequest) -> tuple[Ticket, ...]:
        """Mint one ticket per line item for zero-priced ticket types.

        Raises:
            InvalidEventIdError: If the event ID is malformed.
            EventNotFoundError: If the event does not exist.
            InvalidTicketTypeError: If a ticket type is not on this event.
            ValidationError: If a ticket type is not free or more than one
                ticket is requested for an attendee.
            InsufficientInventoryError: If a ticket type is sold out.
            AlreadyBookedError: If an attendee already holds a ticket.
        """
        event = self._event_store.get_event(parse_event_id(request.event_id))
        if event is None:
            raise EventNotFoundError(request.event_id)

        ticket_types = {}
        attendees = set()
        for item in request.line_items:
            ticket_type = event.find_ticket_type(item.ticket_type_id)
            if ticket_type is None:
                raise InvalidTicketTypeError(item.ticket_type_id)
            if ticket_type.price.amount != 0:
                raise ValidationError(f"Ticket type {ticket_type.name} is not free")
            email = item.attendee_email.lower()
            if item.quantity > MAX_FREE_TICKETS_PER_ATTENDEE or email in attendees:
                raise ValidationError("Only 1 free ticket allowed per person")
            attendees.add(email)
            ticket_types[item.ticket_type_id] = ticket_type

        self._guard.ensure_available(ticket_types.values(), request.line_items)

        drafts = [
            TicketDraft(
                ticket_type_id=TicketTypeId.from_string(item.ticket_type_id),
                confirmation_code=generate_confirmation_code(),
                attendee_name=item.attendee_name,
                attendee_email=item.attendee_email,
                attendee_phone=item.attendee_phone,
                price=Money(0),
            )
            for item in request.line_items
        ]
        tickets = self._ticket_store.book_free_tickets(event.id, drafts)
        logger.info("Booked %d free tickets for event %s", len(tickets), event.id)

        if self._notifier is not None:
            self._notifier.send_free_confirmations(event, tickets)
        return tickets
