"""Tests for booking zero-priced tickets without payment.

Run with: pytest tests/test_free_booking.py -v
"""

from uuid import uuid4

import pytest

from events import models
from events.domain import EventId, LineItem, Money, TicketDraft, TicketTypeId
from events.domain.errors import (
    AlreadyBookedError,
    EventNotFoundError,
    InsufficientInventoryError,
    InvalidTicketTypeError,
    ValidationError,
)
from events.services.free_booking import FreeBookingRequest, FreeBookingService
from events.services.notifications import TicketNotifier
from events.stores.django_store import DjangoEventStore, DjangoPaymentStore


@pytest.fixture
def free_booking_service(db) -> FreeBookingService:
    return FreeBookingService(
        event_store=DjangoEventStore(),
        ticket_store=DjangoPaymentStore(),
        notifier=TicketNotifier(),
    )


def booking(event, *orders) -> FreeBookingRequest:
    """Build a request from (ticket_type, attendee_email, quantity) tuples."""
    return FreeBookingRequest(
        event_id=str(event.id),
        line_items=tuple(
            LineItem(
                ticket_type_id=str(ticket_type.id),
                quantity=quantity,
                attendee_name="Ada Obi",
                attendee_email=email,
            )
            for ticket_type, email, quantity in orders
        ),
    )


@pytest.mark.django_db
class TestFreeBooking:
    def test_mints_tickets_without_payment(
        self, free_booking_service, event, free_ticket_type, mailoutbox
    ):
        tickets = free_booking_service.book(
            booking(
                event,
                (free_ticket_type, "ada@example.com", 1),
                (free_ticket_type, "femi@example.com", 1),
            )
        )

        assert len(tickets) == 2
        assert all(t.payment_id is None for t in tickets)
        assert all(t.price.amount == 0 for t in tickets)
        assert models.Ticket.objects.filter(payment__isnull=True).count() == 2
        assert not models.Payment.objects.exists()
        assert sorted(m.to[0] for m in mailoutbox) == ["ada@example.com", "femi@example.com"]
        assert "Ticket type: Community" in mailoutbox[0].body

    def test_paid_ticket_type_is_rejected(self, free_booking_service, event, ticket_type):
        with pytest.raises(ValidationError) as exc_info:
            free_booking_service.book(booking(event, (ticket_type, "ada@example.com", 1)))
        assert exc_info.value.message == "Ticket type Regular is not free"
        assert not models.Ticket.objects.exists()

    def test_more_than_one_per_attendee_is_rejected(
        self, free_booking_service, event, free_ticket_type
    ):
        with pytest.raises(ValidationError):
            free_booking_service.book(booking(event, (free_ticket_type, "ada@example.com", 2)))

    def test_second_booking_by_same_attendee_is_rejected(
        self, free_booking_service, event, free_ticket_type
    ):
        free_booking_service.book(booking(event, (free_ticket_type, "ada@example.com", 1)))

        with pytest.raises(AlreadyBookedError):
            free_booking_service.book(booking(event, (free_ticket_type, "ada@example.com", 1)))
        assert models.Ticket.objects.count() == 1

    def test_sold_out_free_ticket_type(self, free_booking_service, event, free_ticket_type):
        free_booking_service.book(
            booking(
                event,
                (free_ticket_type, "ada@example.com", 1),
                (free_ticket_type, "femi@example.com", 1),
            )
        )

        with pytest.raises(InsufficientInventoryError):
            free_booking_service.book(booking(event, (free_ticket_type, "tolu@example.com", 1)))

    def test_email_match_ignores_case(self, free_booking_service, event, free_ticket_type):
        free_booking_service.book(booking(event, (free_ticket_type, "ada@example.com", 1)))

        with pytest.raises(AlreadyBookedError):
            free_booking_service.book(booking(event, (free_ticket_type, "ADA@Example.com", 1)))

    def test_same_attendee_twice_in_one_request(
        self, free_booking_service, event, free_ticket_type
    ):
        with pytest.raises(ValidationError):
            free_booking_service.book(
                booking(
                    event,
                    (free_ticket_type, "ada@example.com", 1),
                    (free_ticket_type, "ada@example.com", 1),
                )
            )
        assert not models.Ticket.objects.exists()

    def test_refunded_ticket_frees_the_seat(self, free_booking_service, event, free_ticket_type):
        tickets = free_booking_service.book(
            booking(
                event,
                (free_ticket_type, "ada@example.com", 1),
                (free_ticket_type, "femi@example.com", 1),
            )
        )
        models.Ticket.objects.filter(id=tickets[0].id).update(
            status=models.Ticket.STATUS_REFUNDED
        )

        rebooked = free_booking_service.book(
            booking(event, (free_ticket_type, "tolu@example.com", 1))
        )

        assert len(rebooked) == 1

    def test_ticket_type_of_another_event_is_rejected(
        self, free_booking_service, make_event, event
    ):
        other = make_event(name="Comedy Night")
        foreign = models.TicketType.objects.create(event=other, name="Free", price=0)

        with pytest.raises(InvalidTicketTypeError):
            free_booking_service.book(booking(event, (foreign, "ada@example.com", 1)))

    def test_unknown_event(self, free_booking_service, event, free_ticket_type):
        request = booking(event, (free_ticket_type, "ada@example.com", 1))

        with pytest.raises(EventNotFoundError):
            free_booking_service.book(FreeBookingRequest(str(uuid4()), request.line_items))


@pytest.mark.django_db
class TestBookFreeTicketsStore:
    def test_rechecks_capacity_under_lock(self, event, free_ticket_type):
        """The store refuses even when the advisory check was skipped."""
        store = DjangoPaymentStore()
        models.Ticket.objects.create(
            confirmation_code="TAKEN001",
            ticket_type=free_ticket_type,
            event=event,
            attendee_name="Ada Obi",
            attendee_email="ada@example.com",
            price=0,
        )
        models.Ticket.objects.create(
            confirmation_code="TAKEN002",
            ticket_type=free_ticket_type,
            event=event,
            attendee_name="Femi Ade",
            attendee_email="femi@example.com",
            price=0,
        )
        draft = TicketDraft(
            ticket_type_id=TicketTypeId(free_ticket_type.id),
            confirmation_code="NEWCODE1",
            attendee_name="Tolu Bello",
            attendee_email="tolu@example.com",
            attendee_phone=None,
            price=Money(0),
        )

        with pytest.raises(InsufficientInventoryError):
            store.book_free_tickets(EventId(event.id), [draft])
