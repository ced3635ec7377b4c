"""Ticket confirmation emails.

Sending is fire-and-forget: a delivery failure is logged and never
undoes or blocks a settlement.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from django.conf import settings
from django.core.mail import send_mail

from events.domain import Event, Payment, Ticket

logger = logging.getLogger(__name__)


@dataclass
class _Recipient:
    email: str
    name: str
    ticket_types: list[str] = field(default_factory=list)
    confirmation_codes: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class _EventDetails:
    title: str
    date: str
    location: str
    ticket_type_names: dict[str, str]


def group_by_attendee(
    tickets: Iterable[Ticket], ticket_type_names: dict[str, str]
) -> list[_Recipient]:
    """One recipient per attendee email, compared case-insensitively."""
    groups: dict[str, _Recipient] = {}
    for ticket in tickets:
        key = ticket.attendee_email.lower()
        recipient = groups.setdefault(
            key, _Recipient(email=ticket.attendee_email, name=ticket.attendee_name)
        )
        type_name = ticket_type_names.get(str(ticket.ticket_type_id))
        if type_name and type_name not in recipient.ticket_types:
            recipient.ticket_types.append(type_name)
        recipient.confirmation_codes.append(ticket.confirmation_code)
    return list(groups.values())


class TicketNotifier:
    def __init__(self, from_email: str | None = None) -> None:
        self._from_email = from_email or settings.DEFAULT_FROM_EMAIL

    def send_confirmations(self, payment: Payment, tickets: Iterable[Ticket]) -> int:
        """Email each attendee their confirmation codes; returns emails sent."""
        snapshot = payment.metadata
        details = _EventDetails(
            title=snapshot.event_title,
            date=snapshot.event_date,
            location=snapshot.event_location,
            ticket_type_names=snapshot.ticket_type_names,
        )
        return self._deliver(payment.reference.value, details, tickets)

    def send_free_confirmations(self, event: Event, tickets: Iterable[Ticket]) -> int:
        """Same as `send_confirmations` for tickets booked without payment."""
        details = _EventDetails(
            title=event.name,
            date=event.starts_at.isoformat(),
            location=event.location,
            ticket_type_names={str(tt.id): tt.name for tt in event.ticket_types},
        )
        return self._deliver(f"free booking for {event.id}", details, tickets)

    def _deliver(self, context: str, details: _EventDetails, tickets: Iterable[Ticket]) -> int:
        sent = 0
        for recipient in group_by_attendee(tickets, details.ticket_type_names):
            body = "\n".join(
                [
                    f"Hi {recipient.name},",
                    "",
                    f"Your tickets for {details.title} are confirmed.",
                    f"Date: {details.date}",
                    f"Location: {details.location}",
                    f"Ticket type: {', '.join(recipient.ticket_types)}",
                    f"Confirmation: {', '.join(recipient.confirmation_codes)}",
                ]
            )
            try:
                send_mail(
                    subject=f"Your tickets for {details.title}",
                    message=body,
                    from_email=self._from_email,
                    recipient_list=[recipient.email],
                )
            except Exception:
                logger.exception(
                    "Failed to send ticket confirmation for %s to %s",
                    context,
                    recipient.email,
                )
                continue
            sent += 1
        return sent
