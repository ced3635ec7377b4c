"""Django ORM implementation of the event and payment stores."""

import logging
from collections import Counter
from typing import Any
from uuid import UUID

from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from events import models
from events.domain import (
    Capacity,
    Event,
    EventId,
    FailureReason,
    Money,
    Payment,
    PaymentDetail,
    PaymentId,
    PaymentMetadata,
    PaymentReference,
    PaymentStatus,
    Settlement,
    Ticket,
    TicketDraft,
    TicketStatus,
    TicketType,
    TicketTypeId,
)
from events.domain.errors import (
    AlreadyBookedError,
    DuplicateReferenceError,
    InsufficientInventoryError,
    InvalidTicketTypeError,
    PaymentNotDeletableError,
    PaymentNotFoundError,
)
from events.domain.models import SOLD_TICKET_STATUSES
from events.domain.value_objects import generate_confirmation_code
from events.stores.interfaces import EventStore, PaymentStore

logger = logging.getLogger(__name__)

SOLD_STATUSES = [status.value for status in SOLD_TICKET_STATUSES]


def _to_ticket_type(row: models.TicketType) -> TicketType:
    return TicketType(
        id=TicketTypeId(row.id),
        event_id=EventId(row.event_id),
        name=row.name,
        price=Money(row.price),
        capacity=Capacity(row.capacity) if row.capacity is not None else None,
        created_at=row.created_at,
    )


def _to_event(row: models.Event) -> Event:
    return Event(
        id=EventId(row.id),
        name=row.name,
        description=row.description,
        location=row.location,
        image_url=row.image_url,
        starts_at=row.starts_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
        ticket_types=tuple(_to_ticket_type(tt) for tt in row.ticket_types.all()),
    )


def _to_payment(row: models.Payment) -> Payment:
    return Payment(
        id=PaymentId(row.id),
        reference=PaymentReference(row.reference),
        amount=Money(row.amount),
        platform_fee=Money(row.platform_fee),
        organizer_amount=Money(row.organizer_amount),
        currency=row.currency,
        customer_email=row.customer_email,
        event_id=EventId(row.event_id),
        status=PaymentStatus(row.status),
        metadata=PaymentMetadata.from_dict(row.metadata),
        failure_reason=FailureReason(row.failure_reason) if row.failure_reason else None,
        paid_at=row.paid_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _to_ticket(row: models.Ticket) -> Ticket:
    return Ticket(
        id=str(row.id),
        confirmation_code=row.confirmation_code,
        ticket_type_id=TicketTypeId(row.ticket_type_id),
        payment_id=PaymentId(row.payment_id) if row.payment_id else None,
        event_id=EventId(row.event_id),
        attendee_name=row.attendee_name,
        attendee_email=row.attendee_email,
        attendee_phone=row.attendee_phone,
        price=Money(row.price),
        status=TicketStatus(row.status),
        created_at=row.created_at,
    )


class DjangoEventStore(EventStore):
    """PostgreSQL-backed event store using Django ORM."""

    def list_events(self) -> list[Event]:
        rows = models.Event.objects.prefetch_related("ticket_types").order_by("-created_at")
        return [_to_event(row) for row in rows]

    def get_event(self, event_id: EventId) -> Event | None:
        row = (
            models.Event.objects.prefetch_related("ticket_types")
            .filter(id=event_id.value)
            .first()
        )
        return _to_event(row) if row else None

    def count_sold(self, ticket_type_id: TicketTypeId) -> int:
        return models.Ticket.objects.filter(
            ticket_type_id=ticket_type_id.value, status__in=SOLD_STATUSES
        ).count()


class DjangoPaymentStore(PaymentStore):
    """PostgreSQL-backed payment store using Django ORM.

    Settlement methods rely on row locks (`SELECT ... FOR UPDATE`) so that
    concurrent settlements of one payment, or of payments competing for the
    same ticket type, are serialized by the database.
    """

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
        try:
            with transaction.atomic():
                row = models.Payment.objects.create(
                    reference=reference.value,
                    amount=amount,
                    platform_fee=platform_fee,
                    organizer_amount=organizer_amount,
                    currency=currency,
                    customer_email=customer_email,
                    event_id=event_id.value,
                    status=models.Payment.STATUS_PENDING,
                    metadata=metadata.to_dict(),
                )
        except IntegrityError as exc:
            if models.Payment.objects.filter(reference=reference.value).exists():
                raise DuplicateReferenceError(reference.value) from exc
            raise
        return _to_payment(row)

    def get_payment(self, reference: PaymentReference) -> PaymentDetail | None:
        row = models.Payment.objects.filter(reference=reference.value).first()
        if row is None:
            return None
        return PaymentDetail(payment=_to_payment(row), tickets=self._tickets_for(row))

    def complete_payment(
        self,
        reference: PaymentReference,
        drafts: list[TicketDraft],
        gateway_data: dict[str, Any] | None = None,
    ) -> Settlement:
        with transaction.atomic():
            row = self._lock_payment(reference)
            if row.status != models.Payment.STATUS_PENDING:
                return Settlement(payment=_to_payment(row), tickets=self._tickets_for(row))

            requested = Counter(str(draft.ticket_type_id) for draft in drafts)
            locked = self._lock_ticket_types(requested)
            short = self._first_shortfall(requested, locked)
            if short is not None:
                logger.warning("Cannot mint %s for %s", short, reference)
                return self._mark_oversold(row, gateway_data)

            tickets = self._insert_tickets(drafts, event_id=row.event_id, payment=row)
            row.status = models.Payment.STATUS_COMPLETED
            row.paid_at = timezone.now()
            row.gateway_data = gateway_data
            row.save(update_fields=["status", "paid_at", "gateway_data", "updated_at"])
            return Settlement(
                payment=_to_payment(row),
                tickets=tuple(_to_ticket(t) for t in tickets),
                applied=True,
            )

    def book_free_tickets(
        self, event_id: EventId, drafts: list[TicketDraft]
    ) -> tuple[Ticket, ...]:
        with transaction.atomic():
            requested = Counter(str(draft.ticket_type_id) for draft in drafts)
            locked = self._lock_ticket_types(requested)
            short = self._first_shortfall(requested, locked)
            if short is not None:
                if short not in locked:
                    raise InvalidTicketTypeError(short)
                raise InsufficientInventoryError(locked[short].name)

            same_attendee = Q()
            for draft in drafts:
                same_attendee |= Q(attendee_email__iexact=draft.attendee_email)
            holder = (
                models.Ticket.objects.filter(
                    same_attendee, event_id=event_id.value, status__in=SOLD_STATUSES
                )
                .values_list("attendee_email", flat=True)
                .first()
            )
            if holder is not None:
                raise AlreadyBookedError(holder)

            tickets = self._insert_tickets(drafts, event_id=event_id.value)
            return tuple(_to_ticket(t) for t in tickets)

    def fail_payment(
        self,
        reference: PaymentReference,
        reason: FailureReason,
        gateway_data: dict[str, Any] | None = None,
    ) -> Settlement:
        with transaction.atomic():
            row = self._lock_payment(reference)
            if row.status != models.Payment.STATUS_PENDING:
                return Settlement(payment=_to_payment(row), tickets=self._tickets_for(row))
            self._set_failed(row, reason, gateway_data)
            return Settlement(payment=_to_payment(row), applied=True)

    def delete_pending_payment(self, payment_id: PaymentId) -> None:
        with transaction.atomic():
            row = (
                models.Payment.objects.select_for_update()
                .filter(id=payment_id.value)
                .first()
            )
            if row is None:
                raise PaymentNotFoundError(str(payment_id))
            if row.status != models.Payment.STATUS_PENDING or row.tickets.exists():
                raise PaymentNotDeletableError(str(payment_id))
            row.delete()

    def _lock_payment(self, reference: PaymentReference) -> models.Payment:
        row = (
            models.Payment.objects.select_for_update()
            .filter(reference=reference.value)
            .first()
        )
        if row is None:
            raise PaymentNotFoundError(reference.value)
        return row

    def _lock_ticket_types(self, requested: Counter[str]) -> dict[str, models.TicketType]:
        """Lock the requested ticket types in id order."""
        return {
            str(tt.id): tt
            for tt in models.TicketType.objects.select_for_update()
            .filter(id__in=list(requested))
            .order_by("id")
        }

    def _first_shortfall(
        self, requested: Counter[str], locked: dict[str, models.TicketType]
    ) -> str | None:
        """Return the first ticket type id that cannot take its quantity."""
        for ticket_type_id, quantity in requested.items():
            tt_row = locked.get(ticket_type_id)
            if tt_row is None:
                logger.warning("Ticket type %s no longer exists", ticket_type_id)
                return ticket_type_id
            sold = models.Ticket.objects.filter(
                ticket_type_id=tt_row.id, status__in=SOLD_STATUSES
            ).count()
            if not _to_ticket_type(tt_row).can_admit(sold, quantity):
                logger.warning(
                    "Ticket type %s has %s sold of %s, cannot add %s",
                    ticket_type_id,
                    sold,
                    tt_row.capacity,
                    quantity,
                )
                return ticket_type_id
        return None

    def _insert_tickets(
        self,
        drafts: list[TicketDraft],
        event_id: UUID,
        payment: models.Payment | None = None,
    ) -> list[models.Ticket]:
        """Insert one ACTIVE ticket per draft.

        A confirmation code collision is retried once with fresh codes.
        """
        rows = [
            models.Ticket(
                confirmation_code=draft.confirmation_code,
                ticket_type_id=draft.ticket_type_id.value,
                payment=payment,
                event_id=event_id,
                attendee_name=draft.attendee_name,
                attendee_email=draft.attendee_email,
                attendee_phone=draft.attendee_phone,
                price=draft.price.amount,
                status=models.Ticket.STATUS_ACTIVE,
            )
            for draft in drafts
        ]
        try:
            with transaction.atomic():
                return models.Ticket.objects.bulk_create(rows)
        except IntegrityError:
            logger.warning("Confirmation code collision, drawing %d new codes", len(rows))
        for row in rows:
            row.confirmation_code = generate_confirmation_code()
        with transaction.atomic():
            return models.Ticket.objects.bulk_create(rows)

    def _tickets_for(self, row: models.Payment) -> tuple[Ticket, ...]:
        return tuple(_to_ticket(t) for t in row.tickets.order_by("created_at", "id"))

    def _mark_oversold(
        self, row: models.Payment, gateway_data: dict[str, Any] | None
    ) -> Settlement:
        self._set_failed(row, FailureReason.OVERSOLD, gateway_data)
        return Settlement(payment=_to_payment(row), applied=True, oversold=True)

    def _set_failed(
        self,
        row: models.Payment,
        reason: FailureReason,
        gateway_data: dict[str, Any] | None,
    ) -> None:
        row.status = models.Payment.STATUS_FAILED
        row.failure_reason = reason.value
        row.gateway_data = gateway_data
        row.save(update_fields=["status", "failure_reason", "gateway_data", "updated_at"])
