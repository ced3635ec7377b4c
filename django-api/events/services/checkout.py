"""Checkout - turns a ticket request into a pending payment at the gateway.

No tickets are minted here. The payment carries a snapshot of what was
requested and what it cost, and settlement later replays that snapshot.
"""

import logging
from dataclasses import dataclass

from events.domain import (
    LineItem,
    PaymentMetadata,
    PaymentReference,
    amounts_match,
    payment_breakdown,
)
from events.domain.errors import (
    AmountMismatchError,
    EventNotFoundError,
    GatewayInitFailedError,
    InvalidTicketTypeError,
    ValidationError,
)
from events.gateways import GatewayError, PaymentGateway
from events.services.event_service import parse_event_id
from events.services.inventory import InventoryGuard
from events.services.ledger import PaymentLedger
from events.stores.interfaces import EventStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutRequest:
    event_id: str
    line_items: tuple[LineItem, ...]
    amount: int
    customer_email: str


@dataclass(frozen=True)
class CheckoutResult:
    reference: str
    authorization_url: str
    access_code: str


class CheckoutService:
    """Validates a checkout, prices it server-side and hands off to the gateway."""

    def __init__(
        self,
        event_store: EventStore,
        ledger: PaymentLedger,
        gateway: PaymentGateway,
        callback_url: str,
        currency: str = "NGN",
        reference_prefix: str = "BOX",
    ) -> None:
        self._event_store = event_store
        self._ledger = ledger
        self._gateway = gateway
        self._guard = InventoryGuard(event_store)
        self._callback_url = callback_url
        self._currency = currency
        self._reference_prefix = reference_prefix

    def checkout(self, request: CheckoutRequest) -> CheckoutResult:
        """Open a PENDING payment and initialize it with the gateway.

        Raises:
            InvalidEventIdError: If the event ID is malformed.
            EventNotFoundError: If the event does not exist.
            InvalidTicketTypeError: If a ticket type is not on this event.
            InsufficientInventoryError: If a ticket type cannot cover the request.
            ValidationError: If nothing in the order costs money.
            AmountMismatchError: If the client total disagrees with ours.
            GatewayInitFailedError: If the gateway refuses; the payment is removed.
        """
        event = self._event_store.get_event(parse_event_id(request.event_id))
        if event is None:
            raise EventNotFoundError(request.event_id)

        ticket_types = {}
        for item in request.line_items:
            ticket_type = event.find_ticket_type(item.ticket_type_id)
            if ticket_type is None:
                raise InvalidTicketTypeError(item.ticket_type_id)
            ticket_types[item.ticket_type_id] = ticket_type

        self._guard.ensure_available(ticket_types.values(), request.line_items)

        subtotal = sum(
            ticket_types[item.ticket_type_id].price.amount * item.quantity
            for item in request.line_items
        )
        if subtotal == 0:
            raise ValidationError("Free tickets must be booked without payment")
        breakdown = payment_breakdown(subtotal)
        if not amounts_match(request.amount, breakdown.total_amount):
            logger.warning(
                "Amount mismatch for event %s: client %s, server %s",
                event.id,
                request.amount,
                breakdown.total_amount,
            )
            raise AmountMismatchError(request.amount, breakdown.total_amount)

        reference = PaymentReference.generate(self._reference_prefix)
        metadata = PaymentMetadata(
            line_items=request.line_items,
            unit_prices={tt_id: tt.price.amount for tt_id, tt in ticket_types.items()},
            ticket_type_names={tt_id: tt.name for tt_id, tt in ticket_types.items()},
            event_title=event.name,
            event_date=event.starts_at.isoformat(),
            event_location=event.location,
            breakdown=breakdown,
        )
        payment = self._ledger.create(
            reference=reference,
            amount=breakdown.total_amount,
            platform_fee=breakdown.platform_amount,
            organizer_amount=breakdown.organizer_amount,
            customer_email=request.customer_email,
            event_id=event.id,
            metadata=metadata,
        )

        try:
            handoff = self._gateway.initialize(
                reference=reference.value,
                amount=breakdown.total_amount,
                currency=self._currency,
                email=request.customer_email,
                callback_url=self._callback_url,
                metadata={
                    "payment_id": str(payment.id),
                    "event_id": str(event.id),
                    "event_title": event.name,
                },
            )
        except GatewayError as exc:
            logger.warning("Gateway refused to initialize %s: %s", reference, exc)
            self._ledger.delete(payment.id)
            raise GatewayInitFailedError() from exc

        return CheckoutResult(
            reference=reference.value,
            authorization_url=handoff.authorization_url,
            access_code=handoff.access_code,
        )
