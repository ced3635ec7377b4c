"""Payment ledger - owns the lifecycle of Payment records.

A payment is created PENDING, moves to COMPLETED or FAILED exactly once,
and may only be deleted while still PENDING with no tickets.
"""

import logging
from typing import Any

from events.domain import (
    EventId,
    FailureReason,
    Payment,
    PaymentDetail,
    PaymentId,
    PaymentMetadata,
    PaymentReference,
    PaymentStatus,
    Settlement,
    TicketDraft,
)
from events.domain.errors import PaymentNotFoundError
from events.stores.interfaces import PaymentStore

logger = logging.getLogger(__name__)


class PaymentLedger:
    def __init__(self, store: PaymentStore, currency: str = "NGN") -> None:
        self._store = store
        self._currency = currency

    def create(
        self,
        reference: PaymentReference,
        amount: int,
        platform_fee: int,
        organizer_amount: int,
        customer_email: str,
        event_id: EventId,
        metadata: PaymentMetadata,
    ) -> Payment:
        """Record a new PENDING payment.

        Raises:
            DuplicateReferenceError: If the reference already exists.
        """
        payment = self._store.create_payment(
            reference=reference,
            amount=amount,
            platform_fee=platform_fee,
            organizer_amount=organizer_amount,
            currency=self._currency,
            customer_email=customer_email,
            event_id=event_id,
            metadata=metadata,
        )
        logger.info("Created pending payment %s for event %s", reference, event_id)
        return payment

    def get(self, reference: PaymentReference) -> PaymentDetail:
        detail = self._store.get_payment(reference)
        if detail is None:
            raise PaymentNotFoundError(reference.value)
        return detail

    def transition(
        self,
        reference: PaymentReference,
        target: PaymentStatus,
        tickets_to_mint: list[TicketDraft],
        gateway_data: dict[str, Any] | None = None,
    ) -> Settlement:
        """Move a PENDING payment to a terminal status.

        Completing mints `tickets_to_mint` in the same transaction, falling
        back to FAILED if capacity no longer allows it. Re-entering on a
        terminal payment is a no-op that returns its current state.

        Raises:
            PaymentNotFoundError: If the reference is unknown.
            ValueError: If target is PENDING, or completing with no tickets.
        """
        if target is PaymentStatus.COMPLETED:
            if not tickets_to_mint:
                raise ValueError("Completing a payment requires tickets to mint")
            settlement = self._store.complete_payment(reference, tickets_to_mint, gateway_data)
        elif target is PaymentStatus.FAILED:
            settlement = self._store.fail_payment(
                reference, FailureReason.GATEWAY_DECLINED, gateway_data
            )
        else:
            raise ValueError(f"Cannot transition a payment to {target.value}")

        if settlement.applied:
            logger.info(
                "Payment %s settled as %s (%d tickets)",
                reference,
                settlement.payment.status.value,
                len(settlement.tickets),
            )
        else:
            logger.info(
                "Payment %s already %s, nothing to do",
                reference,
                settlement.payment.status.value,
            )
        return settlement

    def delete(self, payment_id: PaymentId) -> None:
        """Remove a PENDING payment that never reached the gateway.

        Raises:
            PaymentNotFoundError: If the payment does not exist.
            PaymentNotDeletableError: If it is no longer PENDING or has tickets.
        """
        self._store.delete_pending_payment(payment_id)
        logger.info("Deleted pending payment %s", payment_id)
