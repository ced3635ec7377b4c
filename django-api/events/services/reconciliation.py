"""Reconciliation - decides how a payment ends once the gateway has spoken.

Two entry points feed the same settlement path: the customer's browser
polling `verify_by_reference` after the gateway redirect, and the gateway
pushing a signed webhook. Either may arrive first, both may arrive, and
either may be retried; the ledger's transition makes that safe.
"""

import json
import logging
from typing import Any

from events.domain import (
    FailureReason,
    Money,
    Payment,
    PaymentDetail,
    PaymentReference,
    PaymentStatus,
    TicketDraft,
    TicketTypeId,
)
from events.domain.errors import (
    InvalidWebhookSignatureError,
    OversoldAtSettlementError,
    PaidAfterFailureError,
    ValidationError,
    VerificationUnavailableError,
)
from events.domain.value_objects import generate_confirmation_code
from events.gateways import GatewayError, PaymentGateway
from events.services.ledger import PaymentLedger
from events.services.notifications import TicketNotifier

logger = logging.getLogger(__name__)

CHARGE_SUCCESS = "charge.success"
CHARGE_FAILED = "charge.failed"


def build_ticket_drafts(payment: Payment) -> list[TicketDraft]:
    """One draft per purchased unit, taken only from the checkout snapshot."""
    snapshot = payment.metadata
    drafts = []
    for item in snapshot.line_items:
        price = Money(snapshot.unit_prices[item.ticket_type_id])
        for _ in range(item.quantity):
            drafts.append(
                TicketDraft(
                    ticket_type_id=TicketTypeId.from_string(item.ticket_type_id),
                    confirmation_code=generate_confirmation_code(),
                    attendee_name=item.attendee_name,
                    attendee_email=item.attendee_email,
                    attendee_phone=item.attendee_phone,
                    price=price,
                )
            )
    return drafts


class ReconciliationService:
    def __init__(
        self,
        ledger: PaymentLedger,
        gateway: PaymentGateway,
        notifier: TicketNotifier | None = None,
    ) -> None:
        self._ledger = ledger
        self._gateway = gateway
        self._notifier = notifier

    def verify_by_reference(self, reference: str) -> PaymentDetail:
        """Ask the gateway how a payment went and settle it accordingly.

        Payments that are already settled are returned without asking the
        gateway. A payment the customer is still completing stays PENDING.

        Raises:
            PaymentNotFoundError: If the reference is unknown.
            VerificationUnavailableError: If the gateway could not be asked.
            OversoldAtSettlementError: If the charge succeeded but tickets ran out.
        """
        detail = self._ledger.get(PaymentReference(reference))
        if detail.payment.status.is_terminal:
            return detail

        try:
            verification = self._gateway.verify(reference)
        except GatewayError as exc:
            logger.warning("Could not verify %s with the gateway: %s", reference, exc)
            raise VerificationUnavailableError(reference) from exc

        if verification.in_flight:
            logger.info("Payment %s still %s at the gateway", reference, verification.status)
            return detail
        return self.finalize(reference, verification.succeeded, verification.data)

    def on_webhook(self, payload: bytes, signature: str) -> PaymentDetail | None:
        """Settle a payment from a gateway push.

        Returns None for events that do not settle anything.

        Raises:
            InvalidWebhookSignatureError: If the signature does not match.
            ValidationError: If the payload is not a usable event.
            PaymentNotFoundError: If the reference is unknown.
            OversoldAtSettlementError: If the charge succeeded but tickets ran out.
        """
        if not self._gateway.verify_signature(payload, signature):
            logger.warning("Rejected webhook with invalid signature")
            raise InvalidWebhookSignatureError()

        try:
            body = json.loads(payload)
        except (ValueError, UnicodeDecodeError) as exc:
            raise ValidationError("Invalid webhook payload") from exc
        if not isinstance(body, dict):
            raise ValidationError("Invalid webhook payload")

        event = body.get("event")
        if event not in (CHARGE_SUCCESS, CHARGE_FAILED):
            logger.debug("Ignoring webhook event %s", event)
            return None
        data = body.get("data") or {}
        if not isinstance(data, dict):
            raise ValidationError("Invalid webhook payload")
        reference = data.get("reference")
        if not reference:
            raise ValidationError("Webhook event has no reference")

        succeeded = event == CHARGE_SUCCESS and data.get("status") == "success"
        return self.finalize(reference, succeeded, data)

    def finalize(
        self,
        reference: str,
        gateway_says_success: bool,
        gateway_data: dict[str, Any] | None = None,
    ) -> PaymentDetail:
        """Settle a payment; safe to call any number of times.

        Raises:
            PaymentNotFoundError: If the reference is unknown.
            OversoldAtSettlementError: If this call found the tickets sold out
                after the gateway had already taken the money.
            PaidAfterFailureError: If the gateway reports success for a
                payment already settled as declined.
        """
        ref = PaymentReference(reference)
        detail = self._ledger.get(ref)

        if not gateway_says_success:
            settlement = self._ledger.transition(ref, PaymentStatus.FAILED, [], gateway_data)
            return PaymentDetail(payment=settlement.payment, tickets=settlement.tickets)

        drafts = build_ticket_drafts(detail.payment)
        settlement = self._ledger.transition(ref, PaymentStatus.COMPLETED, drafts, gateway_data)
        if settlement.oversold:
            logger.critical(
                "Payment %s (%s kobo from %s) succeeded at the gateway but tickets "
                "sold out; settled as FAILED and needs a manual refund",
                reference,
                settlement.payment.amount.amount,
                settlement.payment.customer_email,
            )
            raise OversoldAtSettlementError(reference)
        if (
            not settlement.applied
            and settlement.payment.failure_reason is FailureReason.GATEWAY_DECLINED
        ):
            logger.critical(
                "Payment %s (%s kobo from %s) was charged after it had been settled "
                "as FAILED; needs a manual refund or reissue",
                reference,
                settlement.payment.amount.amount,
                settlement.payment.customer_email,
            )
            raise PaidAfterFailureError(reference)

        if settlement.applied and self._notifier is not None:
            self._notifier.send_confirmations(settlement.payment, settlement.tickets)
        return PaymentDetail(payment=settlement.payment, tickets=settlement.tickets)
