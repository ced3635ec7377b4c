"""Tests for settling payments from verification polls and webhooks.

Run with: pytest tests/test_reconciliation.py -v
"""

import json
from unittest.mock import Mock

import pytest
import requests

from events import models
from events.domain import FailureReason, PaymentStatus
from events.domain.errors import (
    InvalidWebhookSignatureError,
    OversoldAtSettlementError,
    PaidAfterFailureError,
    PaymentNotFoundError,
    ValidationError,
    VerificationUnavailableError,
)
from events.gateways import GatewayError, PaystackGateway
from events.services.reconciliation import ReconciliationService, build_ticket_drafts


@pytest.fixture
def pending(make_pending_payment, event, ticket_type):
    return make_pending_payment(event, ticket_type)


@pytest.mark.django_db
class TestVerifyByReference:
    def test_successful_charge_completes_and_mints(
        self, reconciliation_service, fake_gateway, pending, mailoutbox
    ):
        detail = reconciliation_service.verify_by_reference(pending.reference.value)

        assert detail.payment.status is PaymentStatus.COMPLETED
        assert len(detail.tickets) == 1
        assert fake_gateway.verified == [pending.reference.value]
        row = models.Payment.objects.get(id=pending.id.value)
        assert row.gateway_data == {"reference": pending.reference.value, "status": "success"}
        assert len(mailoutbox) == 1
        assert detail.tickets[0].confirmation_code in mailoutbox[0].body

    def test_failed_charge_fails_payment(
        self, reconciliation_service, fake_gateway, pending, mailoutbox
    ):
        fake_gateway.verify_status = "failed"

        detail = reconciliation_service.verify_by_reference(pending.reference.value)

        assert detail.payment.status is PaymentStatus.FAILED
        assert detail.payment.failure_reason is FailureReason.GATEWAY_DECLINED
        assert detail.tickets == ()
        assert not models.Ticket.objects.exists()
        assert mailoutbox == []

    @pytest.mark.parametrize("gateway_status", ["abandoned", "ongoing"])
    def test_unpaid_charge_stays_pending(
        self, reconciliation_service, fake_gateway, pending, gateway_status
    ):
        fake_gateway.verify_status = gateway_status

        detail = reconciliation_service.verify_by_reference(pending.reference.value)

        assert detail.payment.status is PaymentStatus.PENDING
        assert models.Payment.objects.get(id=pending.id.value).status == "PENDING"

    def test_unreachable_gateway_leaves_payment_pending(
        self, reconciliation_service, fake_gateway, pending
    ):
        fake_gateway.verify_error = GatewayError("timeout")

        with pytest.raises(VerificationUnavailableError):
            reconciliation_service.verify_by_reference(pending.reference.value)
        assert models.Payment.objects.get(id=pending.id.value).status == "PENDING"

    def test_settled_payment_is_not_verified_again(
        self, reconciliation_service, fake_gateway, pending
    ):
        first = reconciliation_service.verify_by_reference(pending.reference.value)

        second = reconciliation_service.verify_by_reference(pending.reference.value)

        assert len(fake_gateway.verified) == 1
        assert second.tickets == first.tickets

    def test_unknown_reference(self, reconciliation_service, fake_gateway, db):
        with pytest.raises(PaymentNotFoundError):
            reconciliation_service.verify_by_reference("BOX_0_missing")
        assert fake_gateway.verified == []

    def test_tickets_use_checkout_price_not_current_price(
        self, reconciliation_service, pending, ticket_type
    ):
        ticket_type.price = 900000
        ticket_type.save()

        detail = reconciliation_service.verify_by_reference(pending.reference.value)

        assert [t.price.amount for t in detail.tickets] == [500000]


@pytest.mark.django_db
class TestVerifyWithPaystack:
    @pytest.mark.parametrize(
        "status_code, message",
        [(401, "Invalid key"), (429, "Too many requests")],
    )
    def test_gateway_refusal_leaves_payment_pending(
        self, ledger, pending, status_code, message
    ):
        session = Mock(spec=requests.Session)
        reply = Mock(status_code=status_code)
        reply.json.return_value = {"status": False, "message": message}
        session.request.return_value = reply
        service = ReconciliationService(ledger, PaystackGateway("sk_test", session=session))

        with pytest.raises(VerificationUnavailableError):
            service.verify_by_reference(pending.reference.value)

        row = models.Payment.objects.get(id=pending.id.value)
        assert row.status == "PENDING"
        assert row.failure_reason is None


@pytest.mark.django_db
class TestWebhook:
    def test_invalid_signature_is_rejected(self, reconciliation_service, pending, signed_webhook):
        payload, _ = signed_webhook(pending.reference.value)

        with pytest.raises(InvalidWebhookSignatureError):
            reconciliation_service.on_webhook(payload, "bad")
        assert models.Payment.objects.get(id=pending.id.value).status == "PENDING"

    def test_charge_success_completes_payment(
        self, reconciliation_service, fake_gateway, pending, signed_webhook
    ):
        detail = reconciliation_service.on_webhook(*signed_webhook(pending.reference.value))

        assert detail.payment.status is PaymentStatus.COMPLETED
        assert len(detail.tickets) == 1
        assert fake_gateway.verified == []

    def test_charge_failed_fails_payment(self, reconciliation_service, pending, signed_webhook):
        detail = reconciliation_service.on_webhook(
            *signed_webhook(pending.reference.value, event="charge.failed", status="failed")
        )

        assert detail.payment.status is PaymentStatus.FAILED

    def test_success_event_with_failed_status_fails_payment(
        self, reconciliation_service, pending, signed_webhook
    ):
        detail = reconciliation_service.on_webhook(
            *signed_webhook(pending.reference.value, status="abandoned")
        )

        assert detail.payment.status is PaymentStatus.FAILED

    def test_unrelated_event_is_ignored(self, reconciliation_service, pending, signed_webhook):
        result = reconciliation_service.on_webhook(
            *signed_webhook(pending.reference.value, event="transfer.success")
        )

        assert result is None
        assert models.Payment.objects.get(id=pending.id.value).status == "PENDING"

    def test_malformed_body_is_rejected(self, reconciliation_service, sign_payload):
        payload = b"not json"

        with pytest.raises(ValidationError):
            reconciliation_service.on_webhook(payload, sign_payload(payload))

    def test_missing_reference_is_rejected(self, reconciliation_service, sign_payload):
        payload = json.dumps({"event": "charge.success", "data": {}}).encode()

        with pytest.raises(ValidationError):
            reconciliation_service.on_webhook(payload, sign_payload(payload))

    def test_unknown_reference(self, reconciliation_service, signed_webhook, db):
        with pytest.raises(PaymentNotFoundError):
            reconciliation_service.on_webhook(*signed_webhook("BOX_0_missing"))

    @pytest.mark.parametrize("data", [["BOX_1_x"], "BOX_1_x"])
    def test_data_that_is_not_an_object_is_rejected(
        self, reconciliation_service, sign_payload, data
    ):
        payload = json.dumps({"event": "charge.success", "data": data}).encode()

        with pytest.raises(ValidationError):
            reconciliation_service.on_webhook(payload, sign_payload(payload))

    def test_charge_after_decline_is_escalated(
        self, reconciliation_service, fake_gateway, pending, signed_webhook, caplog
    ):
        fake_gateway.verify_status = "failed"
        reconciliation_service.verify_by_reference(pending.reference.value)

        with pytest.raises(PaidAfterFailureError) as exc_info:
            reconciliation_service.on_webhook(*signed_webhook(pending.reference.value))

        assert exc_info.value.reference == pending.reference.value
        assert any(r.levelname == "CRITICAL" for r in caplog.records)
        row = models.Payment.objects.get(id=pending.id.value)
        assert row.status == "FAILED"
        assert not models.Ticket.objects.exists()

    def test_redelivered_success_for_oversold_payment_is_quiet(
        self, reconciliation_service, make_pending_payment, event, ticket_type, signed_webhook
    ):
        first = make_pending_payment(event, ticket_type, quantity=2)
        late = make_pending_payment(event, ticket_type)
        reconciliation_service.finalize(first.reference.value, True)
        with pytest.raises(OversoldAtSettlementError):
            reconciliation_service.on_webhook(*signed_webhook(late.reference.value))

        detail = reconciliation_service.on_webhook(*signed_webhook(late.reference.value))

        assert detail.payment.failure_reason is FailureReason.OVERSOLD


@pytest.mark.django_db
class TestSettlementRaces:
    def test_poll_and_webhook_mint_once(
        self, reconciliation_service, pending, signed_webhook, mailoutbox
    ):
        polled = reconciliation_service.verify_by_reference(pending.reference.value)
        pushed = reconciliation_service.on_webhook(*signed_webhook(pending.reference.value))
        redelivered = reconciliation_service.on_webhook(*signed_webhook(pending.reference.value))

        assert models.Ticket.objects.count() == 1
        assert polled.tickets == pushed.tickets == redelivered.tickets
        assert len(mailoutbox) == 1

    def test_failure_after_success_keeps_tickets(
        self, reconciliation_service, pending, signed_webhook
    ):
        reconciliation_service.finalize(pending.reference.value, True)

        detail = reconciliation_service.on_webhook(
            *signed_webhook(pending.reference.value, event="charge.failed", status="failed")
        )

        assert detail.payment.status is PaymentStatus.COMPLETED
        assert models.Ticket.objects.count() == 1

    def test_last_seats_go_to_first_settlement(
        self, reconciliation_service, make_pending_payment, event, ticket_type, mailoutbox
    ):
        payments = [make_pending_payment(event, ticket_type) for _ in range(3)]

        for payment in payments[:2]:
            reconciliation_service.finalize(payment.reference.value, True)
        with pytest.raises(OversoldAtSettlementError) as exc_info:
            reconciliation_service.finalize(payments[2].reference.value, True)

        assert exc_info.value.reference == payments[2].reference.value
        statuses = [
            models.Payment.objects.get(id=p.id.value).status for p in payments
        ]
        assert statuses == ["COMPLETED", "COMPLETED", "FAILED"]
        oversold = models.Payment.objects.get(id=payments[2].id.value)
        assert oversold.failure_reason == "OVERSOLD"
        assert models.Ticket.objects.filter(ticket_type=ticket_type).count() == 2
        assert len(mailoutbox) == 2

    def test_oversold_payment_settles_quietly_afterwards(
        self, reconciliation_service, make_pending_payment, event, ticket_type
    ):
        first = make_pending_payment(event, ticket_type, quantity=2)
        late = make_pending_payment(event, ticket_type)
        reconciliation_service.finalize(first.reference.value, True)
        with pytest.raises(OversoldAtSettlementError):
            reconciliation_service.finalize(late.reference.value, True)

        detail = reconciliation_service.verify_by_reference(late.reference.value)

        assert detail.payment.status is PaymentStatus.FAILED
        assert detail.payment.failure_reason is FailureReason.OVERSOLD


def test_drafts_expand_quantities(make_snapshot, event, ticket_type):
    payment = Mock(metadata=make_snapshot(event, ticket_type, quantity=3))

    drafts = build_ticket_drafts(payment)

    assert len(drafts) == 3
    assert len({d.confirmation_code for d in drafts}) == 3
    assert {d.price.amount for d in drafts} == {500000}
