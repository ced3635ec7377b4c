"""Pytest configuration and shared fixtures."""

import hashlib
import hmac
import json
from datetime import timedelta

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from events import models
from events.domain import (
    EventId,
    LineItem,
    PaymentMetadata,
    PaymentReference,
    payment_breakdown,
)
from events.gateways import (
    GatewayError,
    GatewayInitialization,
    GatewayVerification,
    PaymentGateway,
)
from events.services.checkout import CheckoutRequest, CheckoutService
from events.services.ledger import PaymentLedger
from events.services.notifications import TicketNotifier
from events.services.reconciliation import ReconciliationService
from events.stores.django_store import DjangoEventStore, DjangoPaymentStore

WEBHOOK_SECRET = "sk_test_webhook"


class FakeGateway(PaymentGateway):
    """In-memory gateway that records calls and returns scripted answers."""

    def __init__(self) -> None:
        self.initialized: list[dict] = []
        self.verified: list[str] = []
        self.init_error: GatewayError | None = None
        self.verify_error: GatewayError | None = None
        self.verify_status = "success"

    def initialize(self, reference, amount, currency, email, callback_url, metadata):
        self.initialized.append(
            {
                "reference": reference,
                "amount": amount,
                "currency": currency,
                "email": email,
                "callback_url": callback_url,
                "metadata": metadata,
            }
        )
        if self.init_error is not None:
            raise self.init_error
        return GatewayInitialization(
            authorization_url=f"https://checkout.test/{reference}",
            access_code=f"ac_{reference}",
        )

    def verify(self, reference):
        self.verified.append(reference)
        if self.verify_error is not None:
            raise self.verify_error
        return GatewayVerification(
            reference=reference,
            status=self.verify_status,
            data={"reference": reference, "status": self.verify_status},
        )

    def verify_signature(self, payload, signature):
        return hmac.compare_digest(sign(payload), signature or "")


def sign(payload: bytes) -> str:
    return hmac.new(WEBHOOK_SECRET.encode(), payload, hashlib.sha512).hexdigest()


def webhook_payload(reference: str, event: str = "charge.success", status: str = "success") -> bytes:
    return json.dumps(
        {"event": event, "data": {"reference": reference, "status": status, "amount": 0}}
    ).encode()


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


@pytest.fixture(autouse=True)
def clear_cache():
    from django.core.cache import cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def fake_gateway(monkeypatch) -> FakeGateway:
    gateway = FakeGateway()
    monkeypatch.setattr("events.handlers.views.get_gateway", lambda: gateway)
    return gateway


@pytest.fixture
def make_event(db):
    def _make_event(name="Afrobeats Live", **kwargs) -> models.Event:
        defaults = {
            "description": "An evening of live music",
            "location": "Lagos",
            "starts_at": timezone.now() + timedelta(days=14),
        }
        defaults.update(kwargs)
        return models.Event.objects.create(name=name, **defaults)

    return _make_event


@pytest.fixture
def event(make_event) -> models.Event:
    return make_event()


@pytest.fixture
def ticket_type(event) -> models.TicketType:
    """₦5,000 regular ticket with two seats."""
    return models.TicketType.objects.create(
        event=event, name="Regular", price=500000, capacity=2
    )


@pytest.fixture
def unlimited_ticket_type(event) -> models.TicketType:
    return models.TicketType.objects.create(
        event=event, name="Standing", price=100000, capacity=None
    )


@pytest.fixture
def free_ticket_type(event) -> models.TicketType:
    return models.TicketType.objects.create(
        event=event, name="Community", price=0, capacity=2
    )


@pytest.fixture
def ledger(db) -> PaymentLedger:
    return PaymentLedger(DjangoPaymentStore())


@pytest.fixture
def checkout_service(ledger, fake_gateway) -> CheckoutService:
    return CheckoutService(
        event_store=DjangoEventStore(),
        ledger=ledger,
        gateway=fake_gateway,
        callback_url="https://app.test/payment/callback",
    )


@pytest.fixture
def reconciliation_service(ledger, fake_gateway) -> ReconciliationService:
    return ReconciliationService(ledger, fake_gateway, TicketNotifier())


def checkout_request(event, ticket_type, quantity=1, amount=None, email="ada@example.com"):
    if amount is None:
        amount = payment_breakdown(ticket_type.price * quantity).total_amount
    return CheckoutRequest(
        event_id=str(event.id),
        line_items=(
            LineItem(
                ticket_type_id=str(ticket_type.id),
                quantity=quantity,
                attendee_name="Ada Obi",
                attendee_email=email,
            ),
        ),
        amount=amount,
        customer_email=email,
    )


@pytest.fixture
def make_checkout_request():
    return checkout_request


@pytest.fixture
def signed_webhook():
    """Build a (payload, signature) pair the fake gateway accepts."""

    def _signed_webhook(reference, event="charge.success", status="success"):
        payload = webhook_payload(reference, event=event, status=status)
        return payload, sign(payload)

    return _signed_webhook


def snapshot_for(event, ticket_type, quantity=1, email="ada@example.com") -> PaymentMetadata:
    return PaymentMetadata(
        line_items=(
            LineItem(
                ticket_type_id=str(ticket_type.id),
                quantity=quantity,
                attendee_name="Ada Obi",
                attendee_email=email,
            ),
        ),
        unit_prices={str(ticket_type.id): ticket_type.price},
        ticket_type_names={str(ticket_type.id): ticket_type.name},
        event_title=event.name,
        event_date=event.starts_at.isoformat(),
        event_location=event.location,
        breakdown=payment_breakdown(ticket_type.price * quantity),
    )


@pytest.fixture
def make_pending_payment(ledger):
    """Open a PENDING payment directly through the ledger."""

    def _make_pending_payment(event, ticket_type, quantity=1, email="ada@example.com"):
        metadata = snapshot_for(event, ticket_type, quantity=quantity, email=email)
        return ledger.create(
            reference=PaymentReference.generate("TEST"),
            amount=metadata.breakdown.total_amount,
            platform_fee=metadata.breakdown.platform_amount,
            organizer_amount=metadata.breakdown.organizer_amount,
            customer_email=email,
            event_id=EventId(event.id),
            metadata=metadata,
        )

    return _make_pending_payment


@pytest.fixture
def make_snapshot():
    return snapshot_for


@pytest.fixture
def sign_payload():
    return sign
