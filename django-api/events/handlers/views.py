"""HTTP handlers (views) - handle HTTP concerns only.

Handlers:
- Parse requests and validate input format
- Call services for business logic
- Map domain errors to HTTP responses (see handlers/exceptions.py)
- Never contain business logic
- Never expose internal error details
"""

import logging

from django.conf import settings
from django.core.cache import cache
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from events.domain import PaymentDetail, PaymentStatus
from events.domain.errors import (
    OversoldAtSettlementError,
    PaidAfterFailureError,
    PaymentNotFoundError,
    ValidationError,
)
from events.gateways import get_gateway
from events.handlers.serializers import (
    CheckoutRequestSerializer,
    EventSerializer,
    FreeBookingRequestSerializer,
    flatten_errors,
)
from events.services.checkout import CheckoutService
from events.services.event_service import EventService
from events.services.free_booking import FreeBookingService
from events.services.ledger import PaymentLedger
from events.services.notifications import TicketNotifier
from events.services.reconciliation import ReconciliationService
from events.stores.django_store import DjangoEventStore, DjangoPaymentStore

logger = logging.getLogger(__name__)

EVENT_LIST_CACHE_KEY = "events:list"
WEBHOOK_SIGNATURE_HEADER = "x-paystack-signature"


def event_cache_key(event_id: str) -> str:
    return f"events:{event_id}"


def _ledger() -> PaymentLedger:
    return PaymentLedger(DjangoPaymentStore(), currency=settings.PAYMENT_CURRENCY)


def _reconciliation_service() -> ReconciliationService:
    return ReconciliationService(_ledger(), get_gateway(), TicketNotifier())


class EventListView(APIView):
    """Handler for GET /api/events"""

    def get(self, request: Request) -> Response:
        data = cache.get(EVENT_LIST_CACHE_KEY)
        if data is None:
            events = EventService(DjangoEventStore()).list_events()
            data = EventSerializer(events, many=True).data
            cache.set(EVENT_LIST_CACHE_KEY, data, settings.EVENT_CACHE_TIMEOUT)
        return Response({"results": data})


class EventDetailView(APIView):
    """Handler for GET /api/events/{event_id}"""

    def get(self, request: Request, event_id: str) -> Response:
        key = event_cache_key(event_id)
        data = cache.get(key)
        if data is None:
            event = EventService(DjangoEventStore()).get_event(event_id)
            data = EventSerializer(event).data
            cache.set(key, data, settings.EVENT_CACHE_TIMEOUT)
        return Response(data)


class PaymentInitializeView(APIView):
    """Handler for POST /api/payments/initialize"""

    def post(self, request: Request) -> Response:
        serializer = CheckoutRequestSerializer(data=request.data)
        if not serializer.is_valid():
            raise ValidationError("Invalid input data", errors=flatten_errors(serializer.errors))

        service = CheckoutService(
            event_store=DjangoEventStore(),
            ledger=_ledger(),
            gateway=get_gateway(),
            callback_url=settings.PAYMENT_CALLBACK_URL,
            currency=settings.PAYMENT_CURRENCY,
            reference_prefix=settings.PAYMENT_REFERENCE_PREFIX,
        )
        result = service.checkout(serializer.to_checkout_request())
        return Response(
            {
                "success": True,
                "authorization_url": result.authorization_url,
                "access_code": result.access_code,
                "redirectHandle": result.authorization_url,
                "reference": result.reference,
            }
        )


class FreeBookingView(APIView):
    """Handler for POST /api/tickets/book-free"""

    def post(self, request: Request) -> Response:
        serializer = FreeBookingRequestSerializer(data=request.data)
        if not serializer.is_valid():
            raise ValidationError("Invalid input data", errors=flatten_errors(serializer.errors))

        service = FreeBookingService(
            event_store=DjangoEventStore(),
            ticket_store=DjangoPaymentStore(),
            notifier=TicketNotifier(),
        )
        tickets = service.book(serializer.to_free_booking_request())
        return Response(
            {
                "success": True,
                "message": "Free tickets booked successfully",
                "confirmationIds": [t.confirmation_code for t in tickets],
                "ticketCount": len(tickets),
            }
        )


def _verification_body(detail: PaymentDetail) -> dict:
    payment = detail.payment
    if payment.status is PaymentStatus.COMPLETED:
        return {
            "success": True,
            "status": payment.status.value,
            "eventTitle": payment.metadata.event_title,
            "confirmationIds": [t.confirmation_code for t in detail.tickets],
            "ticketCount": len(detail.tickets),
            "amount": payment.amount.amount,
        }
    if payment.status is PaymentStatus.PENDING:
        message = "Payment is still being processed. Please check again shortly."
    else:
        message = "Payment not successful"
    return {
        "success": False,
        "status": payment.status.value,
        "eventTitle": payment.metadata.event_title,
        "message": message,
    }


class PaymentVerifyView(APIView):
    """Handler for GET /api/payments/verify?reference=<ref>"""

    def get(self, request: Request) -> Response:
        reference = (request.query_params.get("reference") or "").strip()
        if not reference:
            raise ValidationError("Reference is required")
        detail = _reconciliation_service().verify_by_reference(reference)
        return Response(_verification_body(detail))


class PaymentWebhookView(APIView):
    """Handler for POST /api/payments/webhook

    Authenticated by signature only. Outcomes that a redelivery cannot
    change are acknowledged with 200 so the gateway stops retrying.
    """

    authentication_classes = []
    permission_classes = []

    def post(self, request: Request) -> Response:
        signature = request.headers.get(WEBHOOK_SIGNATURE_HEADER, "")
        try:
            _reconciliation_service().on_webhook(request.body, signature)
        except OversoldAtSettlementError as exc:
            logger.error("Webhook settled %s as oversold", exc.reference)
        except PaidAfterFailureError as exc:
            logger.error("Webhook charged %s after it had failed", exc.reference)
        except PaymentNotFoundError as exc:
            logger.warning("Webhook for unknown payment %s", exc.reference)
        return Response({"message": "Webhook processed"})
