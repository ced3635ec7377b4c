from events.domain.fees import PaymentBreakdown, amounts_match, gateway_fee, payment_breakdown
from events.domain.models import (
    Event,
    FailureReason,
    LineItem,
    Payment,
    PaymentDetail,
    PaymentMetadata,
    PaymentStatus,
    Settlement,
    Ticket,
    TicketDraft,
    TicketStatus,
    TicketType,
)
from events.domain.value_objects import (
    Capacity,
    EventId,
    Money,
    PaymentId,
    PaymentReference,
    TicketTypeId,
)

__all__ = [
    "Event",
    "TicketType",
    "Ticket",
    "TicketDraft",
    "TicketStatus",
    "Payment",
    "PaymentDetail",
    "PaymentMetadata",
    "PaymentStatus",
    "FailureReason",
    "LineItem",
    "Settlement",
    "PaymentBreakdown",
    "payment_breakdown",
    "gateway_fee",
    "amounts_match",
    "EventId",
    "TicketTypeId",
    "PaymentId",
    "PaymentReference",
    "Money",
    "Capacity",
]
