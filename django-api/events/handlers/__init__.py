from events.handlers.views import (
    EventDetailView,
    EventListView,
    FreeBookingView,
    PaymentInitializeView,
    PaymentVerifyView,
    PaymentWebhookView,
)

__all__ = [
    "EventListView",
    "EventDetailView",
    "FreeBookingView",
    "PaymentInitializeView",
    "PaymentVerifyView",
    "PaymentWebhookView",
]
