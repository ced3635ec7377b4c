from django.urls import path

from events.handlers import (
    EventDetailView,
    EventListView,
    FreeBookingView,
    PaymentInitializeView,
    PaymentVerifyView,
    PaymentWebhookView,
)

urlpatterns = [
    path("events", EventListView.as_view(), name="event-list"),
    path("events/<str:event_id>", EventDetailView.as_view(), name="event-detail"),
    path(
        "payments/initialize",
        PaymentInitializeView.as_view(),
        name="payment-initialize",
    ),
    path("payments/verify", PaymentVerifyView.as_view(), name="payment-verify"),
    path("payments/webhook", PaymentWebhookView.as_view(), name="payment-webhook"),
    path("tickets/book-free", FreeBookingView.as_view(), name="ticket-book-free"),
]
