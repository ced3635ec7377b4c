from events.gateways.interfaces import (
    GatewayError,
    GatewayInitialization,
    GatewayRejectedError,
    GatewayVerification,
    PaymentGateway,
)
from events.gateways.paystack import PaystackGateway, get_gateway

__all__ = [
    "PaymentGateway",
    "GatewayInitialization",
    "GatewayVerification",
    "GatewayError",
    "GatewayRejectedError",
    "PaystackGateway",
    "get_gateway",
]
