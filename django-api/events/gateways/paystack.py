"""Paystack implementation of the payment gateway."""

import hashlib
import hmac
import logging
from typing import Any

import requests
from django.conf import settings

from events.gateways.interfaces import (
    GatewayError,
    GatewayInitialization,
    GatewayRejectedError,
    GatewayVerification,
    PaymentGateway,
)

logger = logging.getLogger(__name__)

PAYSTACK_BASE_URL = "https://api.paystack.co"
# Refusals that mean Paystack could not be asked, not that it said no.
UNAVAILABLE_STATUS_CODES = frozenset({401, 403, 408, 429})
UNKNOWN_REFERENCE_STATUS_CODES = frozenset({400, 404})


class ImproperlyConfiguredGateway(GatewayError):
    """Gateway credentials are missing from settings."""


class PaystackGateway(PaymentGateway):
    def __init__(
        self,
        secret_key: str,
        base_url: str = PAYSTACK_BASE_URL,
        timeout: float = 10,
        session: requests.Session | None = None,
    ) -> None:
        self._secret_key = secret_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._secret_key}",
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """Call the API and unwrap the `{status, message, data}` envelope."""
        url = f"{self._base_url}{path}"
        try:
            response = self._session.request(
                method, url, headers=self._headers(), timeout=self._timeout, **kwargs
            )
        except requests.RequestException as exc:
            logger.warning("Paystack %s %s failed: %s", method, path, exc)
            raise GatewayError(str(exc)) from exc

        try:
            body = response.json()
        except ValueError as exc:
            logger.warning(
                "Paystack %s %s returned non-JSON body (HTTP %s)",
                method,
                path,
                response.status_code,
            )
            raise GatewayError(f"Invalid response (HTTP {response.status_code})") from exc

        status_code = response.status_code
        if status_code >= 500 or status_code in UNAVAILABLE_STATUS_CODES:
            logger.warning("Paystack %s %s unavailable (HTTP %s)", method, path, status_code)
            raise GatewayError(f"Paystack unavailable (HTTP {status_code})")
        if status_code >= 400 or not body.get("status"):
            message = body.get("message") or f"HTTP {status_code}"
            logger.info("Paystack refused %s %s: %s", method, path, message)
            raise GatewayRejectedError(message, status_code=status_code)
        return body.get("data") or {}

    def initialize(
        self,
        reference: str,
        amount: int,
        currency: str,
        email: str,
        callback_url: str,
        metadata: dict[str, Any],
    ) -> GatewayInitialization:
        data = self._request(
            "POST",
            "/transaction/initialize",
            json={
                "reference": reference,
                "email": email,
                "amount": amount,
                "currency": currency,
                "callback_url": callback_url,
                "metadata": metadata,
            },
        )
        try:
            return GatewayInitialization(
                authorization_url=data["authorization_url"],
                access_code=data["access_code"],
            )
        except KeyError as exc:
            raise GatewayError(f"Missing {exc} in initialize response") from exc

    def verify(self, reference: str) -> GatewayVerification:
        try:
            data = self._request("GET", f"/transaction/verify/{reference}")
        except GatewayRejectedError as exc:
            # Only a reference Paystack has never seen counts as a declined
            # charge; any other refusal leaves the outcome unknown.
            if not _is_unknown_reference(exc):
                raise GatewayError(f"Verification refused: {exc}") from exc
            return GatewayVerification(
                reference=reference, status="failed", data={"message": str(exc)}
            )
        return GatewayVerification(
            reference=data.get("reference", reference),
            status=data.get("status", ""),
            data=data,
        )

    def verify_signature(self, payload: bytes, signature: str) -> bool:
        if not signature:
            return False
        expected = hmac.new(
            key=self._secret_key.encode("utf-8"),
            msg=payload,
            digestmod=hashlib.sha512,
        ).hexdigest()
        return hmac.compare_digest(expected, signature)


def _is_unknown_reference(exc: GatewayRejectedError) -> bool:
    return (
        exc.status_code in UNKNOWN_REFERENCE_STATUS_CODES
        and "not found" in str(exc).lower()
    )


def get_gateway() -> PaymentGateway:
    """Build the gateway configured in settings."""
    if not settings.PAYSTACK_SECRET_KEY:
        raise ImproperlyConfiguredGateway("PAYSTACK_SECRET_KEY is not configured")
    return PaystackGateway(
        secret_key=settings.PAYSTACK_SECRET_KEY,
        base_url=settings.PAYSTACK_BASE_URL,
        timeout=settings.PAYMENT_GATEWAY_TIMEOUT,
    )

