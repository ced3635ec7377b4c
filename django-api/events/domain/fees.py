"""Fee and settlement arithmetic.

All amounts are integers in minor currency units. Percentages are applied
with exact decimal arithmetic and rounded half-up, so results are stable
regardless of float representation.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Self

GATEWAY_PERCENT = Decimal("0.015")
GATEWAY_FLAT_FEE = 10000
GATEWAY_FLAT_FEE_THRESHOLD = 250000
GATEWAY_FEE_CAP = 200000
PLATFORM_PERCENT = Decimal("0.07")
AMOUNT_TOLERANCE = 100


def _percent_of(amount: int, rate: Decimal) -> int:
    return int((Decimal(amount) * rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def gateway_fee(amount: int) -> int:
    """Gateway charge: 1.5%, plus ₦100 from ₦2,500 upwards, capped at ₦2,000."""
    fee = _percent_of(amount, GATEWAY_PERCENT)
    if amount < GATEWAY_FLAT_FEE_THRESHOLD:
        return fee
    return min(fee + GATEWAY_FLAT_FEE, GATEWAY_FEE_CAP)


@dataclass(frozen=True)
class PaymentBreakdown:
    """How a checkout total splits between organizer, platform and gateway."""

    ticket_subtotal: int
    gateway_fee: int
    total_amount: int
    organizer_amount: int
    platform_amount: int

    def to_dict(self) -> dict[str, int]:
        return {
            "ticketSubtotal": self.ticket_subtotal,
            "paystackFee": self.gateway_fee,
            "totalAmount": self.total_amount,
            "organizerAmount": self.organizer_amount,
            "platformAmount": self.platform_amount,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(
            ticket_subtotal=int(data["ticketSubtotal"]),
            gateway_fee=int(data["paystackFee"]),
            total_amount=int(data["totalAmount"]),
            organizer_amount=int(data["organizerAmount"]),
            platform_amount=int(data["platformAmount"]),
        )


def payment_breakdown(ticket_subtotal: int) -> PaymentBreakdown:
    """Compute every settlement figure for a ticket subtotal.

    The gateway fee is borne by the customer on top of the subtotal; the
    platform's cut comes out of the subtotal, the remainder goes to the
    organizer.
    """
    if ticket_subtotal < 0:
        raise ValueError("Ticket subtotal cannot be negative")
    fee = gateway_fee(ticket_subtotal)
    platform_amount = _percent_of(ticket_subtotal, PLATFORM_PERCENT)
    return PaymentBreakdown(
        ticket_subtotal=ticket_subtotal,
        gateway_fee=fee,
        total_amount=ticket_subtotal + fee,
        organizer_amount=ticket_subtotal - platform_amount,
        platform_amount=platform_amount,
    )


def amounts_match(
    client_amount: int, server_amount: int, tolerance: int = AMOUNT_TOLERANCE
) -> bool:
    return abs(client_amount - server_amount) <= tolerance
