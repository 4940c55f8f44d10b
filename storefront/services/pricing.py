"""Order pricing: tip-only model, no taxes and no delivery fee."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from storefront.services.errors import AmountBelowMinimum

CENT = Decimal("0.01")


@dataclass(frozen=True)
class OrderTotals:
    """Monetary breakdown of an order, in cents."""

    subtotal_cents: int
    tip_cents: int
    tax_cents: int = 0
    delivery_fee_cents: int = 0

    @property
    def total_cents(self) -> int:
        return self.subtotal_cents + self.tip_cents + self.tax_cents + self.delivery_fee_cents


def compute_totals(subtotal_cents: int, tip_cents: int = 0) -> OrderTotals:
    """Compute order totals.

    Args:
        subtotal_cents: Sum of line totals.
        tip_cents: Customer tip.

    Returns:
        OrderTotals: Breakdown with total = subtotal + tip.

    Raises:
        ValueError: If either amount is negative.
    """
    if subtotal_cents < 0:
        raise ValueError("Subtotal cannot be negative")
    if tip_cents < 0:
        raise ValueError("Tip cannot be negative")
    return OrderTotals(subtotal_cents=subtotal_cents, tip_cents=tip_cents)


def dollars_to_cents(amount: Decimal | int | str) -> int:
    """Convert a dollar amount to cents, rounding half-up to the nearest cent."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def cents_to_dollars(cents: int) -> Decimal:
    """Convert cents to a two-place dollar Decimal."""
    return (Decimal(cents) / 100).quantize(CENT)


def ensure_chargeable(total_cents: int, minimum_cents: int = 50) -> int:
    """Reject totals the payment provider would refuse.

    Raises:
        AmountBelowMinimum: If the total is under the minimum charge.
    """
    if total_cents < minimum_cents:
        raise AmountBelowMinimum(total_cents, minimum_cents)
    return total_cents
