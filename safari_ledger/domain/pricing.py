"""Booking price breakdown.

Computed once when the booking is created and stored on the booking row,
so settlement works from the amounts the customer actually saw.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

CENTS = Decimal("0.01")

# Children pay 70% of the tour base price on every tour.
CHILD_PRICE_FACTOR = Decimal("0.7")
SERVICE_FEE_RATE = Decimal("0.05")


def to_money(value) -> Decimal:
    """Quantize to cents using half-up rounding."""
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PriceBreakdown:
    base_amount: Decimal
    accommodation_amount: Decimal
    activities_amount: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal

    @property
    def subtotal(self) -> Decimal:
        return self.base_amount + self.accommodation_amount + self.activities_amount

    def with_discount(self, discount: Decimal) -> "PriceBreakdown":
        """Return a copy with ``discount`` applied, clamped to the subtotal."""
        discount = min(max(to_money(discount), Decimal("0.00")), self.subtotal)
        return PriceBreakdown(
            base_amount=self.base_amount,
            accommodation_amount=self.accommodation_amount,
            activities_amount=self.activities_amount,
            tax_amount=self.tax_amount,
            discount_amount=discount,
            total_amount=self.subtotal + self.tax_amount - discount,
        )


def calculate_price_breakdown(
    base_price: Decimal,
    adults: int,
    children: int,
    accommodation_prices: Iterable[Decimal] = (),
    addon_prices: Iterable[Decimal] = (),
) -> PriceBreakdown:
    """Calculate booking amounts before any promo discount.

    Args:
        base_price: Tour price per adult
        adults: Number of adults (at least 1)
        children: Number of children
        accommodation_prices: Nightly price of the option picked for each day
        addon_prices: Per-person price of each selected add-on

    Returns:
        PriceBreakdown with a zero discount
    """
    if adults < 1:
        raise ValueError("At least one adult is required")
    if children < 0:
        raise ValueError("Children cannot be negative")

    base_price = Decimal(str(base_price))
    party_size = adults + children

    base_amount = to_money(base_price * adults + base_price * CHILD_PRICE_FACTOR * children)
    accommodation_amount = to_money(sum((Decimal(str(p)) for p in accommodation_prices), Decimal("0")))
    activities_amount = to_money(
        sum((Decimal(str(p)) * party_size for p in addon_prices), Decimal("0"))
    )
    subtotal = base_amount + accommodation_amount + activities_amount
    tax_amount = to_money(subtotal * SERVICE_FEE_RATE)

    return PriceBreakdown(
        base_amount=base_amount,
        accommodation_amount=accommodation_amount,
        activities_amount=activities_amount,
        tax_amount=tax_amount,
        discount_amount=Decimal("0.00"),
        total_amount=subtotal + tax_amount,
    )
