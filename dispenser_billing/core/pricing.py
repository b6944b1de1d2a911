"""
Pricing calculations and money formatting.

One canonical formula prices every usage:
flow volume snapshot x elapsed seconds x unit price, rounded to cents.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

# Currency units charged per unit of volume dispensed
UNIT_PRICE = Decimal("12.25")

DEFAULT_CURRENCY_SYMBOL = "$"

_CENT = Decimal("0.01")

Number = Union[int, float, Decimal]


def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal without binary float artifacts (0.064 stays 0.064)."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(amount: Decimal) -> Decimal:
    """Round to two decimal places, halves away from zero."""
    return amount.quantize(_CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PricingPolicy:
    """Unit price and display settings applied uniformly across the engine."""
    unit_price: Decimal = UNIT_PRICE
    currency_symbol: str = DEFAULT_CURRENCY_SYMBOL

    def __post_init__(self):
        """Validate unit price is positive."""
        if to_decimal(self.unit_price) <= 0:
            raise ValueError("unit_price must be > 0")

    def unrounded_cost(self, flow_volume: Number, duration_seconds: Decimal) -> Decimal:
        """Exact cost of dispensing at ``flow_volume`` for ``duration_seconds``."""
        return to_decimal(flow_volume) * duration_seconds * to_decimal(self.unit_price)

    def calculate_revenue(self, flow_volume: Number, duration_seconds: Decimal) -> Decimal:
        """Cost of a single usage, rounded to cents.

        Args:
            flow_volume: Volume per second in effect when the tap was opened
            duration_seconds: Seconds the tap was open

        Returns:
            Revenue rounded to 2 decimal places
        """
        return round_money(self.unrounded_cost(flow_volume, duration_seconds))

    def with_symbol(self, amount: Decimal) -> str:
        return f"{self.currency_symbol}{format_money(amount)}"


def format_money(amount: Decimal) -> str:
    """Render an amount as a string with exactly two fractional digits."""
    return f"{round_money(amount):.2f}"


def sum_money(amounts: Iterable[Decimal]) -> Decimal:
    """Sum already-rounded amounts and round the total to cents."""
    return round_money(sum(amounts, Decimal("0")))


DEFAULT_PRICING = PricingPolicy()
