"""Order totals: subtotal, tax and grand total from editable line items.

Values keep full Decimal precision; use ``money()`` when persisting or
displaying.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    """Coerce form input to Decimal; None or blank becomes zero."""
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def money(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(quantity: int, unit_price) -> Decimal:
    return to_decimal(quantity) * to_decimal(unit_price)


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    shipping_cost: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total: Decimal

    def rounded(self) -> "OrderTotals":
        return OrderTotals(
            subtotal=money(self.subtotal),
            shipping_cost=money(self.shipping_cost),
            tax_amount=money(self.tax_amount),
            discount_amount=money(self.discount_amount),
            total=money(self.total),
        )


def calculate_totals(
    line_totals: Iterable,
    shipping_cost=None,
    tax_rate=None,
    discount_amount=None,
) -> OrderTotals:
    subtotal = sum((to_decimal(t) for t in line_totals), ZERO)
    shipping = to_decimal(shipping_cost)
    discount = to_decimal(discount_amount)
    tax_amount = subtotal * (to_decimal(tax_rate) / Decimal(100))
    total = subtotal + shipping + tax_amount - discount
    return OrderTotals(
        subtotal=subtotal,
        shipping_cost=shipping,
        tax_amount=tax_amount,
        discount_amount=discount,
        total=total,
    )


def calculate_line_totals(lines: Iterable[tuple[int, object]], **kwargs) -> OrderTotals:
    """Totals for ``(quantity, unit_price)`` pairs."""
    return calculate_totals((line_total(qty, price) for qty, price in lines), **kwargs)
