"""Line-item money math shared by quotations and invoices.

All arithmetic is done in :class:`~decimal.Decimal`. Intermediate values are
kept exact; the single rounding step is applied to the final total.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from salesflow.core.errors import InvalidInputError

DEFAULT_TAX_RATE = Decimal("8.5")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")
ZERO = Decimal("0")


@dataclass(frozen=True, slots=True)
class LineInput:
    quantity: int
    unit_price: Decimal
    discount: Decimal = ZERO


@dataclass(frozen=True, slots=True)
class FinancialSnapshot:
    subtotal: Decimal
    discount: Decimal
    taxable_amount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal


def _decimal(value: Decimal | int | float | str, field: str) -> Decimal:
    try:
        return value if isinstance(value, Decimal) else Decimal(str(value))
    except ArithmeticError as exc:
        raise InvalidInputError(field, f"{field} is not a number") from exc


def round_total(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(quantity: int, unit_price: Decimal, discount: Decimal = ZERO) -> Decimal:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidInputError("quantity", "quantity must be a whole number")
    if quantity < 1:
        raise InvalidInputError("quantity", "quantity must be at least 1")
    price = _decimal(unit_price, "unit_price")
    if price < ZERO:
        raise InvalidInputError("unit_price", "unit price must not be negative")
    pct = _decimal(discount, "discount")
    if pct < ZERO or pct > HUNDRED:
        raise InvalidInputError("discount", "discount must be between 0 and 100")
    return Decimal(quantity) * price * (1 - pct / HUNDRED)


def derive(
    lines: Iterable[LineInput],
    tax_rate: Decimal = DEFAULT_TAX_RATE,
    flat_discount: Decimal = ZERO,
) -> FinancialSnapshot:
    rate = _decimal(tax_rate, "tax_rate")
    if rate < ZERO:
        raise InvalidInputError("tax_rate", "tax rate must not be negative")
    flat = _decimal(flat_discount, "discount")
    if flat < ZERO:
        raise InvalidInputError("discount", "discount must not be negative")

    subtotal = sum((line_total(line.quantity, line.unit_price, line.discount) for line in lines), start=ZERO)
    if flat > subtotal:
        raise InvalidInputError("discount", "discount must not exceed the subtotal")

    taxable = subtotal - flat
    tax_amount = taxable * rate / HUNDRED
    return FinancialSnapshot(
        subtotal=subtotal,
        discount=flat,
        taxable_amount=taxable,
        tax_rate=rate,
        tax_amount=tax_amount,
        total=round_total(taxable + tax_amount),
    )
