from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Parse a price-like value into a two-decimal ``Decimal``.

    Raises ``ValueError`` for anything that is not a finite, non-negative
    amount.
    """
    if isinstance(value, bool):
        raise ValueError("invalid_amount")
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError("invalid_amount")
    if not parsed.is_finite() or parsed < 0:
        raise ValueError("invalid_amount")
    return parsed.quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value) -> str:
    if value is None:
        return "0.00"
    return str(Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP))


def line_total(unit_price, quantity: int) -> Decimal:
    return (Decimal(str(unit_price)) * int(quantity)).quantize(CENT, rounding=ROUND_HALF_UP)
