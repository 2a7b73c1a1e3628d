from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from app.services.auction_errors import InvalidPrice

CENT = Decimal("0.01")
ZERO = Decimal("0")
# Numeric(12, 2) columns.
MAX_PRICE = Decimal("9999999999.99")


def to_money(value) -> Decimal:
    """Convert an incoming bid amount to an exact 2-decimal ``Decimal``.

    Floats go through ``str`` so that 450.1 stays 450.1 instead of its binary
    expansion. Raises ``InvalidPrice`` for non-numeric, non-finite, non-positive
    or over-precise amounts.
    """

    if isinstance(value, bool) or value is None:
        raise InvalidPrice("Bid price must be a positive number")
    try:
        d = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidPrice("Bid price must be a positive number") from None

    if not d.is_finite() or d <= ZERO:
        raise InvalidPrice("Bid price must be a positive number")
    if d > MAX_PRICE:
        raise InvalidPrice("Bid price exceeds the maximum supported amount")
    if d != d.quantize(CENT):
        raise InvalidPrice("Bid price supports at most 2 decimal places")
    return d.quantize(CENT)


def quantize_money(value) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value) -> str | None:
    if value is None:
        return None
    return format(quantize_money(value), "f")
