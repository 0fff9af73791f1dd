# app/utils/money.py
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Union

CENT = Decimal("0.01")
MAX_WHOLE_DIGITS = 12  # keyed amounts above this are rejected, not rounded


def quantize(amount: Union[Decimal, int, str]) -> Decimal:
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(raw: str) -> Optional[Decimal]:
    """Parse a keyed amount like '10' or '2.50'; None if it is not a finite number of sane size."""
    try:
        value = Decimal((raw or "").strip())
    except InvalidOperation:
        return None
    if not value.is_finite() or value.adjusted() >= MAX_WHOLE_DIGITS:
        return None
    return value


def format_money(amount: Union[Decimal, int, str], symbol: str = "$") -> str:
    return f"{symbol}{quantize(amount):,.2f}"
