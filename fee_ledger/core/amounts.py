"""Money limits. Every amount column is Numeric(12, 2)."""

from decimal import Decimal
from typing import Optional

MAX_DIGITS = 12
DECIMAL_PLACES = 2
CENT = Decimal("0.01")
MAX_AMOUNT = Decimal("9999999999.99")


def amount_problem(value: Decimal) -> Optional[str]:
    """Why value cannot be stored as money, or None if it can."""
    if not value.is_finite():
        return "Amount must be a finite number"
    # checked first: quantize() overflows the context precision on huge values
    if abs(value) > MAX_AMOUNT:
        return f"Amount {value} exceeds the limit of {MAX_AMOUNT}"
    if value != value.quantize(CENT):
        return f"Amount {value} has more than {DECIMAL_PLACES} decimal places"
    return None
