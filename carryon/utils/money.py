# carryon/utils/money.py

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

Money = Decimal

def D(x) -> Money:
    return x if isinstance(x, Decimal) else Decimal(str(x or "0"))

def round_money(x: Money) -> Money:
    return D(x).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

def round_rating(x) -> Decimal:
    return D(x).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)

def parse_money(value, field="amount") -> Money:
    """Parse a client supplied amount; raises ValueError on junk input."""
    if value is None or isinstance(value, bool):
        raise ValueError(f"{field} is required")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"{field} must be numeric")
    if not amount.is_finite():
        raise ValueError(f"{field} must be numeric")
    return round_money(amount)

