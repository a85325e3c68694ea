from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def is_money(value) -> bool:
    """Finite and not negative."""
    if value is None:
        return False
    value = Decimal(value)
    return value.is_finite() and value >= 0
