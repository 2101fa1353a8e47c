"""Money helpers: amounts are stored as integer minor units (cents/paise)."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")


def to_cents(value: Decimal | float | int | str | None) -> int | None:
    """Convert an amount to integer cents, or None if it is not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
        if not amount.is_finite():
            return None
        return int((amount.quantize(CENT, rounding=ROUND_HALF_UP) * 100).to_integral_value())
    except (InvalidOperation, TypeError, ValueError):
        return None


def cents_to_decimal(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


def normalize_currency(value: str | None) -> str | None:
    """Upper-cased ISO-style code, or None when blank or shorter than three letters."""
    if value is None:
        return None
    cleaned = value.strip().upper()
    if len(cleaned) < 3:
        return None
    return cleaned
