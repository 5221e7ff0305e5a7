from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from outlay.models import ValidationError

CENT = Decimal("0.01")


def round_money(value) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_money(value) -> Decimal:
    """Parse an amount like ``"1,250.00"`` or ``"$30"`` into cents precision.

    Floats go through ``str`` so that ``0.1`` stays ``0.10`` instead of
    picking up binary noise.
    """
    if value is None:
        raise ValidationError("missing money value")
    if isinstance(value, Decimal):
        return round_money(value)
    if isinstance(value, (int, float)):
        value = str(value)

    normalized = str(value).strip().replace("$", "").replace(",", "")
    if not normalized:
        raise ValidationError("empty money value")

    try:
        amount = round_money(normalized)
    except InvalidOperation as exc:
        raise ValidationError(f"invalid money value: {value!r}") from exc
    if not amount.is_finite():
        raise ValidationError(f"invalid money value: {value!r}")
    return amount


def parse_positive_money(value) -> Decimal:
    amount = parse_money(value)
    if amount <= 0:
        raise ValidationError("Amount must be positive")
    return amount
