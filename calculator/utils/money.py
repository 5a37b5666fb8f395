# calculator/utils/money.py


from __future__ import annotations
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CURRENCY_CODE = "RUB"

ZERO = Decimal("0")
CENT = Decimal("0.01")
UNIT = Decimal("1")


def to_decimal(value, default: Decimal = ZERO) -> Decimal:
    """
    Coerce form/JSON/DB values into Decimal.
    Floats go through str() so 0.1 stays 0.1.
    """
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip().replace(",", "."))
    except (InvalidOperation, ValueError):
        return default


def quantize_money(amount) -> Decimal:
    return to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def round_to_unit(amount) -> Decimal:
    """Round to the nearest whole currency unit (half up)."""
    return to_decimal(amount).quantize(UNIT, rounding=ROUND_HALF_UP)


def format_amount(amount, currency: str = CURRENCY_CODE) -> str:
    """
    25000 -> '25,000 RUB', 1234.5 -> '1,234.50 RUB'.
    Kernel fonts in PDFs lack the rouble sign, so the ISO code is used.
    """
    value = quantize_money(amount)
    if value == value.to_integral_value():
        text = f"{value:,.0f}"
    else:
        text = f"{value:,.2f}"
    return f"{text} {currency}"
