# calculator/utils/__init__.py

# Utils package

from calculator.utils.money import (
    CURRENCY_CODE,
    ZERO,
    to_decimal,
    quantize_money,
    round_to_unit,
    format_amount,
)
from calculator.utils.phones import normalize_phone

__all__ = [
    # Money
    'CURRENCY_CODE',
    'ZERO',
    'to_decimal',
    'quantize_money',
    'round_to_unit',
    'format_amount',
    # Phones
    'normalize_phone',
]
