# calculator/utils/phones.py

import re

PHONE_MIN_DIGITS = 10
PHONE_MAX_DIGITS = 15

_NON_DIGITS = re.compile(r"\D+")


def normalize_phone(raw: str) -> str:
    """
    Normalize a client phone to '+<digits>'.

    Russian numbers typed with a leading 8 (8 912 ...) or without a country
    code (912 ...) are rewritten to +7. Raises ValueError when the digit count
    is outside 10..15.
    """
    digits = _NON_DIGITS.sub("", raw or "")

    if len(digits) == 11 and digits.startswith("8"):
        digits = "7" + digits[1:]
    elif len(digits) == 10:
        digits = "7" + digits

    if not (PHONE_MIN_DIGITS <= len(digits) <= PHONE_MAX_DIGITS):
        raise ValueError(f"Phone number must contain {PHONE_MIN_DIGITS}-{PHONE_MAX_DIGITS} digits.")

    return f"+{digits}"
