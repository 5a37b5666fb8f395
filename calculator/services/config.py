# calculator/services/config.py

"""
Configuration readers for the pricing engine.

Calculator settings are ConfigEntry rows; package terms are active
PackageDefinition rows. Both are read fresh on every call: an admin edit
shows up on the next recomputation.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict

from calculator.constants import (
    CONFIG_BULK_DISCOUNT_PERCENTAGE,
    CONFIG_BULK_DISCOUNT_THRESHOLD,
    CONFIG_CERTIFICATE_DISCOUNT_AMOUNT,
    CONFIG_CERTIFICATE_MIN_COURSE_AMOUNT,
    CONFIG_INSTALLMENT_MONTHS_OPTIONS,
    CONFIG_MINIMUM_DOWN_PAYMENT,
    DEFAULT_BULK_DISCOUNT_PERCENTAGE,
    DEFAULT_BULK_DISCOUNT_THRESHOLD,
    DEFAULT_CERTIFICATE_DISCOUNT_AMOUNT,
    DEFAULT_CERTIFICATE_MIN_COURSE_AMOUNT,
    DEFAULT_INSTALLMENT_MONTHS_OPTIONS,
    DEFAULT_MINIMUM_DOWN_PAYMENT,
    DEFAULT_PACKAGES,
    DEFAULT_PERKS,
    PerkValueType,
)
from calculator.services.pricing import CalculatorSettings, PackageTerms
from calculator.utils.money import to_decimal

logger = logging.getLogger(__name__)

_MISSING = object()


def get_config(key: str, default: Any = None) -> Any:
    from calculator.models import ConfigEntry

    entry = ConfigEntry.objects.filter(key=key).only('value').first()
    if entry is None or entry.value is None:
        return default
    return entry.value


def set_config(key: str, value: Any):
    from calculator.models import ConfigEntry

    entry, _ = ConfigEntry.objects.update_or_create(key=key, defaults={'value': value})
    logger.info(f"Config '{key}' set to {value!r}")
    return entry


def _decimal_setting(raw: Any, default: Decimal, key: str) -> Decimal:
    value = to_decimal(raw, default=_MISSING)
    if value is _MISSING or value < 0:
        if raw is not None:
            logger.warning(f"Ignoring invalid value {raw!r} for '{key}', using {default}")
        return default
    return value


def _int_setting(raw: Any, default: int, key: str) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        if raw is not None:
            logger.warning(f"Ignoring invalid value {raw!r} for '{key}', using {default}")
        return default
    return value if value > 0 else default


def _months_setting(raw: Any) -> tuple:
    if not isinstance(raw, (list, tuple)):
        return DEFAULT_INSTALLMENT_MONTHS_OPTIONS
    months = set()
    for item in raw:
        try:
            month = int(item)
        except (TypeError, ValueError):
            continue
        if month > 0:
            months.add(month)
    return tuple(sorted(months)) or DEFAULT_INSTALLMENT_MONTHS_OPTIONS


def load_calculator_settings() -> CalculatorSettings:
    from calculator.models import ConfigEntry

    keys = [
        CONFIG_MINIMUM_DOWN_PAYMENT,
        CONFIG_BULK_DISCOUNT_THRESHOLD,
        CONFIG_BULK_DISCOUNT_PERCENTAGE,
        CONFIG_INSTALLMENT_MONTHS_OPTIONS,
        CONFIG_CERTIFICATE_DISCOUNT_AMOUNT,
        CONFIG_CERTIFICATE_MIN_COURSE_AMOUNT,
    ]
    raw = dict(ConfigEntry.objects.filter(key__in=keys).values_list('key', 'value'))

    return CalculatorSettings(
        minimum_down_payment=_decimal_setting(
            raw.get(CONFIG_MINIMUM_DOWN_PAYMENT), DEFAULT_MINIMUM_DOWN_PAYMENT, CONFIG_MINIMUM_DOWN_PAYMENT,
        ),
        bulk_discount_threshold=_int_setting(
            raw.get(CONFIG_BULK_DISCOUNT_THRESHOLD), DEFAULT_BULK_DISCOUNT_THRESHOLD, CONFIG_BULK_DISCOUNT_THRESHOLD,
        ),
        bulk_discount_percentage=_decimal_setting(
            raw.get(CONFIG_BULK_DISCOUNT_PERCENTAGE), DEFAULT_BULK_DISCOUNT_PERCENTAGE, CONFIG_BULK_DISCOUNT_PERCENTAGE,
        ),
        installment_months_options=_months_setting(raw.get(CONFIG_INSTALLMENT_MONTHS_OPTIONS)),
        certificate_discount_amount=_decimal_setting(
            raw.get(CONFIG_CERTIFICATE_DISCOUNT_AMOUNT),
            DEFAULT_CERTIFICATE_DISCOUNT_AMOUNT,
            CONFIG_CERTIFICATE_DISCOUNT_AMOUNT,
        ),
        certificate_min_course_amount=_decimal_setting(
            raw.get(CONFIG_CERTIFICATE_MIN_COURSE_AMOUNT),
            DEFAULT_CERTIFICATE_MIN_COURSE_AMOUNT,
            CONFIG_CERTIFICATE_MIN_COURSE_AMOUNT,
        ),
    )


def load_package_terms() -> Dict[str, PackageTerms]:
    from calculator.models import PackageDefinition

    return {
        package.type: package.to_terms()
        for package in PackageDefinition.objects.filter(is_active=True)
    }


def ensure_default_packages() -> int:
    """Create the three default package rows if missing. Returns rows created."""
    from calculator.models import PackageDefinition

    created_count = 0
    for package_type, defaults in DEFAULT_PACKAGES.items():
        _, created = PackageDefinition.objects.get_or_create(type=package_type.value, defaults=defaults)
        if created:
            created_count += 1
            logger.info(f"Created default package '{package_type.value}'")
    return created_count


def load_package_perks(package_type: str) -> list:
    """Active perk values of a package, in display order."""
    from calculator.models import PackagePerkValue

    return list(
        PackagePerkValue.objects
        .filter(package__type=package_type, is_active=True, perk__is_active=True)
        .select_related('perk')
    )


def ensure_default_perks() -> int:
    """Create the default perks and their per-package values. Returns perks created."""
    from calculator.models import PackageDefinition, PackagePerkValue, Perk

    packages = {package.type: package for package in PackageDefinition.objects.all()}
    created_count = 0
    for order, definition in enumerate(DEFAULT_PERKS):
        perk, created = Perk.objects.get_or_create(
            name=definition['name'],
            defaults={'icon': definition['icon'], 'display_order': order},
        )
        if created:
            created_count += 1
        for package_type, (value_type, included, display_value) in definition['values'].items():
            package = packages.get(package_type.value)
            if package is None:
                continue
            PackagePerkValue.objects.get_or_create(
                package=package,
                perk=perk,
                defaults={
                    'value_type': value_type,
                    'boolean_value': included,
                    'text_value': display_value if value_type == PerkValueType.TEXT else '',
                    'display_value': display_value,
                },
            )
    if created_count:
        logger.info(f"Created {created_count} default perks")
    return created_count
