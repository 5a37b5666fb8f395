# calculator/services/sales.py

"""
Sale materializer.

Turns a confirmed order into a persisted Sale bound to a booking-platform
subscription type. An existing subscription type is reused only when its
cost AND its {service_id: session_count} composition match exactly;
otherwise a new one is created on YClients and cached locally.

If the subscription type cannot be found or created, nothing is persisted
and SubscriptionTypeResolutionError is raised.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional

from django.db import transaction

from calculator.constants import (
    CONFIG_SUBSCRIPTION_TEMPLATE,
    DEFAULT_SUBSCRIPTION_TEMPLATE,
    FREEZE_LIMIT_DAYS,
    SUBSCRIPTION_TITLE_ATTEMPTS,
    PackageType,
)
from calculator.services import yclients
from calculator.services.config import get_config, load_calculator_settings, load_package_terms
from calculator.services.pricing import (
    CalculationResult,
    PackagePricing,
    PackageTerms,
    PricingInputError,
    PricingOrder,
    build_quote,
    clamp_correction_percent,
    max_down_payment,
    min_down_payment,
    monthly_payment,
    service_composition,
    unique_free_zones,
)
from calculator.services.yclients import YclientsError
from calculator.utils.money import ZERO, quantize_money, to_decimal
from calculator.utils.phones import normalize_phone

logger = logging.getLogger(__name__)

UNKNOWN_SERVICE_TITLE = "Unknown service"


class SubscriptionTypeResolutionError(Exception):
    """No matching subscription type and the booking platform refused to create one."""
    pass


@dataclass
class ClientData:
    phone: str
    email: Optional[str] = None
    name: str = ""


@dataclass
class SaleConfirmation:
    sale: object
    subscription_type: object
    created_subscription_type: bool = False
    offer: Optional[object] = None
    contract_sent: bool = False
    contract_error: str = ""


# =============================================================================
# SUBSCRIPTION TITLES
# =============================================================================

def generate_unique_subscription_number(rng: Optional[random.Random] = None) -> str:
    """
    'd.nnn' with d in 1..4, not used by any cached subscription type.
    Falls back to the last three digits of the current timestamp.
    """
    from calculator.models import SubscriptionType

    rng = rng or random
    first_digit = rng.randint(1, 4)

    for _ in range(SUBSCRIPTION_TITLE_ATTEMPTS):
        number = f"{first_digit}.{rng.randint(0, 999):03d}"
        if not SubscriptionType.objects.find_by_number(number):
            return number

    fallback = f"{first_digit}.{str(int(time.time() * 1000))[-3:]}"
    logger.warning(f"No free subscription number after {SUBSCRIPTION_TITLE_ATTEMPTS} attempts, using {fallback}")
    return fallback


def generate_subscription_title(service_titles: List[str], package_name: str, rng: Optional[random.Random] = None) -> str:
    """
    Title from the `subscription_template` config entry. Placeholders:
    {number}, {services}, {package}.
    """
    number = generate_unique_subscription_number(rng)
    values = {'number': number, 'services': ', '.join(service_titles), 'package': package_name}

    template = get_config(CONFIG_SUBSCRIPTION_TEMPLATE) or DEFAULT_SUBSCRIPTION_TEMPLATE
    if not isinstance(template, str) or not template.startswith('{number}'):
        logger.warning(f"Ignoring subscription template {template!r}: it must start with {{number}}")
        template = DEFAULT_SUBSCRIPTION_TEMPLATE
    try:
        return template.format(**values)
    except (KeyError, IndexError, ValueError) as e:
        logger.warning(f"Invalid subscription template {template!r} ({e}), using the default")
        return DEFAULT_SUBSCRIPTION_TEMPLATE.format(**values)


def freeze_policy(package_type: str):
    """(allow_freeze, freeze_limit_days) for a package."""
    limit = FREEZE_LIMIT_DAYS.get(PackageType(package_type), 0)
    return limit > 0, limit


# =============================================================================
# SUBSCRIPTION TYPE RESOLUTION
# =============================================================================

def cache_subscription_type(record: dict, fallback_composition: Optional[Dict[int, int]] = None):
    """
    Upsert a YClients subscription type record into the local cache.
    A record without a balance_container keeps the cached composition.
    """
    from calculator.models import SubscriptionType

    balance_container = record.get('balance_container')
    if not balance_container and fallback_composition:
        balance_container = {
            'links': [
                {'service': {'id': service_id}, 'count': count}
                for service_id, count in sorted(fallback_composition.items())
            ]
        }

    defaults = {
        'title': record.get('title') or '',
        'cost': quantize_money(to_decimal(record.get('cost'))),
        'allow_freeze': bool(record.get('allow_freeze')),
        'freeze_limit': int(record.get('freeze_limit') or 0),
    }
    if balance_container:
        defaults['balance_container'] = balance_container

    subscription_type, _ = SubscriptionType.objects.update_or_create(
        yclients_id=int(record['id']),
        defaults=defaults,
    )
    return subscription_type


def resolve_subscription_type(
    composition: Dict[int, int],
    cost: Decimal,
    service_titles: List[str],
    package_type: str,
    package_name: str,
):
    """Returns (subscription_type, created)."""
    from calculator.models import SubscriptionType

    existing = SubscriptionType.objects.find_matching(composition, cost)
    if existing is not None:
        logger.info(f"Reusing subscription type {existing.yclients_id} '{existing.title}' for cost {cost}")
        return existing, False

    title = generate_subscription_title(service_titles, package_name)
    allow_freeze, freeze_limit = freeze_policy(package_type)

    try:
        record = yclients.create_subscription_type(
            title=title,
            cost=cost,
            composition=composition,
            allow_freeze=allow_freeze,
            freeze_limit=freeze_limit,
        )
    except YclientsError as e:
        logger.error(f"Could not create subscription type '{title}': {e}")
        raise SubscriptionTypeResolutionError(str(e)) from e

    return cache_subscription_type(record, fallback_composition=composition), True


# =============================================================================
# SALE CONFIRMATION
# =============================================================================

def attach_catalog(order: PricingOrder) -> List[str]:
    """Fill titles (and missing prices) from the catalog. Returns the titles in order."""
    from calculator.models import Service

    catalog = {
        service.yclients_id: service
        for service in Service.objects.filter(yclients_id__in=[s.service_id for s in order.services])
    }

    titles = []
    for selected in order.services:
        service = catalog.get(selected.service_id)
        if service is not None:
            selected.title = service.title
            if selected.price is None:
                selected.price = service.price_min
        elif not selected.title:
            selected.title = UNKNOWN_SERVICE_TITLE
        titles.append(selected.title)
    return titles


def resolve_payment(order: PricingOrder, terms, pricing, settings):
    """(down_payment, installment_months) validated against the package."""
    if terms.requires_full_payment:
        return pricing.final_cost, 0

    low = min_down_payment(terms, pricing, settings)
    high = max_down_payment(pricing)
    down_payment = quantize_money(order.down_payment)
    if down_payment < low or down_payment > high:
        raise PricingInputError(f"Down payment must be between {low} and {high}.")

    months = int(order.installment_months or 0)
    if down_payment < pricing.final_cost:
        if months not in settings.installment_months_options:
            raise PricingInputError(
                f"Installment months must be one of {list(settings.installment_months_options)}."
            )
    else:
        months = 0
    return down_payment, months


@dataclass
class PricedOrder:
    terms: PackageTerms
    result: CalculationResult
    pricing: PackagePricing
    down_payment: Decimal
    installment_months: int
    monthly_payment: Decimal


def price_order(order: PricingOrder) -> PricedOrder:
    """
    Server-side quote for the selected package with fresh configuration.
    Raises PricingInputError when the order cannot be confirmed as submitted.
    """
    if not order.services:
        raise PricingInputError("No services selected.")

    packages = load_package_terms()
    settings = load_calculator_settings()

    terms = packages.get(order.package_type) if order.package_type else None
    if terms is None:
        raise PricingInputError(f"Unknown or inactive package: {order.package_type!r}")

    result = build_quote(order, packages, settings)
    if result is None:
        raise PricingInputError("Nothing to price: the course cost is zero.")

    pricing = result.packages[order.package_type]
    if not pricing.is_available:
        raise PricingInputError(f"{terms.name} is not available: {pricing.unavailable_reason}")

    down_payment, months = resolve_payment(order, terms, pricing, settings)
    return PricedOrder(
        terms=terms,
        result=result,
        pricing=pricing,
        down_payment=down_payment,
        installment_months=months,
        monthly_payment=monthly_payment(pricing.final_cost, down_payment, months, terms.requires_full_payment),
    )


def confirm_subscription(master, client_data: ClientData, order: PricingOrder) -> SaleConfirmation:
    """
    Confirm an order: price it server-side, bind it to an exact-match (or
    newly created) subscription type and persist the Sale.
    """
    from calculator.models import Client, Sale

    try:
        phone = normalize_phone(client_data.phone)
    except ValueError as e:
        raise PricingInputError(str(e)) from e

    service_titles = attach_catalog(order)
    priced = price_order(order)
    package_type = order.package_type
    terms, result, pricing = priced.terms, priced.result, priced.pricing
    down_payment, months, monthly = priced.down_payment, priced.installment_months, priced.monthly_payment

    composition = service_composition(order.services)
    subscription_type, created = resolve_subscription_type(
        composition,
        pricing.final_cost,
        service_titles,
        package_type,
        terms.name,
    )

    with transaction.atomic():
        client, client_created = Client.objects.get_or_create(
            phone=phone,
            defaults={'email': client_data.email or None},
        )
        if not client_created and client_data.email and client.email != client_data.email:
            client.email = client_data.email
            client.save(update_fields=['email'])

        sale = Sale.objects.create(
            client=client,
            master=master if getattr(master, 'is_authenticated', False) else None,
            subscription_type=subscription_type,
            selected_services=[service.to_dict() for service in order.services],
            selected_package=package_type,
            base_cost=result.base_cost,
            final_cost=pricing.final_cost,
            total_savings=pricing.total_savings,
            down_payment=down_payment,
            installment_months=months or None,
            monthly_payment=monthly if monthly > ZERO else None,
            applied_discounts=[discount.to_dict() for discount in pricing.applied_discounts],
            free_zones=[zone.to_dict() for zone in unique_free_zones(order.free_zones)],
            used_certificate=order.used_certificate,
            correction_percent=clamp_correction_percent(order.correction_percent),
            manual_gift_sessions=dict(order.manual_gift_sessions or {}),
        )

    logger.info(
        f"Sale {sale.id} confirmed: package={package_type} final={pricing.final_cost} "
        f"subscription_type={subscription_type.yclients_id} (created={created})"
    )
    return SaleConfirmation(sale=sale, subscription_type=subscription_type, created_subscription_type=created)


def send_sale_contract(confirmation: SaleConfirmation, client_name: str, client_email: Optional[str]) -> SaleConfirmation:
    """
    Optional contract step after a confirmed sale. Never undoes the sale:
    failures are logged and reported on the confirmation.
    """
    from calculator.services.offers import OfferDeliveryError, create_offer_from_sale, send_offer

    if not client_email:
        confirmation.contract_error = "Client email is required to send the contract."
        return confirmation

    try:
        with transaction.atomic():
            offer = create_offer_from_sale(confirmation.sale, client_name=client_name, client_email=client_email)
        confirmation.offer = offer
        send_offer(offer)
        confirmation.contract_sent = True
    except OfferDeliveryError as e:
        logger.error(f"Contract for sale {confirmation.sale.id} was not sent: {e}")
        confirmation.contract_error = str(e)
    except Exception:
        logger.exception(f"Contract for sale {confirmation.sale.id} could not be prepared")
        confirmation.contract_error = "The contract could not be prepared. The sale is saved."
    return confirmation
