# calculator/services/pricing.py

"""
Course pricing engine.

Turns a cart of selected services plus the master's live adjustments into
priced VIP / Standard / Economy offers. Everything in this module is pure:
no database access and no I/O. Callers load package definitions and
calculator settings (see calculator.services.config) and pass them in.

The same functions back the REST quote endpoint, the live WebSocket session,
sale confirmation and contract generation, so the numbers a client sees are
the numbers that get persisted and printed.

All money is Decimal, quantized to 0.01 (ROUND_HALF_UP).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from calculator.constants import (
    DEFAULT_BULK_DISCOUNT_PERCENTAGE,
    DEFAULT_BULK_DISCOUNT_THRESHOLD,
    DEFAULT_CERTIFICATE_DISCOUNT_AMOUNT,
    DEFAULT_CERTIFICATE_MIN_COURSE_AMOUNT,
    DEFAULT_INSTALLMENT_MONTHS_OPTIONS,
    DEFAULT_MINIMUM_DOWN_PAYMENT,
    DEFAULT_SESSION_COUNT,
    FALLBACK_PROCEDURE_COUNT,
    MAX_CORRECTION_PERCENT,
    MAX_SESSION_COUNT,
    MIN_SESSION_COUNT,
    PACKAGE_ORDER,
    DiscountKind,
)
from calculator.utils.money import (
    ZERO,
    format_amount,
    quantize_money,
    round_to_unit,
    to_decimal,
)

HUNDRED = Decimal("100")


class PricingInputError(Exception):
    """Raised when an order cannot be priced as submitted."""
    pass


# =============================================================================
# CONFIGURATION VALUE OBJECTS
# =============================================================================

@dataclass(frozen=True)
class CalculatorSettings:
    minimum_down_payment: Decimal = DEFAULT_MINIMUM_DOWN_PAYMENT
    bulk_discount_threshold: int = DEFAULT_BULK_DISCOUNT_THRESHOLD
    bulk_discount_percentage: Decimal = DEFAULT_BULK_DISCOUNT_PERCENTAGE
    installment_months_options: tuple = DEFAULT_INSTALLMENT_MONTHS_OPTIONS
    certificate_discount_amount: Decimal = DEFAULT_CERTIFICATE_DISCOUNT_AMOUNT
    certificate_min_course_amount: Decimal = DEFAULT_CERTIFICATE_MIN_COURSE_AMOUNT

    @property
    def default_installment_months(self) -> int:
        return min(self.installment_months_options) if self.installment_months_options else 0

    def to_dict(self) -> dict:
        return {
            "minimum_down_payment": self.minimum_down_payment,
            "bulk_discount_threshold": self.bulk_discount_threshold,
            "bulk_discount_percentage": self.bulk_discount_percentage,
            "installment_months_options": list(self.installment_months_options),
            "certificate_discount_amount": self.certificate_discount_amount,
            "certificate_min_course_amount": self.certificate_min_course_amount,
        }


@dataclass(frozen=True)
class PackageTerms:
    """Engine-side view of a PackageDefinition row."""
    type: str
    name: str
    discount: Decimal
    min_cost: Decimal
    min_down_payment_percent: Decimal
    requires_full_payment: bool = False
    gift_sessions: int = 0
    bonus_account_percent: Decimal = ZERO
    dynamic_discount: Optional[Decimal] = None

    @property
    def effective_discount(self) -> Decimal:
        if self.dynamic_discount is None:
            return self.discount
        return max(self.discount, self.dynamic_discount)


# =============================================================================
# CART VALUE OBJECTS
# =============================================================================

@dataclass
class SelectedService:
    service_id: int
    title: str = ""
    price: Optional[Decimal] = None
    quantity: int = 1
    session_count: int = DEFAULT_SESSION_COUNT
    custom_price: Optional[Decimal] = None
    edited_price: Optional[Decimal] = None

    def to_dict(self) -> dict:
        return {
            "service_id": self.service_id,
            "title": self.title,
            "price": self.price,
            "effective_price": effective_price(self),
            "quantity": self.quantity,
            "session_count": self.session_count,
            "custom_price": self.custom_price,
            "edited_price": self.edited_price,
        }


@dataclass(frozen=True)
class FreeZone:
    service_id: int
    title: str = ""
    price_per_procedure: Decimal = ZERO
    quantity: int = 1

    def to_dict(self) -> dict:
        return {
            "service_id": self.service_id,
            "title": self.title,
            "price_per_procedure": self.price_per_procedure,
            "quantity": self.quantity,
        }


# =============================================================================
# RESULT VALUE OBJECTS
# =============================================================================

@dataclass(frozen=True)
class AppliedDiscount:
    type: str
    amount: Decimal

    def to_dict(self) -> dict:
        return {"type": self.type, "amount": self.amount}


@dataclass
class PackagePricing:
    is_available: bool
    unavailable_reason: str
    final_cost: Decimal
    total_savings: Decimal
    monthly_payment: Decimal
    applied_discounts: List[AppliedDiscount]
    gift_sessions: int = 0

    def discount_amount(self, kind: str) -> Decimal:
        for discount in self.applied_discounts:
            if discount.type == kind:
                return discount.amount
        return ZERO

    def to_dict(self) -> dict:
        return {
            "is_available": self.is_available,
            "unavailable_reason": self.unavailable_reason,
            "final_cost": self.final_cost,
            "total_savings": self.total_savings,
            "monthly_payment": self.monthly_payment,
            "applied_discounts": [d.to_dict() for d in self.applied_discounts],
            "gift_sessions": self.gift_sessions,
        }


@dataclass
class CalculationResult:
    base_cost: Decimal
    total_procedures: int
    free_zones_value: Decimal
    packages: Dict[str, PackagePricing]

    def to_dict(self) -> dict:
        return {
            "base_cost": self.base_cost,
            "total_procedures": self.total_procedures,
            "free_zones_value": self.free_zones_value,
            "packages": {key: pricing.to_dict() for key, pricing in self.packages.items()},
        }


@dataclass
class PricingParams:
    packages: Mapping[str, PackageTerms]
    down_payment: Decimal = ZERO
    installment_months: int = 0
    used_certificate: bool = False
    free_zones: Sequence[FreeZone] = ()
    max_session_count: int = FALLBACK_PROCEDURE_COUNT
    free_zones_value: Decimal = ZERO
    total_procedures: int = 0
    correction_percent: Decimal = ZERO
    manual_gift_sessions: Mapping[str, int] = field(default_factory=dict)


@dataclass
class PricingOrder:
    """Everything the master has entered, as submitted to a quote."""
    services: List[SelectedService]
    free_zones: List[FreeZone] = field(default_factory=list)
    down_payment: Decimal = ZERO
    installment_months: int = 0
    used_certificate: bool = False
    correction_percent: Decimal = ZERO
    manual_gift_sessions: Dict[str, int] = field(default_factory=dict)
    package_type: Optional[str] = None


# =============================================================================
# CART HELPERS
# =============================================================================

def effective_price(service: SelectedService) -> Decimal:
    """
    Unit price used for costing a selected service.

    Precedence: custom price (typed by the master in the cart), then edited
    price (carried over from a saved sale), then catalog price, then zero.
    """
    for candidate in (service.custom_price, service.edited_price, service.price):
        if candidate is not None:
            return to_decimal(candidate)
    return ZERO


def clamp_session_count(value) -> int:
    try:
        count = int(value)
    except (TypeError, ValueError):
        return DEFAULT_SESSION_COUNT
    return max(MIN_SESSION_COUNT, min(MAX_SESSION_COUNT, count))


def unique_free_zones(zones: Iterable[FreeZone]) -> List[FreeZone]:
    """At most one free zone per service; the first one wins."""
    seen = set()
    result = []
    for zone in zones:
        if zone.service_id in seen:
            continue
        seen.add(zone.service_id)
        result.append(zone)
    return result


def compute_base_cost(services: Iterable[SelectedService], free_zones: Iterable[FreeZone] = ()) -> Decimal:
    free_ids = {zone.service_id for zone in free_zones}
    total = ZERO
    for service in services:
        if service.service_id in free_ids:
            continue
        total += effective_price(service) * service.quantity * service.session_count
    return quantize_money(total)


def max_session_count(services: Sequence[SelectedService], fallback: int = FALLBACK_PROCEDURE_COUNT) -> int:
    """How many visits the course runs: the longest service, not the sum."""
    if not services:
        return fallback
    return max(service.session_count for service in services)


def total_procedures(services: Iterable[SelectedService]) -> int:
    return sum(service.quantity * service.session_count for service in services)


def compute_free_zones_value(free_zones: Iterable[FreeZone], procedure_count: int) -> Decimal:
    total = ZERO
    for zone in free_zones:
        total += to_decimal(zone.price_per_procedure) * zone.quantity * procedure_count
    return quantize_money(total)


def service_composition(services: Iterable[SelectedService]) -> Dict[int, int]:
    """{service_id: session_count}, order-independent."""
    return {int(service.service_id): int(service.session_count) for service in services}


def resolve_gift_sessions(terms: PackageTerms, manual_gift_sessions: Optional[Mapping[str, int]] = None) -> int:
    if manual_gift_sessions and terms.type in manual_gift_sessions:
        override = manual_gift_sessions[terms.type]
        if override is not None:
            return max(0, int(override))
    return max(0, int(terms.gift_sessions or 0))


# =============================================================================
# DISCOUNT RULES
# =============================================================================

def bulk_discount(base_cost: Decimal, session_count: int, settings: CalculatorSettings) -> Decimal:
    if session_count < settings.bulk_discount_threshold:
        return ZERO
    return quantize_money(base_cost * settings.bulk_discount_percentage)


def certificate_discount(base_cost: Decimal, used_certificate: bool, settings: CalculatorSettings) -> Decimal:
    if not used_certificate or not certificate_allowed(base_cost, settings):
        return ZERO
    return quantize_money(settings.certificate_discount_amount)


def certificate_allowed(base_cost: Decimal, settings: CalculatorSettings) -> bool:
    """The certificate control is disabled below the minimum course amount."""
    return base_cost >= settings.certificate_min_course_amount


def clamp_correction_percent(value) -> Decimal:
    percent = to_decimal(value)
    if percent < ZERO:
        return ZERO
    return min(percent, MAX_CORRECTION_PERCENT)


def correction_discount(base_cost: Decimal, correction_percent) -> Decimal:
    return quantize_money(clamp_correction_percent(correction_percent) * base_cost / HUNDRED)


def gift_sessions_value(base_cost: Decimal, gift_sessions: int, session_count: int) -> Decimal:
    # Undiscounted per-visit rate, free zones play no part
    if gift_sessions <= 0 or session_count <= 0:
        return ZERO
    return quantize_money(Decimal(gift_sessions) * base_cost / Decimal(session_count))


# =============================================================================
# PAYMENT TERMS
# =============================================================================

def monthly_payment(final_cost, down_payment, installment_months: int, requires_full_payment: bool) -> Decimal:
    """
    Remaining balance split evenly over the installment months.
    The payment schedule in calculator.services.offers uses this exact figure.
    """
    if requires_full_payment or not installment_months or installment_months <= 0:
        return ZERO
    remaining = to_decimal(final_cost) - to_decimal(down_payment)
    if remaining <= ZERO:
        return ZERO
    return quantize_money(remaining / Decimal(installment_months))


def min_down_payment(terms: PackageTerms, pricing: PackagePricing, settings: CalculatorSettings) -> Decimal:
    """
    Lowest down payment allowed for a package.

    Full-payment packages: the final cost. Otherwise the larger of the
    package percentage (rounded to whole units) and the global floor, never
    above the final cost.
    """
    final_cost = pricing.final_cost
    if terms.requires_full_payment:
        return final_cost
    percentage_based = round_to_unit(final_cost * terms.min_down_payment_percent)
    floor = max(percentage_based, round_to_unit(settings.minimum_down_payment))
    return min(floor, final_cost)


def max_down_payment(pricing: PackagePricing) -> Decimal:
    return pricing.final_cost


def clamp_down_payment(value, terms: PackageTerms, pricing: PackagePricing, settings: CalculatorSettings) -> Decimal:
    low = min_down_payment(terms, pricing, settings)
    high = max_down_payment(pricing)
    return max(low, min(high, quantize_money(value)))


def unavailable_reason(base_cost: Decimal, terms: PackageTerms) -> str:
    shortage = terms.min_cost - base_cost
    return f"Short by {format_amount(shortage)} (minimum: {format_amount(terms.min_cost)})"


# =============================================================================
# ENGINE
# =============================================================================

def price_package(
    base_cost: Decimal,
    terms: PackageTerms,
    params: PricingParams,
    settings: CalculatorSettings,
) -> PackagePricing:
    session_count = params.max_session_count if params.max_session_count > 0 else FALLBACK_PROCEDURE_COUNT

    package_amount = quantize_money(base_cost * terms.effective_discount)
    bulk_amount = bulk_discount(base_cost, session_count, settings)
    certificate_amount = certificate_discount(base_cost, params.used_certificate, settings)
    correction_amount = correction_discount(base_cost, params.correction_percent)

    gift_sessions = resolve_gift_sessions(terms, params.manual_gift_sessions)
    gift_value = gift_sessions_value(base_cost, gift_sessions, session_count)

    total_savings = package_amount + certificate_amount + bulk_amount + correction_amount
    final_cost = base_cost - total_savings

    applied = [AppliedDiscount(DiscountKind.PACKAGE.value, package_amount)]
    if bulk_amount > ZERO:
        applied.append(AppliedDiscount(DiscountKind.BULK.value, bulk_amount))
    if certificate_amount > ZERO:
        applied.append(AppliedDiscount(DiscountKind.CERTIFICATE.value, certificate_amount))
    if correction_amount > ZERO:
        applied.append(AppliedDiscount(DiscountKind.CORRECTION.value, correction_amount))
    if gift_value > ZERO:
        applied.append(AppliedDiscount(DiscountKind.GIFT_SESSIONS.value, gift_value))

    is_available = base_cost >= terms.min_cost

    return PackagePricing(
        is_available=is_available,
        unavailable_reason="" if is_available else unavailable_reason(base_cost, terms),
        final_cost=final_cost,
        total_savings=total_savings,
        monthly_payment=monthly_payment(
            final_cost,
            params.down_payment,
            params.installment_months,
            terms.requires_full_payment,
        ),
        applied_discounts=applied,
        gift_sessions=gift_sessions,
    )


def compute_pricing(base_cost, params: PricingParams, settings: CalculatorSettings) -> Optional[CalculationResult]:
    """
    Price every configured package for one cart.

    Returns None when there is nothing to price (empty cart or only free
    zones). Unavailable packages are still priced so the comparison table
    can show what the client would get.
    """
    base_cost = quantize_money(base_cost)
    if base_cost <= ZERO:
        return None

    packages: Dict[str, PackagePricing] = {}
    for package_type in PACKAGE_ORDER:
        terms = params.packages.get(package_type.value)
        if terms is None:
            continue
        packages[package_type.value] = price_package(base_cost, terms, params, settings)

    return CalculationResult(
        base_cost=base_cost,
        total_procedures=params.total_procedures,
        free_zones_value=quantize_money(params.free_zones_value),
        packages=packages,
    )


def build_params(order: PricingOrder, packages: Mapping[str, PackageTerms]) -> PricingParams:
    procedure_count = max_session_count(order.services)
    zones = unique_free_zones(order.free_zones)
    return PricingParams(
        packages=packages,
        down_payment=quantize_money(order.down_payment),
        installment_months=int(order.installment_months or 0),
        used_certificate=bool(order.used_certificate),
        free_zones=zones,
        max_session_count=procedure_count,
        free_zones_value=compute_free_zones_value(zones, procedure_count),
        total_procedures=total_procedures(order.services),
        correction_percent=clamp_correction_percent(order.correction_percent),
        manual_gift_sessions=dict(order.manual_gift_sessions or {}),
    )


def build_quote(
    order: PricingOrder,
    packages: Mapping[str, PackageTerms],
    settings: CalculatorSettings,
) -> Optional[CalculationResult]:
    """Base cost + engine in one call, for callers holding a whole order."""
    base_cost = compute_base_cost(order.services, unique_free_zones(order.free_zones))
    return compute_pricing(base_cost, build_params(order, packages), settings)


def payment_bounds(
    package_type: str,
    result: Optional[CalculationResult],
    packages: Mapping[str, PackageTerms],
    settings: CalculatorSettings,
) -> Optional[dict]:
    """min/max down payment and monthly visibility for one package, or None."""
    if result is None:
        return None
    pricing = result.packages.get(package_type)
    terms = packages.get(package_type)
    if pricing is None or terms is None:
        return None
    return {
        "min_down_payment": min_down_payment(terms, pricing, settings),
        "max_down_payment": max_down_payment(pricing),
        "shows_monthly_payment": not terms.requires_full_payment,
    }
