# calculator/services/session.py

"""
Interactive calculator session.

Holds one master's working selection and keeps a CalculationResult in sync
with it. Every mutation schedules a recomputation through an injected
scheduler; a newer mutation cancels the pending one and reschedules, so the
result always reflects the latest state. While a continuous control is
being dragged the delay is DRAG_DEBOUNCE_SECONDS, otherwise it is zero.

A scheduler is anything with call_later(delay, callback) returning a handle
with cancel(): asyncio's event loop qualifies, ThreadingScheduler is the
fallback for synchronous callers.
"""

from __future__ import annotations

import logging
import threading
from decimal import Decimal
from typing import Callable, Dict, List, Mapping, Optional

from calculator.constants import (
    DRAG_DEBOUNCE_SECONDS,
    FALLBACK_PROCEDURE_COUNT,
    IDLE_DEBOUNCE_SECONDS,
)
from calculator.services.pricing import (
    CalculationResult,
    CalculatorSettings,
    FreeZone,
    PackageTerms,
    PricingInputError,
    PricingOrder,
    SelectedService,
    build_quote,
    certificate_allowed,
    clamp_correction_percent,
    clamp_session_count,
    compute_base_cost,
    max_session_count,
    min_down_payment,
    payment_bounds,
    unique_free_zones,
)
from calculator.utils.money import ZERO, quantize_money, to_decimal

logger = logging.getLogger(__name__)


class ThreadingScheduler:
    """call_later() on top of threading.Timer."""

    def call_later(self, delay: float, callback: Callable[[], None]):
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer


class CalculatorSession:

    def __init__(
        self,
        packages: Mapping[str, PackageTerms],
        settings: CalculatorSettings,
        scheduler=None,
    ):
        self.packages: Dict[str, PackageTerms] = dict(packages)
        self.settings = settings
        self.scheduler = scheduler or ThreadingScheduler()

        self.services: List[SelectedService] = []
        self.free_zones: List[FreeZone] = []
        self.down_payment: Decimal = ZERO
        self.installment_months: int = settings.default_installment_months
        self.used_certificate = False
        self.correction_percent: Decimal = ZERO
        self.manual_gift_sessions: Dict[str, int] = {}
        self.selected_package: Optional[str] = None

        self.result: Optional[CalculationResult] = None
        self.dragging = False

        self._fallback_procedure_count = FALLBACK_PROCEDURE_COUNT
        self._pending = None
        self._listeners: List[Callable[["CalculatorSession"], None]] = []
        self._lock = threading.RLock()

        self._init_gift_sessions()

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def on_result(self, listener: Callable[["CalculatorSession"], None]):
        self._listeners.append(listener)

    @property
    def debounce_delay(self) -> float:
        return DRAG_DEBOUNCE_SECONDS if self.dragging else IDLE_DEBOUNCE_SECONDS

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def schedule(self):
        """Cancel any pending recomputation and schedule a fresh one."""
        with self._lock:
            if self._pending is not None:
                self._pending.cancel()
            self._pending = self.scheduler.call_later(self.debounce_delay, self._run_scheduled)

    def cancel_pending(self):
        with self._lock:
            if self._pending is not None:
                self._pending.cancel()
                self._pending = None

    def flush(self) -> Optional[CalculationResult]:
        """Run any pending recomputation now."""
        self.cancel_pending()
        return self.recompute()

    def _run_scheduled(self):
        with self._lock:
            self._pending = None
        self.recompute()

    def recompute(self) -> Optional[CalculationResult]:
        with self._lock:
            self.result = build_quote(self.order(), self.packages, self.settings)

            if self.selected_package:
                pricing = self.result.packages.get(self.selected_package) if self.result else None
                if pricing is None or not pricing.is_available:
                    logger.info(f"Package '{self.selected_package}' no longer available, deselecting")
                    self.selected_package = None
                elif self.packages[self.selected_package].requires_full_payment:
                    self.down_payment = pricing.final_cost

            listeners = list(self._listeners)
            result = self.result

        for listener in listeners:
            listener(self)
        return result

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def procedure_count(self) -> int:
        if self.services:
            return max_session_count(self.services)
        return self._fallback_procedure_count

    @property
    def base_cost(self) -> Decimal:
        return compute_base_cost(self.services, unique_free_zones(self.free_zones))

    @property
    def certificate_allowed(self) -> bool:
        return certificate_allowed(self.base_cost, self.settings)

    def order(self) -> PricingOrder:
        return PricingOrder(
            services=list(self.services),
            free_zones=list(self.free_zones),
            down_payment=self.down_payment,
            installment_months=self.installment_months,
            used_certificate=self.used_certificate,
            correction_percent=self.correction_percent,
            manual_gift_sessions=dict(self.manual_gift_sessions),
            package_type=self.selected_package,
        )

    def bounds(self) -> Optional[dict]:
        if not self.selected_package:
            return None
        return payment_bounds(self.selected_package, self.result, self.packages, self.settings)

    def snapshot(self) -> dict:
        return {
            'services': [service.to_dict() for service in self.services],
            'free_zones': [zone.to_dict() for zone in self.free_zones],
            'procedure_count': self.procedure_count,
            'down_payment': self.down_payment,
            'installment_months': self.installment_months,
            'used_certificate': self.used_certificate,
            'certificate_allowed': self.certificate_allowed,
            'correction_percent': self.correction_percent,
            'manual_gift_sessions': dict(self.manual_gift_sessions),
            'selected_package': self.selected_package,
            'dragging': self.dragging,
            'result': self.result.to_dict() if self.result else None,
            'bounds': self.bounds(),
        }

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def _init_gift_sessions(self):
        for package_type, terms in self.packages.items():
            self.manual_gift_sessions.setdefault(package_type, terms.gift_sessions)

    def refresh_config(self, packages: Mapping[str, PackageTerms], settings: CalculatorSettings):
        self.packages = dict(packages)
        self.settings = settings
        if self.installment_months not in settings.installment_months_options:
            self.installment_months = settings.default_installment_months
        self._init_gift_sessions()
        self.schedule()

    # ------------------------------------------------------------------
    # Drag state
    # ------------------------------------------------------------------

    def begin_drag(self):
        self.dragging = True

    def end_drag(self):
        self.dragging = False
        # Settle on the final dragged value right away
        self.schedule()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set_services(self, services: List[SelectedService]):
        for service in services:
            service.session_count = clamp_session_count(service.session_count)
        self.services = list(services)
        self.schedule()

    def set_session_count(self, service_id: int, session_count: int):
        for service in self.services:
            if service.service_id == service_id:
                service.session_count = clamp_session_count(session_count)
        self.schedule()

    def set_custom_price(self, service_id: int, price):
        for service in self.services:
            if service.service_id == service_id:
                service.custom_price = None if price is None else quantize_money(price)
        self.schedule()

    def set_procedure_count(self, count: int):
        if self.services:
            raise PricingInputError("Procedure count follows the selected services.")
        self._fallback_procedure_count = clamp_session_count(count)
        self.schedule()

    def set_free_zones(self, zones: List[FreeZone]):
        self.free_zones = unique_free_zones(zones)
        self.schedule()

    def toggle_free_zone(self, zone: FreeZone):
        if any(existing.service_id == zone.service_id for existing in self.free_zones):
            self.free_zones = [z for z in self.free_zones if z.service_id != zone.service_id]
        else:
            self.free_zones = self.free_zones + [zone]
        self.schedule()

    def set_down_payment(self, value):
        self.down_payment = quantize_money(value)
        self.schedule()

    def set_installment_months(self, months: int):
        months = int(months)
        if months not in self.settings.installment_months_options:
            raise PricingInputError(
                f"Installment months must be one of {list(self.settings.installment_months_options)}."
            )
        self.installment_months = months
        self.schedule()

    def set_certificate(self, used: bool):
        self.used_certificate = bool(used)
        self.schedule()

    def set_correction(self, percent):
        self.correction_percent = clamp_correction_percent(percent)
        self.schedule()

    def set_gift_sessions(self, package_type: str, count: int):
        if package_type not in self.packages:
            raise PricingInputError(f"Unknown package: {package_type!r}")
        self.manual_gift_sessions[package_type] = max(0, int(count))
        self.schedule()

    def select_package(self, package_type: Optional[str]) -> bool:
        """
        Select (or clear with None) a package. The down payment is reset to
        the package minimum, which is the whole cost for full-payment
        packages. Unavailable packages cannot be selected.
        """
        if package_type is None:
            self.selected_package = None
            self.schedule()
            return True

        terms = self.packages.get(package_type)
        if terms is None:
            raise PricingInputError(f"Unknown package: {package_type!r}")

        if self.has_pending or self.result is None:
            self.flush()

        pricing = self.result.packages.get(package_type) if self.result else None
        if pricing is None or not pricing.is_available:
            return False

        self.selected_package = package_type
        self.down_payment = min_down_payment(terms, pricing, self.settings)
        self.schedule()
        return True


def selected_service_from_dict(data: dict) -> SelectedService:
    """Build a SelectedService from a JSON payload (socket command or API body)."""
    def optional_money(key):
        value = data.get(key)
        return None if value is None or value == "" else to_decimal(value)

    return SelectedService(
        service_id=int(data['service_id']),
        title=data.get('title') or "",
        price=optional_money('price'),
        quantity=max(1, int(data.get('quantity') or 1)),
        session_count=clamp_session_count(data.get('session_count')),
        custom_price=optional_money('custom_price'),
        edited_price=optional_money('edited_price'),
    )


def free_zone_from_dict(data: dict) -> FreeZone:
    return FreeZone(
        service_id=int(data['service_id']),
        title=data.get('title') or "",
        price_per_procedure=to_decimal(data.get('price_per_procedure')),
        quantity=max(1, int(data.get('quantity') or 1)),
    )
