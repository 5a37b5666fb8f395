# calculator/services/offers.py

"""
Contract offers: numbering, payment schedules, PDF delivery and expiry.
"""

from __future__ import annotations

import calendar
import logging
import re
from datetime import date
from typing import List, Optional

from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.db import IntegrityError, transaction
from django.utils import timezone

from calculator.constants import OfferStatus
from calculator.emails import send_offer_email
from calculator.services.config import load_package_perks
from calculator.services.contract_pdf import render_offer_pdf
from calculator.services.pricing import (
    PricingInputError,
    PricingOrder,
    monthly_payment,
    unique_free_zones,
)
from calculator.services.sales import ClientData, attach_catalog, price_order
from calculator.utils.money import ZERO, quantize_money
from calculator.utils.phones import normalize_phone

logger = logging.getLogger(__name__)

OFFER_NUMBER_ATTEMPTS = 3
OFFERS_UPLOAD_DIR = "offers"


class OfferDeliveryError(Exception):
    """The offer PDF could not be rendered, stored or e-mailed."""
    pass


# =============================================================================
# PAYMENT SCHEDULE
# =============================================================================

def add_months(day: date, months: int) -> date:
    """Same day N months later, clamped to the last day of the month."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return day.replace(year=year, month=month, day=min(day.day, last_day))


def build_payment_schedule(
    final_cost,
    down_payment,
    installment_months: Optional[int],
    requires_full_payment: bool = False,
    start: Optional[date] = None,
) -> List[dict]:
    """
    Down payment today, then one entry per installment month.
    Monthly amounts come from the same monthly_payment() the engine uses.
    """
    start = start or timezone.localdate()
    down_payment = quantize_money(down_payment)

    schedule = [{
        'date': start.isoformat(),
        'amount': down_payment,
        'description': 'Down payment',
    }]

    months = int(installment_months or 0)
    amount = monthly_payment(final_cost, down_payment, months, requires_full_payment)
    if amount <= ZERO:
        return schedule

    for i in range(1, months + 1):
        schedule.append({
            'date': add_months(start, i).isoformat(),
            'amount': amount,
            'description': f'Payment {i} of {months}',
        })
    return schedule


# =============================================================================
# NUMBERING
# =============================================================================

def generate_offer_number(today: Optional[date] = None) -> str:
    """YYMM + three-digit sequence, one past the highest number this month."""
    from calculator.models import Offer

    today = today or timezone.localdate()
    prefix = today.strftime('%y%m')
    pattern = re.compile(rf'^{prefix}(\d{{3}})$')

    max_number = 0
    for number in Offer.objects.filter(offer_number__startswith=prefix).values_list('offer_number', flat=True):
        match = pattern.match(number)
        if match:
            max_number = max(max_number, int(match.group(1)))

    return f"{prefix}{max_number + 1:03d}"


# =============================================================================
# CREATION
# =============================================================================

def _requires_full_payment(package_type: str) -> bool:
    from calculator.models import PackageDefinition

    package = PackageDefinition.objects.filter(type=package_type).only('requires_full_payment').first()
    return bool(package and package.requires_full_payment)


def _create_offer(**fields):
    from calculator.models import Offer

    last_error = None
    for _ in range(OFFER_NUMBER_ATTEMPTS):
        try:
            with transaction.atomic():
                return Offer.objects.create(offer_number=generate_offer_number(), **fields)
        except IntegrityError as e:
            # Another offer took the same number; take the next one
            last_error = e
            logger.warning(f"Offer number collision, retrying: {e}")
    raise last_error


def create_offer_from_sale(sale, client_name: str = "", client_email: Optional[str] = None, master=None):
    """Offer carrying the exact terms persisted on a confirmed sale."""
    client = sale.client
    if client_email and client.email != client_email:
        client.email = client_email
        client.save(update_fields=['email'])

    requires_full_payment = _requires_full_payment(sale.selected_package)
    schedule = build_payment_schedule(
        sale.final_cost,
        sale.down_payment,
        sale.installment_months,
        requires_full_payment,
    )

    offer = _create_offer(
        client=client,
        master=master or sale.master,
        sale=sale,
        selected_services=sale.selected_services,
        selected_package=sale.selected_package,
        base_cost=sale.base_cost,
        final_cost=sale.final_cost,
        total_savings=sale.total_savings,
        down_payment=sale.down_payment,
        installment_months=sale.installment_months,
        monthly_payment=sale.monthly_payment,
        payment_schedule=schedule,
        applied_discounts=sale.applied_discounts,
        free_zones=sale.free_zones,
        used_certificate=sale.used_certificate,
        manual_gift_sessions=sale.manual_gift_sessions,
        client_name=client_name or "",
        client_phone=client.phone,
        client_email=client_email or client.email,
    )
    logger.info(f"Offer {offer.offer_number} created from sale {sale.id}")
    return offer


def create_offer_from_order(master, client_data: ClientData, order: PricingOrder):
    """Offer for an order that has not been confirmed as a sale yet, priced server-side."""
    from calculator.models import Client

    try:
        phone = normalize_phone(client_data.phone)
    except ValueError as e:
        raise PricingInputError(str(e)) from e

    attach_catalog(order)
    priced = price_order(order)
    pricing = priced.pricing
    down_payment, months, monthly = priced.down_payment, priced.installment_months, priced.monthly_payment

    client, _ = Client.objects.get_or_create(phone=phone, defaults={'email': client_data.email or None})

    offer = _create_offer(
        client=client,
        master=master if getattr(master, 'is_authenticated', False) else None,
        selected_services=[service.to_dict() for service in order.services],
        selected_package=order.package_type,
        base_cost=priced.result.base_cost,
        final_cost=pricing.final_cost,
        total_savings=pricing.total_savings,
        down_payment=down_payment,
        installment_months=months or None,
        monthly_payment=monthly if monthly > ZERO else None,
        payment_schedule=build_payment_schedule(
            pricing.final_cost, down_payment, months, priced.terms.requires_full_payment,
        ),
        applied_discounts=[discount.to_dict() for discount in pricing.applied_discounts],
        free_zones=[zone.to_dict() for zone in unique_free_zones(order.free_zones)],
        used_certificate=order.used_certificate,
        manual_gift_sessions=dict(order.manual_gift_sessions or {}),
        client_name=client_data.name or "",
        client_phone=phone,
        client_email=client_data.email or client.email,
    )
    logger.info(f"Offer {offer.offer_number} created for {phone} ({order.package_type}, {pricing.final_cost})")
    return offer


# =============================================================================
# DELIVERY
# =============================================================================

def store_offer_pdf(offer, pdf_bytes: bytes) -> str:
    path = f"{OFFERS_UPLOAD_DIR}/offer_{offer.offer_number}.pdf"
    if default_storage.exists(path):
        default_storage.delete(path)
    return default_storage.save(path, ContentFile(pdf_bytes))


def build_offer_pdf(offer) -> bytes:
    from calculator.models import PackageDefinition

    package = PackageDefinition.objects.filter(type=offer.selected_package).first()
    return render_offer_pdf(offer, package, perks=load_package_perks(offer.selected_package))


def send_offer(offer):
    """
    Render, store and e-mail the offer PDF, then mark the offer sent.
    Raises OfferDeliveryError on any failure; the offer stays unsent.
    """
    if not offer.client_email:
        raise OfferDeliveryError("Client email is not specified.")

    try:
        pdf_bytes = build_offer_pdf(offer)
        offer.pdf_path = store_offer_pdf(offer, pdf_bytes)
    except Exception as e:
        logger.exception(f"Could not render offer {offer.offer_number}")
        raise OfferDeliveryError(f"Could not generate the offer PDF: {e}") from e

    offer.save(update_fields=['pdf_path'])

    if not send_offer_email(offer, pdf_bytes):
        raise OfferDeliveryError("Could not send the offer email.")

    offer.email_sent = True
    offer.email_sent_at = timezone.now()
    if offer.status == OfferStatus.DRAFT:
        offer.status = OfferStatus.SENT
    offer.save(update_fields=['email_sent', 'email_sent_at', 'status'])
    logger.info(f"Offer {offer.offer_number} sent to {offer.client_email}")
    return offer


def expire_stale_offers(now=None, queryset=None) -> int:
    """Draft/sent offers past their expiry date become expired. Returns the count."""
    from calculator.models import Offer

    now = now or timezone.now()
    qs = queryset if queryset is not None else Offer.objects.all()
    count = qs.filter(
        status__in=[OfferStatus.DRAFT, OfferStatus.SENT],
        expires_at__lte=now,
    ).update(status=OfferStatus.EXPIRED)

    if count:
        logger.info(f"Expired {count} offers")
    return count
