# calculator/services/contract_pdf.py

"""
Contract offer PDF (appendix to the public offer agreement).

Drawn with the reportlab canvas on A4. Helvetica has no Cyrillic glyphs,
so text and amounts are rendered in English with the ISO currency code.
"""

from io import BytesIO

from django.utils import timezone
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from calculator.constants import FREEZE_OPTION_LABELS, PackageType
from calculator.utils.money import ZERO, format_amount, to_decimal

LEFT = 50
LINE = 18
BOTTOM_MARGIN = 70


def _service_line(service: dict) -> str:
    title = service.get('title') or f"Service #{service.get('service_id')}"
    sessions = service.get('session_count') or service.get('sessionCount') or 0
    return f"{title} ({sessions} sessions)"


def _total_sessions(services) -> int:
    return max((int(s.get('session_count') or 0) for s in services), default=0)


def _discount_percent(offer) -> str:
    base = to_decimal(offer.base_cost)
    if base <= ZERO:
        return "0"
    percent = (to_decimal(offer.total_savings) * 100 / base).quantize(to_decimal("1"))
    return f"{percent}"


class _Writer:
    """Tracks the vertical cursor and breaks pages."""

    def __init__(self, p, height):
        self.p = p
        self.height = height
        self.y = height - 80

    def line(self, text, font="Helvetica", size=11, gap=LINE):
        if self.y < BOTTOM_MARGIN:
            self.p.showPage()
            self.y = self.height - 60
        self.p.setFont(font, size)
        self.p.drawString(LEFT, self.y, text)
        self.y -= gap

    def space(self, amount=LINE / 2):
        self.y -= amount


def render_offer_pdf(offer, package=None, perks=None) -> bytes:
    """
    Render an Offer to PDF bytes. `package` is the PackageDefinition of the
    offer's package (gift sessions and bonus percentage come from it);
    `perks` are its PackagePerkValue rows.
    """
    services = offer.selected_services or []
    package_type = offer.selected_package
    gift_sessions = offer.gift_sessions_for_package(package)
    bonus_percent = f"{to_decimal(package.bonus_account_percent) * 100:.0f}" if package else "0"
    freeze_label = FREEZE_OPTION_LABELS.get(PackageType(package_type), "No") if package_type in PackageType.values else "No"

    buffer = BytesIO()
    p = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4
    p.setTitle(f"Offer {offer.offer_number}")

    # Watermark
    p.saveState()
    p.setFont("Helvetica-Bold", 40)
    p.setFillColorRGB(0.93, 0.93, 0.93)
    p.translate(width / 2, height / 2)
    p.rotate(45)
    p.drawCentredString(0, 0, "VIVI")
    p.restoreState()

    w = _Writer(p, height)
    w.line(f"Appendix No. {offer.offer_number}", font="Helvetica-Bold", size=16, gap=22)
    w.line("to the public offer agreement for a course of services", size=11, gap=28)

    w.line(f"1. Services: {'; '.join(_service_line(s) for s in services)}")
    w.line(f"2. Number of sessions: {_total_sessions(services)}")
    w.line(f"3. Individual discount from the price list: {_discount_percent(offer)}%")
    w.line(f"4. Package: {package.name if package else package_type}")
    w.line(f"5. Additional gift sessions: {gift_sessions}")
    w.line(f"6. Card freeze option: {freeze_label}")
    w.line(f"7. Bonus account accrual: {bonus_percent}% of the course cost")

    free_zones = offer.free_zones or []
    if free_zones:
        titles = ", ".join(zone.get('title') or f"#{zone.get('service_id')}" for zone in free_zones)
        w.line(f"8. Free zones: {titles}")

    if offer.used_certificate:
        w.line("Certificate applied.")

    included = [value for value in perks or [] if value.is_included]
    if included:
        w.space()
        w.line("Package perks", font="Helvetica-Bold", size=13, gap=20)
        for value in included:
            w.line(f"- {value.perk.name}: {value.display_value}")

    w.space()
    w.line("Payment terms", font="Helvetica-Bold", size=13, gap=20)
    w.line(f"Course cost: {format_amount(offer.final_cost)}")
    w.line(f"Down payment: {format_amount(offer.down_payment)}")
    if offer.installment_months and offer.monthly_payment:
        w.line(f"Monthly payment: {format_amount(offer.monthly_payment)}")
        w.line(f"Number of payments: {offer.installment_months}")

    schedule = offer.payment_schedule or []
    if len(schedule) > 1:
        w.space()
        w.line("Payment schedule", font="Helvetica-Bold", size=13, gap=20)
        for index, payment in enumerate(schedule, start=1):
            w.line(
                f"{index}. {payment.get('date')}   {format_amount(payment.get('amount'))}   "
                f"{payment.get('description', '')}",
                size=10,
                gap=15,
            )

    w.space(LINE)
    p.line(LEFT, w.y + 10, width - LEFT, w.y + 10)
    w.space()
    w.line("Client", font="Helvetica-Bold", size=13, gap=20)
    w.line(f"Name: {offer.client_name or 'Not specified'}")
    w.line(f"Phone: {offer.client_phone or 'Not specified'}")
    w.line(f"Email: {offer.client_email or 'Not specified'}")
    w.line(f"Date: {timezone.localdate().strftime('%d.%m.%Y')}")
    w.line(f"Valid until: {offer.expires_at.strftime('%d.%m.%Y') if offer.expires_at else '-'}")

    p.showPage()
    p.save()
    buffer.seek(0)
    return buffer.getvalue()
