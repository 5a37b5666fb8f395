# calculator/constants.py

from decimal import Decimal

from django.db import models


class PackageType(models.TextChoices):
    VIP = 'vip', 'VIP'
    STANDARD = 'standard', 'Standard'
    ECONOMY = 'economy', 'Economy'


class DiscountKind(models.TextChoices):
    PACKAGE = 'package', 'Package discount'
    BULK = 'bulk', 'Bulk discount'
    CERTIFICATE = 'certificate', 'Certificate'
    CORRECTION = 'correction', 'Master correction'
    # Informational only, never subtracted from the course cost
    GIFT_SESSIONS = 'gift_sessions', 'Gift sessions'


class UserRole(models.TextChoices):
    MASTER = 'master', 'Master'
    ADMIN = 'admin', 'Admin'


class OfferStatus(models.TextChoices):
    DRAFT = 'draft', 'Draft'
    SENT = 'sent', 'Sent'
    ACCEPTED = 'accepted', 'Accepted'
    EXPIRED = 'expired', 'Expired'


# Display order of the three packages in comparison tables
PACKAGE_ORDER = (PackageType.VIP, PackageType.STANDARD, PackageType.ECONOMY)

# --- SESSION / SERVICE LIMITS ---

MIN_SESSION_COUNT = 3
MAX_SESSION_COUNT = 20
DEFAULT_SESSION_COUNT = 10

# Used when nothing is selected, only to keep the gift math away from zero
FALLBACK_PROCEDURE_COUNT = 10

MAX_CORRECTION_PERCENT = Decimal('10')

# Debounce delay (seconds) while a slider is being dragged
DRAG_DEBOUNCE_SECONDS = 0.1
IDLE_DEBOUNCE_SECONDS = 0.0

# --- CALCULATOR SETTINGS (ConfigEntry keys and their defaults) ---

CONFIG_MINIMUM_DOWN_PAYMENT = 'minimum_down_payment'
CONFIG_BULK_DISCOUNT_THRESHOLD = 'bulk_discount_threshold'
CONFIG_BULK_DISCOUNT_PERCENTAGE = 'bulk_discount_percentage'
CONFIG_INSTALLMENT_MONTHS_OPTIONS = 'installment_months_options'
CONFIG_CERTIFICATE_DISCOUNT_AMOUNT = 'certificate_discount_amount'
CONFIG_CERTIFICATE_MIN_COURSE_AMOUNT = 'certificate_min_course_amount'

DEFAULT_MINIMUM_DOWN_PAYMENT = Decimal('5000')
DEFAULT_BULK_DISCOUNT_THRESHOLD = 15
DEFAULT_BULK_DISCOUNT_PERCENTAGE = Decimal('0.025')
DEFAULT_INSTALLMENT_MONTHS_OPTIONS = (2, 3, 4, 5, 6)
DEFAULT_CERTIFICATE_DISCOUNT_AMOUNT = Decimal('3000')
DEFAULT_CERTIFICATE_MIN_COURSE_AMOUNT = Decimal('25000')

# --- DEFAULT PACKAGE DEFINITIONS (seeded on first run) ---

DEFAULT_PACKAGES = {
    PackageType.VIP: {
        'name': 'VIP',
        'discount': Decimal('0.30'),
        'min_cost': Decimal('25000'),
        'min_down_payment_percent': Decimal('1.00'),
        'requires_full_payment': True,
        'gift_sessions': 3,
        'bonus_account_percent': Decimal('0.20'),
    },
    PackageType.STANDARD: {
        'name': 'Standard',
        'discount': Decimal('0.25'),
        'min_cost': Decimal('30000'),
        'min_down_payment_percent': Decimal('0.50'),
        'requires_full_payment': False,
        'gift_sessions': 1,
        'bonus_account_percent': Decimal('0.15'),
    },
    PackageType.ECONOMY: {
        'name': 'Economy',
        'discount': Decimal('0.20'),
        'min_cost': Decimal('10000'),
        'min_down_payment_percent': Decimal('0.01'),
        'requires_full_payment': False,
        'gift_sessions': 0,
        'bonus_account_percent': Decimal('0.10'),
    },
}

# --- SUBSCRIPTION TYPES (booking platform) ---

# Freeze limits in days; 999 is the platform maximum
FREEZE_LIMIT_DAYS = {
    PackageType.VIP: 999,
    PackageType.STANDARD: 180,
    PackageType.ECONOMY: 90,
}

FREEZE_OPTION_LABELS = {
    PackageType.VIP: 'Unlimited',
    PackageType.STANDARD: '6 months',
    PackageType.ECONOMY: '3 months',
}

SUBSCRIPTION_PERIOD_DAYS = 365
SUBSCRIPTION_TITLE_ATTEMPTS = 100

OFFER_EXPIRY_DAYS = 7

# ConfigEntry key for subscription type titles; {number} must stay first,
# uniqueness is checked against the title prefix
CONFIG_SUBSCRIPTION_TEMPLATE = 'subscription_template'
DEFAULT_SUBSCRIPTION_TEMPLATE = '{number} {services} - {package}'


class PerkValueType(models.TextChoices):
    BOOLEAN = 'boolean', 'Included / not included'
    TEXT = 'text', 'Text'
    NUMBER = 'number', 'Number'

# Seeded perks: name, icon, then per package (value_type, included, display value)
DEFAULT_PERKS = [
    {
        'name': 'Eye-area massage course',
        'icon': 'sparkles',
        'values': {
            PackageType.VIP: (PerkValueType.TEXT, None, '10 sessions'),
            PackageType.STANDARD: (PerkValueType.TEXT, None, '5 sessions'),
            PackageType.ECONOMY: (PerkValueType.TEXT, None, '3 sessions'),
        },
    },
    {
        'name': 'Loyalty card',
        'icon': 'credit-card',
        'values': {
            PackageType.VIP: (PerkValueType.TEXT, None, 'Gold card, 35% off'),
            PackageType.STANDARD: (PerkValueType.TEXT, None, 'Silver card, 30% off'),
            PackageType.ECONOMY: (PerkValueType.BOOLEAN, False, 'Not included'),
        },
    },
    {
        'name': 'Card freeze',
        'icon': 'snowflake',
        'values': {
            PackageType.VIP: (PerkValueType.TEXT, None, FREEZE_OPTION_LABELS[PackageType.VIP]),
            PackageType.STANDARD: (PerkValueType.TEXT, None, FREEZE_OPTION_LABELS[PackageType.STANDARD]),
            PackageType.ECONOMY: (PerkValueType.TEXT, None, FREEZE_OPTION_LABELS[PackageType.ECONOMY]),
        },
    },
]
