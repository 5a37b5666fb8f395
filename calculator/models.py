# calculator/models.py

from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.core.serializers.json import DjangoJSONEncoder
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone

from .constants import OfferStatus, PackageType, PerkValueType, UserRole, OFFER_EXPIRY_DAYS
from .services.pricing import PackageTerms
from .utils.money import quantize_money, to_decimal

FRACTION_VALIDATORS = [MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('1'))]


# Custom user model (masters and admins log in with a PIN)
class CustomUser(AbstractUser):
    role = models.CharField(max_length=10, choices=UserRole.choices, default=UserRole.MASTER)
    pin = models.CharField(max_length=6, unique=True, null=True, blank=True)
    phone_number = models.CharField(max_length=20, blank=True, null=True)

    @property
    def is_admin_role(self) -> bool:
        return self.is_staff or self.role == UserRole.ADMIN

    def __str__(self):
        return self.get_full_name() or self.username


# Key/value calculator settings, edited by admins
class ConfigEntry(models.Model):
    key = models.CharField(max_length=100, unique=True)
    value = models.JSONField(encoder=DjangoJSONEncoder)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'config entry'
        verbose_name_plural = 'config entries'

    def __str__(self):
        return f"{self.key} = {self.value!r}"


# Service catalog cached from YClients
class Service(models.Model):
    yclients_id = models.IntegerField(unique=True)
    title = models.CharField(max_length=255)
    price_min = models.DecimalField(max_digits=10, decimal_places=2)
    category_id = models.IntegerField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['title']

    def __str__(self):
        return f"{self.title} ({self.price_min})"


class SubscriptionTypeQuerySet(models.QuerySet):

    def find_matching(self, composition, cost):
        """
        Exact match on cost AND on the {service_id: session_count} set.
        No approximation: anything else is a miss.
        """
        target_cost = quantize_money(cost)
        target = {int(k): int(v) for k, v in composition.items()}

        for subscription_type in self.filter(cost=target_cost).order_by('id'):
            if subscription_type.composition() == target:
                return subscription_type
        return None

    def find_by_number(self, number: str):
        return self.filter(title__startswith=f"{number} ").first()


# Subscription types ("abonement types") cached from YClients
class SubscriptionType(models.Model):
    yclients_id = models.IntegerField(unique=True)
    title = models.CharField(max_length=255)
    cost = models.DecimalField(max_digits=10, decimal_places=2)
    allow_freeze = models.BooleanField(default=False)
    freeze_limit = models.IntegerField(default=0)
    balance_container = models.JSONField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = SubscriptionTypeQuerySet.as_manager()

    def composition(self) -> dict:
        """
        {service_id: count} from balance_container.links.
        Links come either nested ({"service": {"id": 1}}) or flat ({"service_id": 1}).
        """
        container = self.balance_container or {}
        links = container.get('links') if isinstance(container, dict) else None
        if not isinstance(links, list):
            return {}

        result = {}
        for link in links:
            service = link.get('service') or {}
            service_id = service.get('id') if isinstance(service, dict) else None
            if service_id is None:
                service_id = link.get('service_id')
            if service_id is None:
                continue
            result[int(service_id)] = int(link.get('count') or 0)
        return result

    def __str__(self):
        return f"{self.title} ({self.cost})"


# Package configuration: one row per package type
class PackageDefinition(models.Model):
    type = models.CharField(max_length=20, choices=PackageType.choices, unique=True)
    name = models.CharField(max_length=100)
    discount = models.DecimalField(max_digits=3, decimal_places=2, validators=FRACTION_VALIDATORS)

    # Optional promotional discount; the larger of the two applies
    dynamic_discount = models.DecimalField(
        max_digits=3,
        decimal_places=2,
        null=True,
        blank=True,
        validators=FRACTION_VALIDATORS,
    )

    min_cost = models.DecimalField(max_digits=10, decimal_places=2)
    min_down_payment_percent = models.DecimalField(
        max_digits=3,
        decimal_places=2,
        validators=FRACTION_VALIDATORS,
    )
    requires_full_payment = models.BooleanField(default=False)
    gift_sessions = models.PositiveIntegerField(default=0)
    bonus_account_percent = models.DecimalField(
        max_digits=3,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=FRACTION_VALIDATORS,
    )
    is_active = models.BooleanField(default=True)
    updated_at = models.DateTimeField(auto_now=True)

    def to_terms(self) -> PackageTerms:
        return PackageTerms(
            type=self.type,
            name=self.name,
            discount=to_decimal(self.discount),
            min_cost=to_decimal(self.min_cost),
            min_down_payment_percent=to_decimal(self.min_down_payment_percent),
            requires_full_payment=self.requires_full_payment,
            gift_sessions=self.gift_sessions or 0,
            bonus_account_percent=to_decimal(self.bonus_account_percent),
            dynamic_discount=(
                to_decimal(self.dynamic_discount) if self.dynamic_discount is not None else None
            ),
        )

    def __str__(self):
        return f"{self.name} ({self.type})"


# Perks shown on the package comparison and in the contract
class Perk(models.Model):
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    icon = models.CharField(max_length=50)
    icon_color = models.CharField(max_length=7, default='#000000')
    display_order = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['display_order', 'id']

    def __str__(self):
        return self.name


# How one perk applies to one package
class PackagePerkValue(models.Model):
    package = models.ForeignKey(PackageDefinition, on_delete=models.CASCADE, related_name='perk_values')
    perk = models.ForeignKey(Perk, on_delete=models.CASCADE, related_name='package_values')
    value_type = models.CharField(max_length=10, choices=PerkValueType.choices, default=PerkValueType.TEXT)
    boolean_value = models.BooleanField(null=True, blank=True)
    text_value = models.CharField(max_length=255, blank=True)
    number_value = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    display_value = models.CharField(max_length=255)
    tooltip = models.CharField(max_length=255, blank=True)
    custom_icon = models.CharField(max_length=50, blank=True)
    custom_icon_color = models.CharField(max_length=7, blank=True)
    is_highlighted = models.BooleanField(default=False)
    is_best = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['perk__display_order', 'perk_id']
        constraints = [
            models.UniqueConstraint(fields=['package', 'perk'], name='unique_perk_per_package'),
        ]

    @property
    def is_included(self) -> bool:
        # A boolean perk set to False is listed as "not included"
        return not (self.value_type == PerkValueType.BOOLEAN and self.boolean_value is False)

    def __str__(self):
        return f"{self.perk.name} / {self.package.type}: {self.display_value}"


# Salon client, identified by phone
class Client(models.Model):
    phone = models.CharField(max_length=20, unique=True)
    email = models.EmailField(blank=True, null=True)
    yclients_id = models.IntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.phone


# Confirmed course sale (one per confirmed order)
class Sale(models.Model):
    client = models.ForeignKey(
        Client,
        on_delete=models.PROTECT,
        related_name='sales',
    )
    master = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='sales',
    )
    subscription_type = models.ForeignKey(
        SubscriptionType,
        on_delete=models.PROTECT,
        related_name='sales',
    )

    selected_services = models.JSONField(encoder=DjangoJSONEncoder)
    selected_package = models.CharField(max_length=20, choices=PackageType.choices)

    base_cost = models.DecimalField(max_digits=10, decimal_places=2)
    final_cost = models.DecimalField(max_digits=10, decimal_places=2)
    total_savings = models.DecimalField(max_digits=10, decimal_places=2)
    down_payment = models.DecimalField(max_digits=10, decimal_places=2)
    installment_months = models.PositiveSmallIntegerField(null=True, blank=True)
    monthly_payment = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)

    applied_discounts = models.JSONField(encoder=DjangoJSONEncoder, default=list)
    free_zones = models.JSONField(encoder=DjangoJSONEncoder, default=list)
    used_certificate = models.BooleanField(default=False)
    correction_percent = models.DecimalField(max_digits=4, decimal_places=2, default=Decimal('0.00'))
    manual_gift_sessions = models.JSONField(encoder=DjangoJSONEncoder, default=dict)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"Sale #{self.id} {self.selected_package} {self.final_cost} ({self.client})"


def default_offer_expiry():
    days = getattr(settings, 'OFFER_EXPIRY_DAYS', OFFER_EXPIRY_DAYS)
    return timezone.now() + timedelta(days=days)


# Contract offer (appendix to the public offer agreement) sent to a client
class Offer(models.Model):
    client = models.ForeignKey(
        Client,
        on_delete=models.CASCADE,
        related_name='offers',
    )
    master = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='offers',
    )
    sale = models.ForeignKey(
        Sale,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='offers',
    )
    offer_number = models.CharField(max_length=20, unique=True)

    selected_services = models.JSONField(encoder=DjangoJSONEncoder)
    selected_package = models.CharField(max_length=20, choices=PackageType.choices)
    base_cost = models.DecimalField(max_digits=10, decimal_places=2)
    final_cost = models.DecimalField(max_digits=10, decimal_places=2)
    total_savings = models.DecimalField(max_digits=10, decimal_places=2)
    down_payment = models.DecimalField(max_digits=10, decimal_places=2)
    installment_months = models.PositiveSmallIntegerField(null=True, blank=True)
    monthly_payment = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    payment_schedule = models.JSONField(encoder=DjangoJSONEncoder, default=list)
    applied_discounts = models.JSONField(encoder=DjangoJSONEncoder, default=list)
    free_zones = models.JSONField(encoder=DjangoJSONEncoder, default=list)
    used_certificate = models.BooleanField(default=False)
    manual_gift_sessions = models.JSONField(encoder=DjangoJSONEncoder, default=dict)

    client_name = models.CharField(max_length=255, blank=True)
    client_phone = models.CharField(max_length=20)
    client_email = models.EmailField(blank=True, null=True)

    pdf_path = models.CharField(max_length=255, blank=True)
    email_sent = models.BooleanField(default=False)
    email_sent_at = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=OfferStatus.choices, default=OfferStatus.DRAFT)
    expires_at = models.DateTimeField(default=default_offer_expiry)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def is_expired(self) -> bool:
        return self.expires_at is not None and timezone.now() >= self.expires_at

    def gift_sessions_for_package(self, package=None) -> int:
        """Manual override saved with the offer, else the package default."""
        overrides = self.manual_gift_sessions or {}
        if overrides.get(self.selected_package) is not None:
            return int(overrides[self.selected_package])
        return package.gift_sessions if package is not None else 0

    def __str__(self):
        return f"Offer {self.offer_number} ({self.status})"
