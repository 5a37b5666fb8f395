# calculator/serializers.py

from decimal import Decimal

from rest_framework import serializers

from .constants import (
    MAX_SESSION_COUNT,
    MIN_SESSION_COUNT,
    DEFAULT_SESSION_COUNT,
    OfferStatus,
    PackageType,
)
from .models import Offer, PackageDefinition, PackagePerkValue, Perk, Sale, Service
from .services.pricing import FreeZone, PricingOrder, SelectedService
from .services.sales import ClientData
from .utils.phones import normalize_phone

MONEY = dict(max_digits=12, decimal_places=2, min_value=Decimal('0'))


# -----------------------
# Catalog / configuration
# -----------------------

class ServiceSerializer(serializers.ModelSerializer):
    class Meta:
        model = Service
        fields = ['id', 'yclients_id', 'title', 'price_min', 'category_id', 'is_active', 'updated_at']
        read_only_fields = fields


class PackageDefinitionSerializer(serializers.ModelSerializer):
    effective_discount = serializers.SerializerMethodField()

    class Meta:
        model = PackageDefinition
        fields = [
            'id',
            'type',
            'name',
            'discount',
            'dynamic_discount',
            'effective_discount',
            'min_cost',
            'min_down_payment_percent',
            'requires_full_payment',
            'gift_sessions',
            'bonus_account_percent',
            'is_active',
        ]

    def get_effective_discount(self, obj):
        return obj.to_terms().effective_discount


class PackagePerkValueSerializer(serializers.ModelSerializer):
    package_type = serializers.CharField(source='package.type', read_only=True)
    is_included = serializers.BooleanField(read_only=True)

    class Meta:
        model = PackagePerkValue
        fields = [
            'id',
            'package',
            'package_type',
            'perk',
            'value_type',
            'boolean_value',
            'text_value',
            'number_value',
            'display_value',
            'tooltip',
            'custom_icon',
            'custom_icon_color',
            'is_highlighted',
            'is_best',
            'is_included',
            'is_active',
        ]


class PerkSerializer(serializers.ModelSerializer):
    package_values = serializers.SerializerMethodField()

    class Meta:
        model = Perk
        fields = ['id', 'name', 'description', 'icon', 'icon_color', 'display_order', 'is_active', 'package_values']

    def get_package_values(self, obj):
        # {package_type: value}
        return {
            value.package.type: PackagePerkValueSerializer(value).data
            for value in obj.package_values.all()
        }


# -----------------------
# Orders
# -----------------------

class SelectedServiceSerializer(serializers.Serializer):
    service_id = serializers.IntegerField()
    title = serializers.CharField(required=False, allow_blank=True, default='')
    price = serializers.DecimalField(required=False, allow_null=True, default=None, **MONEY)
    quantity = serializers.IntegerField(required=False, default=1, min_value=1)
    session_count = serializers.IntegerField(
        required=False,
        default=DEFAULT_SESSION_COUNT,
        min_value=MIN_SESSION_COUNT,
        max_value=MAX_SESSION_COUNT,
    )
    custom_price = serializers.DecimalField(required=False, allow_null=True, default=None, **MONEY)
    edited_price = serializers.DecimalField(required=False, allow_null=True, default=None, **MONEY)


class FreeZoneSerializer(serializers.Serializer):
    service_id = serializers.IntegerField()
    title = serializers.CharField(required=False, allow_blank=True, default='')
    price_per_procedure = serializers.DecimalField(required=False, default=Decimal('0'), **MONEY)
    quantity = serializers.IntegerField(required=False, default=1, min_value=1)


class OrderSerializer(serializers.Serializer):
    """Everything the master has entered in the calculator."""
    services = SelectedServiceSerializer(many=True)
    free_zones = FreeZoneSerializer(many=True, required=False, default=list)
    down_payment = serializers.DecimalField(required=False, default=Decimal('0'), **MONEY)
    installment_months = serializers.IntegerField(required=False, default=0, min_value=0)
    used_certificate = serializers.BooleanField(required=False, default=False)
    correction_percent = serializers.DecimalField(
        max_digits=5,
        decimal_places=2,
        required=False,
        default=Decimal('0'),
        min_value=Decimal('0'),
    )
    manual_gift_sessions = serializers.DictField(
        child=serializers.IntegerField(min_value=0),
        required=False,
        default=dict,
    )
    package = serializers.ChoiceField(choices=PackageType.choices, required=False, allow_null=True, default=None)

    def validate_manual_gift_sessions(self, value):
        unknown = set(value) - set(PackageType.values)
        if unknown:
            raise serializers.ValidationError(f"Unknown package types: {', '.join(sorted(unknown))}")
        return value

    @staticmethod
    def to_order(data) -> PricingOrder:
        return PricingOrder(
            services=[SelectedService(**item) for item in data['services']],
            free_zones=[FreeZone(**item) for item in data.get('free_zones') or []],
            down_payment=data.get('down_payment') or Decimal('0'),
            installment_months=data.get('installment_months') or 0,
            used_certificate=data.get('used_certificate', False),
            correction_percent=data.get('correction_percent') or Decimal('0'),
            manual_gift_sessions=dict(data.get('manual_gift_sessions') or {}),
            package_type=data.get('package'),
        )


class ConfirmableOrderSerializer(OrderSerializer):
    services = SelectedServiceSerializer(many=True, allow_empty=False)
    package = serializers.ChoiceField(choices=PackageType.choices)


class ClientSerializer(serializers.Serializer):
    phone = serializers.CharField(max_length=32)
    email = serializers.EmailField(required=False, allow_blank=True, allow_null=True, default=None)
    name = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_phone(self, value):
        try:
            return normalize_phone(value)
        except ValueError as e:
            raise serializers.ValidationError(str(e))

    @staticmethod
    def to_client_data(data) -> ClientData:
        return ClientData(phone=data['phone'], email=data.get('email') or None, name=data.get('name') or '')


class ConfirmSubscriptionSerializer(serializers.Serializer):
    client = ClientSerializer()
    order = ConfirmableOrderSerializer()
    send_contract = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        if attrs.get('send_contract') and not attrs['client'].get('email'):
            raise serializers.ValidationError({'client': {'email': 'Email is required to send the contract.'}})
        return attrs


# -----------------------
# Sales / offers
# -----------------------

class SaleSerializer(serializers.ModelSerializer):
    client_phone = serializers.CharField(source='client.phone', read_only=True)
    master_name = serializers.SerializerMethodField()
    subscription_type_title = serializers.CharField(source='subscription_type.title', read_only=True)

    class Meta:
        model = Sale
        fields = [
            'id',
            'client',
            'client_phone',
            'master',
            'master_name',
            'subscription_type',
            'subscription_type_title',
            'selected_services',
            'selected_package',
            'base_cost',
            'final_cost',
            'total_savings',
            'down_payment',
            'installment_months',
            'monthly_payment',
            'applied_discounts',
            'free_zones',
            'used_certificate',
            'correction_percent',
            'manual_gift_sessions',
            'created_at',
        ]
        read_only_fields = fields

    def get_master_name(self, obj):
        if obj.master is None:
            return None
        return obj.master.get_full_name() or obj.master.username


class OfferSerializer(serializers.ModelSerializer):
    is_expired = serializers.SerializerMethodField()

    class Meta:
        model = Offer
        fields = [
            'id',
            'offer_number',
            'client',
            'master',
            'sale',
            'selected_services',
            'selected_package',
            'base_cost',
            'final_cost',
            'total_savings',
            'down_payment',
            'installment_months',
            'monthly_payment',
            'payment_schedule',
            'applied_discounts',
            'free_zones',
            'used_certificate',
            'manual_gift_sessions',
            'client_name',
            'client_phone',
            'client_email',
            'pdf_path',
            'email_sent',
            'email_sent_at',
            'status',
            'expires_at',
            'is_expired',
            'created_at',
        ]
        read_only_fields = fields

    def get_is_expired(self, obj):
        return obj.is_expired()


class OfferCreateSerializer(serializers.Serializer):
    """Either an existing sale, or a client + order priced on the spot."""
    sale_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    client_name = serializers.CharField(required=False, allow_blank=True, default='')
    client_email = serializers.EmailField(required=False, allow_blank=True, allow_null=True, default=None)
    client = ClientSerializer(required=False)
    order = ConfirmableOrderSerializer(required=False)

    def validate(self, attrs):
        if attrs.get('sale_id'):
            if not Sale.objects.filter(id=attrs['sale_id']).exists():
                raise serializers.ValidationError({'sale_id': 'Sale not found.'})
            return attrs
        if not attrs.get('client') or not attrs.get('order'):
            raise serializers.ValidationError('Provide sale_id, or both client and order.')
        return attrs


class OfferStatusSerializer(serializers.ModelSerializer):
    status = serializers.ChoiceField(choices=OfferStatus.choices)

    class Meta:
        model = Offer
        fields = ['status']
