# calculator/admin.py

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import (
    Client,
    ConfigEntry,
    CustomUser,
    Offer,
    PackageDefinition,
    PackagePerkValue,
    Perk,
    Sale,
    Service,
    SubscriptionType,
)
from .services.offers import expire_stale_offers


@admin.register(CustomUser)
class CustomUserAdmin(UserAdmin):
    list_display = ('username', 'first_name', 'last_name', 'role', 'is_active', 'is_staff')
    list_filter = ('role', 'is_active', 'is_staff')
    fieldsets = UserAdmin.fieldsets + (
        ('Salon', {'fields': ('role', 'pin', 'phone_number')}),
    )
    add_fieldsets = UserAdmin.add_fieldsets + (
        ('Salon', {'fields': ('role', 'pin', 'phone_number')}),
    )


@admin.register(ConfigEntry)
class ConfigEntryAdmin(admin.ModelAdmin):
    list_display = ('key', 'value', 'updated_at')
    search_fields = ('key',)


@admin.register(PackageDefinition)
class PackageDefinitionAdmin(admin.ModelAdmin):
    list_display = (
        'type',
        'name',
        'discount',
        'dynamic_discount',
        'min_cost',
        'min_down_payment_percent',
        'requires_full_payment',
        'gift_sessions',
        'is_active',
    )
    list_editable = ('dynamic_discount', 'is_active')


@admin.register(Perk)
class PerkAdmin(admin.ModelAdmin):
    list_display = ('name', 'icon', 'display_order', 'is_active', 'updated_at')
    list_filter = ('is_active',)
    search_fields = ('name',)


@admin.register(PackagePerkValue)
class PackagePerkValueAdmin(admin.ModelAdmin):
    list_display = ('perk', 'package', 'value_type', 'display_value', 'is_best', 'is_active')
    list_filter = ('package', 'value_type', 'is_active')
    search_fields = ('perk__name', 'display_value')


@admin.register(Service)
class ServiceAdmin(admin.ModelAdmin):
    list_display = ('yclients_id', 'title', 'price_min', 'is_active', 'updated_at')
    list_filter = ('is_active',)
    search_fields = ('title', 'yclients_id')


@admin.register(SubscriptionType)
class SubscriptionTypeAdmin(admin.ModelAdmin):
    list_display = ('yclients_id', 'title', 'cost', 'allow_freeze', 'freeze_limit', 'updated_at')
    search_fields = ('title', 'yclients_id')


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ('phone', 'email', 'created_at')
    search_fields = ('phone', 'email')


@admin.register(Sale)
class SaleAdmin(admin.ModelAdmin):
    list_display = (
        'id',
        'client',
        'master',
        'selected_package',
        'base_cost',
        'final_cost',
        'down_payment',
        'installment_months',
        'created_at',
    )
    list_filter = ('selected_package', 'used_certificate')
    search_fields = ('id', 'client__phone', 'master__username', 'subscription_type__title')
    raw_id_fields = ('client', 'subscription_type')


@admin.register(Offer)
class OfferAdmin(admin.ModelAdmin):
    list_display = (
        'offer_number',
        'client_phone',
        'client_email',
        'selected_package',
        'final_cost',
        'status',
        'email_sent',
        'expires_at',
    )
    list_filter = ('status', 'email_sent', 'selected_package')
    search_fields = ('offer_number', 'client_phone', 'client_email', 'client_name')
    raw_id_fields = ('client', 'sale')
    actions = ['expire_past_due']

    def expire_past_due(self, request, queryset):
        """
        Admin action: expire the selected draft/sent offers that are past due.
        """
        count = expire_stale_offers(queryset=queryset)
        self.message_user(request, f"Expired {count} offer(s).")

    expire_past_due.short_description = "Expire past-due offers"
