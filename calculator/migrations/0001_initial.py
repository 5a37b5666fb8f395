# calculator/migrations/0001_initial.py

from decimal import Decimal

import calculator.models
import django.contrib.auth.models
import django.contrib.auth.validators
import django.core.serializers.json
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


FRACTION_VALIDATORS = [
    django.core.validators.MinValueValidator(Decimal("0")),
    django.core.validators.MaxValueValidator(Decimal("1")),
]

PACKAGE_CHOICES = [("vip", "VIP"), ("standard", "Standard"), ("economy", "Economy")]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("auth", "0012_alter_user_first_name_max_length"),
    ]

    operations = [
        migrations.CreateModel(
            name="CustomUser",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("password", models.CharField(max_length=128, verbose_name="password")),
                ("last_login", models.DateTimeField(blank=True, null=True, verbose_name="last login")),
                ("is_superuser", models.BooleanField(default=False, help_text="Designates that this user has all permissions without explicitly assigning them.", verbose_name="superuser status")),
                ("username", models.CharField(error_messages={"unique": "A user with that username already exists."}, help_text="Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.", max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name="username")),
                ("first_name", models.CharField(blank=True, max_length=150, verbose_name="first name")),
                ("last_name", models.CharField(blank=True, max_length=150, verbose_name="last name")),
                ("email", models.EmailField(blank=True, max_length=254, verbose_name="email address")),
                ("is_staff", models.BooleanField(default=False, help_text="Designates whether the user can log into this admin site.", verbose_name="staff status")),
                ("is_active", models.BooleanField(default=True, help_text="Designates whether this user should be treated as active. Unselect this instead of deleting accounts.", verbose_name="active")),
                ("date_joined", models.DateTimeField(default=django.utils.timezone.now, verbose_name="date joined")),
                ("role", models.CharField(choices=[("master", "Master"), ("admin", "Admin")], default="master", max_length=10)),
                ("pin", models.CharField(blank=True, max_length=6, null=True, unique=True)),
                ("phone_number", models.CharField(blank=True, max_length=20, null=True)),
                ("groups", models.ManyToManyField(blank=True, help_text="The groups this user belongs to. A user will get all permissions granted to each of their groups.", related_name="user_set", related_query_name="user", to="auth.group", verbose_name="groups")),
                ("user_permissions", models.ManyToManyField(blank=True, help_text="Specific permissions for this user.", related_name="user_set", related_query_name="user", to="auth.permission", verbose_name="user permissions")),
            ],
            options={
                "verbose_name": "user",
                "verbose_name_plural": "users",
                "abstract": False,
            },
            managers=[
                ("objects", django.contrib.auth.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name="ConfigEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("key", models.CharField(max_length=100, unique=True)),
                ("value", models.JSONField(encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "config entry",
                "verbose_name_plural": "config entries",
            },
        ),
        migrations.CreateModel(
            name="Service",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("yclients_id", models.IntegerField(unique=True)),
                ("title", models.CharField(max_length=255)),
                ("price_min", models.DecimalField(decimal_places=2, max_digits=10)),
                ("category_id", models.IntegerField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["title"],
            },
        ),
        migrations.CreateModel(
            name="SubscriptionType",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("yclients_id", models.IntegerField(unique=True)),
                ("title", models.CharField(max_length=255)),
                ("cost", models.DecimalField(decimal_places=2, max_digits=10)),
                ("allow_freeze", models.BooleanField(default=False)),
                ("freeze_limit", models.IntegerField(default=0)),
                ("balance_container", models.JSONField(blank=True, null=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name="PackageDefinition",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("type", models.CharField(choices=PACKAGE_CHOICES, max_length=20, unique=True)),
                ("name", models.CharField(max_length=100)),
                ("discount", models.DecimalField(decimal_places=2, max_digits=3, validators=FRACTION_VALIDATORS)),
                ("dynamic_discount", models.DecimalField(blank=True, decimal_places=2, max_digits=3, null=True, validators=FRACTION_VALIDATORS)),
                ("min_cost", models.DecimalField(decimal_places=2, max_digits=10)),
                ("min_down_payment_percent", models.DecimalField(decimal_places=2, max_digits=3, validators=FRACTION_VALIDATORS)),
                ("requires_full_payment", models.BooleanField(default=False)),
                ("gift_sessions", models.PositiveIntegerField(default=0)),
                ("bonus_account_percent", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=3, validators=FRACTION_VALIDATORS)),
                ("is_active", models.BooleanField(default=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name="Client",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("phone", models.CharField(max_length=20, unique=True)),
                ("email", models.EmailField(blank=True, max_length=254, null=True)),
                ("yclients_id", models.IntegerField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
        ),
        migrations.CreateModel(
            name="Sale",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("selected_services", models.JSONField(encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ("selected_package", models.CharField(choices=PACKAGE_CHOICES, max_length=20)),
                ("base_cost", models.DecimalField(decimal_places=2, max_digits=10)),
                ("final_cost", models.DecimalField(decimal_places=2, max_digits=10)),
                ("total_savings", models.DecimalField(decimal_places=2, max_digits=10)),
                ("down_payment", models.DecimalField(decimal_places=2, max_digits=10)),
                ("installment_months", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("monthly_payment", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("applied_discounts", models.JSONField(default=list, encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ("free_zones", models.JSONField(default=list, encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ("used_certificate", models.BooleanField(default=False)),
                ("correction_percent", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=4)),
                ("manual_gift_sessions", models.JSONField(default=dict, encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("client", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="sales", to="calculator.client")),
                ("master", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="sales", to=settings.AUTH_USER_MODEL)),
                ("subscription_type", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="sales", to="calculator.subscriptiontype")),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Offer",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("offer_number", models.CharField(max_length=20, unique=True)),
                ("selected_services", models.JSONField(encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ("selected_package", models.CharField(choices=PACKAGE_CHOICES, max_length=20)),
                ("base_cost", models.DecimalField(decimal_places=2, max_digits=10)),
                ("final_cost", models.DecimalField(decimal_places=2, max_digits=10)),
                ("total_savings", models.DecimalField(decimal_places=2, max_digits=10)),
                ("down_payment", models.DecimalField(decimal_places=2, max_digits=10)),
                ("installment_months", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("monthly_payment", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("payment_schedule", models.JSONField(default=list, encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ("applied_discounts", models.JSONField(default=list, encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ("free_zones", models.JSONField(default=list, encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ("used_certificate", models.BooleanField(default=False)),
                ("manual_gift_sessions", models.JSONField(default=dict, encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ("client_name", models.CharField(blank=True, max_length=255)),
                ("client_phone", models.CharField(max_length=20)),
                ("client_email", models.EmailField(blank=True, max_length=254, null=True)),
                ("pdf_path", models.CharField(blank=True, max_length=255)),
                ("email_sent", models.BooleanField(default=False)),
                ("email_sent_at", models.DateTimeField(blank=True, null=True)),
                ("status", models.CharField(choices=[("draft", "Draft"), ("sent", "Sent"), ("accepted", "Accepted"), ("expired", "Expired")], default="draft", max_length=20)),
                ("expires_at", models.DateTimeField(default=calculator.models.default_offer_expiry)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("client", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="offers", to="calculator.client")),
                ("master", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="offers", to=settings.AUTH_USER_MODEL)),
                ("sale", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name="offers", to="calculator.sale")),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
    ]
