from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    dependencies = [
        ("calculator", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Perk",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100)),
                ("description", models.TextField(blank=True)),
                ("icon", models.CharField(max_length=50)),
                ("icon_color", models.CharField(default="#000000", max_length=7)),
                ("display_order", models.PositiveIntegerField(default=0)),
                ("is_active", models.BooleanField(default=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["display_order", "id"],
            },
        ),
        migrations.CreateModel(
            name="PackagePerkValue",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("value_type", models.CharField(choices=[("boolean", "Included / not included"), ("text", "Text"), ("number", "Number")], default="text", max_length=10)),
                ("boolean_value", models.BooleanField(blank=True, null=True)),
                ("text_value", models.CharField(blank=True, max_length=255)),
                ("number_value", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("display_value", models.CharField(max_length=255)),
                ("tooltip", models.CharField(blank=True, max_length=255)),
                ("custom_icon", models.CharField(blank=True, max_length=50)),
                ("custom_icon_color", models.CharField(blank=True, max_length=7)),
                ("is_highlighted", models.BooleanField(default=False)),
                ("is_best", models.BooleanField(default=False)),
                ("is_active", models.BooleanField(default=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("package", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="perk_values", to="calculator.packagedefinition")),
                ("perk", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="package_values", to="calculator.perk")),
            ],
            options={
                "ordering": ["perk__display_order", "perk_id"],
            },
        ),
        migrations.AddConstraint(
            model_name="packageperkvalue",
            constraint=models.UniqueConstraint(fields=("package", "perk"), name="unique_perk_per_package"),
        ),
    ]
