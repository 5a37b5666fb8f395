# calculator/management/commands/seed_defaults.py

from django.core.management.base import BaseCommand

from calculator.constants import (
    CONFIG_BULK_DISCOUNT_PERCENTAGE,
    CONFIG_BULK_DISCOUNT_THRESHOLD,
    CONFIG_CERTIFICATE_DISCOUNT_AMOUNT,
    CONFIG_CERTIFICATE_MIN_COURSE_AMOUNT,
    CONFIG_INSTALLMENT_MONTHS_OPTIONS,
    CONFIG_MINIMUM_DOWN_PAYMENT,
    DEFAULT_BULK_DISCOUNT_PERCENTAGE,
    DEFAULT_BULK_DISCOUNT_THRESHOLD,
    DEFAULT_CERTIFICATE_DISCOUNT_AMOUNT,
    DEFAULT_CERTIFICATE_MIN_COURSE_AMOUNT,
    DEFAULT_INSTALLMENT_MONTHS_OPTIONS,
    DEFAULT_MINIMUM_DOWN_PAYMENT,
)
from calculator.models import ConfigEntry
from calculator.services.config import ensure_default_packages, ensure_default_perks, set_config

DEFAULT_SETTINGS = {
    CONFIG_MINIMUM_DOWN_PAYMENT: DEFAULT_MINIMUM_DOWN_PAYMENT,
    CONFIG_BULK_DISCOUNT_THRESHOLD: DEFAULT_BULK_DISCOUNT_THRESHOLD,
    CONFIG_BULK_DISCOUNT_PERCENTAGE: DEFAULT_BULK_DISCOUNT_PERCENTAGE,
    CONFIG_INSTALLMENT_MONTHS_OPTIONS: list(DEFAULT_INSTALLMENT_MONTHS_OPTIONS),
    CONFIG_CERTIFICATE_DISCOUNT_AMOUNT: DEFAULT_CERTIFICATE_DISCOUNT_AMOUNT,
    CONFIG_CERTIFICATE_MIN_COURSE_AMOUNT: DEFAULT_CERTIFICATE_MIN_COURSE_AMOUNT,
}


class Command(BaseCommand):
    help = 'Create the default packages, perks and calculator settings if they are missing'

    def add_arguments(self, parser):
        parser.add_argument(
            '--overwrite-settings',
            action='store_true',
            help='Reset calculator settings to their defaults even if already set',
        )

    def handle(self, *args, **options):
        created = ensure_default_packages()
        self.stdout.write(f'Packages created: {created}')
        self.stdout.write(f'Perks created: {ensure_default_perks()}')

        written = 0
        for key, value in DEFAULT_SETTINGS.items():
            if options['overwrite_settings'] or not ConfigEntry.objects.filter(key=key).exists():
                set_config(key, value)
                written += 1
        self.stdout.write(f'Settings written: {written}')

        self.stdout.write(self.style.SUCCESS('Defaults seeded.'))
