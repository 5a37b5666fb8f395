# calculator/management/commands/expire_offers.py

from django.core.management.base import BaseCommand
from django.utils import timezone

from calculator.constants import OfferStatus
from calculator.models import Offer
from calculator.services.offers import expire_stale_offers


class Command(BaseCommand):
    help = 'Mark draft/sent offers past their expiry date as expired'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be expired without changing anything',
        )

    def handle(self, *args, **options):
        now = timezone.now()

        if options['dry_run']:
            stale = Offer.objects.filter(
                status__in=[OfferStatus.DRAFT, OfferStatus.SENT],
                expires_at__lte=now,
            )
            self.stdout.write(self.style.WARNING('DRY RUN - No changes made.'))
            for offer in stale:
                self.stdout.write(f'  - Offer {offer.offer_number} ({offer.status}), expired {offer.expires_at:%Y-%m-%d}')
            self.stdout.write(f'{stale.count()} offer(s) would be expired.')
            return

        count = expire_stale_offers(now=now)
        self.stdout.write(self.style.SUCCESS(f'Expired {count} offer(s).'))
