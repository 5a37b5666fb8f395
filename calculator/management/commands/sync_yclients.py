# calculator/management/commands/sync_yclients.py

from django.core.management.base import BaseCommand, CommandError

from calculator.services.catalog import sync_services, sync_subscription_types
from calculator.services.yclients import YclientsError


class Command(BaseCommand):
    help = 'Pull the service catalog and subscription types from YClients'

    def add_arguments(self, parser):
        parser.add_argument(
            '--services-only',
            action='store_true',
            help='Sync the service catalog only',
        )
        parser.add_argument(
            '--subscription-types-only',
            action='store_true',
            help='Sync subscription types only',
        )

    def handle(self, *args, **options):
        services_only = options['services_only']
        types_only = options['subscription_types_only']

        if services_only and types_only:
            raise CommandError('Use at most one of --services-only / --subscription-types-only.')

        try:
            if not types_only:
                result = sync_services()
                self.stdout.write(
                    f"Services: {result['created']} created, {result['updated']} updated, "
                    f"{result['deactivated']} deactivated"
                )

            if not services_only:
                result = sync_subscription_types()
                self.stdout.write(
                    f"Subscription types: {result['received']} received, {result['created']} new"
                )
        except YclientsError as e:
            raise CommandError(f'YClients sync failed: {e}')

        self.stdout.write(self.style.SUCCESS('YClients sync complete.'))
