# calculator/services/catalog.py

"""
Local mirrors of YClients data: the service catalog and the subscription
types used for exact-match lookup at sale confirmation.
"""

import logging

from django.db import transaction

from calculator.services import yclients
from calculator.services.sales import cache_subscription_type
from calculator.utils.money import quantize_money, to_decimal

logger = logging.getLogger(__name__)


def sync_services() -> dict:
    """
    Upsert the configured category's services. Services that disappeared
    from YClients are deactivated, not deleted (past sales reference them).
    """
    from calculator.models import Service

    records = yclients.get_services()
    seen_ids = set()
    created = updated = 0

    with transaction.atomic():
        for record in records:
            if record.get('id') is None:
                continue
            yclients_id = int(record['id'])
            seen_ids.add(yclients_id)
            _, was_created = Service.objects.update_or_create(
                yclients_id=yclients_id,
                defaults={
                    'title': record.get('title') or f"Service {yclients_id}",
                    'price_min': quantize_money(to_decimal(record.get('price_min'))),
                    'category_id': record.get('category_id'),
                    'is_active': True,
                },
            )
            if was_created:
                created += 1
            else:
                updated += 1

        deactivated = Service.objects.filter(is_active=True).exclude(yclients_id__in=seen_ids).update(is_active=False)

    logger.info(f"Services synced: {created} created, {updated} updated, {deactivated} deactivated")
    return {'created': created, 'updated': updated, 'deactivated': deactivated}


def sync_subscription_types() -> dict:
    from calculator.models import SubscriptionType

    records = yclients.get_subscription_types()
    before = SubscriptionType.objects.count()

    with transaction.atomic():
        for record in records:
            if record.get('id') is None:
                continue
            cache_subscription_type(record)

    total = SubscriptionType.objects.count()
    logger.info(f"Subscription types synced: {len(records)} received, {total - before} new")
    return {'received': len(records), 'created': total - before}
