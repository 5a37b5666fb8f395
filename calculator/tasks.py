# calculator/tasks.py

from celery import shared_task
import logging

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, default_retry_delay=300)
def sync_services_task(self):
    """
    Pull the service catalog from YClients
    Runs nightly
    """
    from calculator.services.catalog import sync_services
    from calculator.services.yclients import YclientsError

    try:
        return sync_services()
    except YclientsError as e:
        logger.error(f"Service sync failed: {e}")
        raise self.retry(exc=e)


@shared_task(bind=True, max_retries=3, default_retry_delay=120)
def sync_subscription_types_task(self):
    """
    Refresh the local subscription type cache used for exact-match lookup
    Runs every hour
    """
    from calculator.services.catalog import sync_subscription_types
    from calculator.services.yclients import YclientsError

    try:
        return sync_subscription_types()
    except YclientsError as e:
        logger.error(f"Subscription type sync failed: {e}")
        raise self.retry(exc=e)


@shared_task
def expire_offers_task():
    """
    Mark draft/sent offers past their expiry date as expired
    Runs every hour
    """
    from calculator.services.offers import expire_stale_offers

    expired = expire_stale_offers()
    return {'expired': expired}


@shared_task
def send_offer_task(offer_id: int):
    """
    Render and e-mail one offer outside the request cycle
    """
    from calculator.models import Offer
    from calculator.services.offers import OfferDeliveryError, send_offer

    try:
        offer = Offer.objects.get(id=offer_id)
    except Offer.DoesNotExist:
        logger.error(f"Offer {offer_id} not found")
        return {'success': False, 'error': 'Offer not found'}

    try:
        send_offer(offer)
    except OfferDeliveryError as e:
        logger.error(f"Offer {offer.offer_number} not sent: {e}")
        return {'success': False, 'error': str(e)}

    return {'success': True, 'offer_number': offer.offer_number}
