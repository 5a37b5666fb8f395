import os
from celery import Celery
from celery.schedules import crontab

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'vivi_project.settings')

app = Celery('vivi_project')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()

# Beat schedule - runs same logic as the management commands
app.conf.beat_schedule = {
    'sync-yclients-services-nightly': {
        'task': 'calculator.tasks.sync_services_task',
        'schedule': crontab(minute=30, hour=3),  # Every night at 03:30
    },
    'sync-subscription-types-hourly': {
        'task': 'calculator.tasks.sync_subscription_types_task',
        'schedule': crontab(minute=15),  # Every hour
    },
    'expire-offers-hourly': {
        'task': 'calculator.tasks.expire_offers_task',
        'schedule': crontab(minute=0),  # Every hour
    },
}
