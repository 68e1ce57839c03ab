import os
from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'AuctionHub.settings')

app = Celery('AuctionHub')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()

app.conf.beat_schedule = {
    'update-auction-statuses': {
        'task': 'auctions.tasks.update_auction_statuses',
        'schedule': float(os.environ.get('AUCTION_STATUS_SWEEP_SECONDS', '30')),  # seconds
    },
}
