# auctions/tasks.py
import logging

from celery import shared_task

from auctions.lifecycle import run_sweep

logger = logging.getLogger(__name__)


@shared_task(name='auctions.tasks.update_auction_statuses', ignore_result=True)
def update_auction_statuses():
    """Periodic status sweep. Failures are logged and left for the next tick."""
    try:
        result = run_sweep()
    except Exception:
        logger.exception("Auction status sweep failed; retrying on next tick")
        return None
    return {'activated': result.activated, 'completed': result.completed}
