# auctions/concurrency.py
import functools
import logging

from django.db import OperationalError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from .exceptions import ConcurrencyConflict

logger = logging.getLogger(__name__)

CONFLICT_ATTEMPTS = 2


def _log_retry(retry_state):
    logger.warning(
        "Lock conflict in %s (attempt %s), retrying",
        retry_state.fn.__name__, retry_state.attempt_number,
    )


def retry_on_conflict(func):
    """
    Run a transactional operation, retrying it once when the database reports a
    lock timeout, deadlock or serialization failure. A second failure is raised
    as ``ConcurrencyConflict``.
    """
    retrying = retry(
        stop=stop_after_attempt(CONFLICT_ATTEMPTS),
        wait=wait_fixed(0.05),
        retry=retry_if_exception_type(OperationalError),
        before_sleep=_log_retry,
        reraise=True,
    )(func)

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return retrying(*args, **kwargs)
        except OperationalError as exc:
            logger.error("Giving up on %s after %s attempts: %s", func.__name__, CONFLICT_ATTEMPTS, exc)
            raise ConcurrencyConflict() from exc

    return wrapper
