import logging

from django.db import DatabaseError
from rest_framework import status
from rest_framework.exceptions import APIException, NotFound, PermissionDenied
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class AuctionError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Auction request could not be processed.'
    default_code = 'auction_error'

    def __init__(self, message=None, code=None, **extra):
        self.message = message or str(self.default_detail)
        self.extra = extra
        super().__init__(detail={'error': self.message, **extra}, code=code)


class InvariantViolation(AuctionError):
    default_detail = 'Operation would break an auction invariant.'
    default_code = 'invariant_violation'


class BidAboveCeiling(InvariantViolation):
    default_code = 'bid_above_ceiling'

    def __init__(self, message, max_allowed, **extra):
        self.max_allowed = max_allowed
        super().__init__(message, max_allowed=str(max_allowed), **extra)


class TransitionConflict(InvariantViolation):
    status_code = status.HTTP_409_CONFLICT
    default_code = 'transition_conflict'


class ConcurrencyConflict(AuctionError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The auction is busy, please retry.'
    default_code = 'concurrency_conflict'


class TransientInfraError(AuctionError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'Service temporarily unavailable, please retry.'
    default_code = 'transient_infra_error'


class AuctionNotFound(NotFound):
    default_detail = {'error': 'Auction not found'}


class BidNotFound(NotFound):
    default_detail = {'error': 'Bid not found'}


class ParticipantNotFound(NotFound):
    default_detail = {'error': 'Participant not found'}


class AuctionAccessDenied(PermissionDenied):
    default_detail = {'error': 'You do not have access to this auction'}

    def __init__(self, message=None):
        super().__init__(detail={'error': message} if message else None)


def auction_exception_handler(exc, context):
    """DRF exception handler that turns storage failures into a retryable 503."""
    if isinstance(exc, DatabaseError):
        logger.exception("Storage failure while handling %s", context.get('view').__class__.__name__)
        exc = TransientInfraError()
    return exception_handler(exc, context)
