# auctions/services.py
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Count, Q
from rest_framework.exceptions import ValidationError

from notifications.utils import notify

from .clock import get_clock
from .concurrency import retry_on_conflict
from .exceptions import (
    AuctionAccessDenied, AuctionNotFound, BidAboveCeiling, BidNotFound, InvariantViolation, TransitionConflict,
)
from .lifecycle import advance_auction, elect_winner, notify_completion, run_sweep
from .models import (
    Auction, AuctionStatus, Bid, BidStatus, CLOSED_STATUSES, OPEN_STATUSES, ParticipantStatus,
)
from .participants import (
    notify_invited, can_manage, get_auction, invite_participants, is_removed, register_bidder,
)
from .ranking import RankedBid, ranked_bids_for

logger = logging.getLogger(__name__)

User = get_user_model()

ZERO = Decimal('0')


@dataclass(frozen=True)
class Ceiling:
    lowest: Optional[Decimal]
    raw: Decimal
    maximum: Decimal

    @property
    def floor_reached(self):
        return self.raw < ZERO


@dataclass
class BidPlacement:
    bid: Bid
    auction: Auction
    bids: List[RankedBid]


def coerce_amount(amount, field='amount'):
    try:
        value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError({field: 'A valid number is required.'})
    if not value.is_finite() or value <= ZERO:
        raise ValidationError({field: 'Must be a positive amount.'})
    return value.quantize(Decimal('0.01'))


def compute_ceiling(auction, exclude=None):
    """
    Highest amount the next bid may carry: the starting ceiling while the
    auction has no active bids, otherwise the lowest active bid minus the
    decremental step, clamped at zero.
    """
    bids = auction.bids.active()
    if exclude is not None:
        bids = bids.exclude(pk=exclude.pk)
    lowest = bids.ranked().values_list('amount', flat=True).first()
    if lowest is None:
        raw = auction.starting_ceiling
    else:
        raw = lowest - auction.decremental_value
    return Ceiling(lowest=lowest, raw=raw, maximum=max(raw, ZERO))


def _ceiling_error(auction, ceiling):
    if ceiling.lowest is None:
        message = f"First bid must be ≤ {ceiling.maximum}"
    elif ceiling.floor_reached:
        message = f"Bid must be ≤ {ceiling.maximum} (price floor reached)"
    else:
        message = f"Bid must be ≤ {ceiling.maximum}"
    extra = {'decrement': str(auction.decremental_value)}
    if ceiling.lowest is not None:
        extra['current_lowest'] = str(ceiling.lowest)
    return BidAboveCeiling(message, ceiling.maximum, **extra)


# ---------------------------------------------------------------------------
# bidding
# ---------------------------------------------------------------------------

@retry_on_conflict
def place_bid(auction_id: int, bidder: User, amount, clock=None) -> BidPlacement:
    clock = clock or get_clock()
    amount = coerce_amount(amount)
    run_sweep(clock)
    return _place_bid(auction_id, bidder, amount, clock)


@transaction.atomic
def _place_bid(auction_id, bidder, amount, clock):
    auction = get_auction(auction_id, lock=True)
    # the periodic sweep may not have reached this row yet
    advance_auction(auction, clock)

    if auction.status not in OPEN_STATUSES:
        raise InvariantViolation(f"Auction is {auction.status}; bids are no longer accepted", status=auction.status)
    live = auction.status == AuctionStatus.LIVE
    if not live and not auction.pre_bid_allowed:
        raise InvariantViolation("Pre-bidding is not allowed for this auction", status=auction.status)
    if is_removed(auction, bidder):
        raise AuctionAccessDenied("You have been removed from this auction")

    ceiling = compute_ceiling(auction)
    if amount > ceiling.maximum:
        raise _ceiling_error(auction, ceiling)

    previous = auction.bids.winning().first() if live else None
    bid = Bid.objects.create(
        auction=auction, bidder=bidder, amount=amount, placed_at=clock.now(),
        is_pre_bid=not live,
        status=BidStatus.APPROVED if live else BidStatus.PENDING,
    )
    auction.current_price = amount
    if live:
        elect_winner(auction)
        bid.refresh_from_db(fields=['is_winning'])
    auction.save(update_fields=['current_price', 'winner', 'updated_at'])
    logger.info("Bid %s of %s placed on auction %s by user %s", bid.pk, amount, auction.pk, bidder.pk)

    displaced = previous.bidder_id if previous and bid.is_winning and previous.bidder_id != bidder.pk else None
    transaction.on_commit(lambda: register_bidder(auction.pk, bidder, clock))
    transaction.on_commit(lambda: _notify_bid(auction, bid, displaced))
    return BidPlacement(bid=bid, auction=auction, bids=ranked_bids_for(auction))


def _notify_bid(auction, bid, displaced_bidder_id):
    bidder_name = getattr(bid.bidder, 'display_name', None) or bid.bidder.phone_number
    extra = {'auction_id': auction.pk, 'bid_id': bid.pk, 'amount': str(bid.amount)}
    others = list(
        auction.participants.filter(user__isnull=False)
        .exclude(user_id__in=[bid.bidder_id, auction.created_by_id])
        .values_list('user_id', flat=True)
    )
    notify([auction.created_by_id, *others], 'new_bid', auction,
           f"New bid of {bid.amount} {auction.currency} by {bidder_name} on \"{auction.title}\".", extra)
    if displaced_bidder_id:
        notify(displaced_bidder_id, 'outbid', auction,
               f"You have been outbid on \"{auction.title}\". New lowest bid: {bid.amount} {auction.currency}.",
               extra)


def _get_bid(bid_id, lock=False):
    qs = Bid.objects.select_for_update() if lock else Bid.objects.all()
    try:
        return qs.select_related('auction').get(pk=bid_id)
    except Bid.DoesNotExist:
        raise BidNotFound()


@retry_on_conflict
@transaction.atomic
def approve_pre_bid(bid_id: int, actor: User, clock=None):
    """
    Approve a pending pre-bid. The amount is checked again against the bids
    present now, since others may have arrived after it was submitted.
    """
    clock = clock or get_clock()
    bid = _get_bid(bid_id)
    auction = get_auction(bid.auction_id, lock=True)
    advance_auction(auction, clock)
    if not can_manage(auction, actor):
        raise AuctionAccessDenied("Only the auction creator can approve pre-bids")
    if auction.status != AuctionStatus.UPCOMING:
        raise TransitionConflict(f"Pre-bids can only be approved while the auction is upcoming ({auction.status})")

    bid = _get_bid(bid_id, lock=True)
    if not bid.is_pre_bid or bid.status != BidStatus.PENDING:
        raise TransitionConflict(f"Bid {bid.pk} is not a pending pre-bid", bid_status=bid.status)

    ceiling = compute_ceiling(auction, exclude=bid)
    if bid.amount > ceiling.maximum:
        raise _ceiling_error(auction, ceiling)

    bid.status = BidStatus.APPROVED
    bid.save(update_fields=['status'])
    logger.info("Pre-bid %s approved on auction %s by %s", bid.pk, auction.pk, actor.pk)
    transaction.on_commit(lambda: notify(
        bid.bidder_id, 'prebid_approved', auction,
        f"Your pre-bid of {bid.amount} {auction.currency} on \"{auction.title}\" was approved.",
        {'auction_id': auction.pk, 'bid_id': bid.pk},
    ))
    return bid


@retry_on_conflict
@transaction.atomic
def reject_pre_bid(bid_id: int, actor: User, clock=None):
    """
    Delete a pre-bid. If it held the winning flag the next lowest bid takes
    over; the auction price is always re-derived from what remains.
    """
    clock = clock or get_clock()
    bid = _get_bid(bid_id)
    auction = get_auction(bid.auction_id, lock=True)
    advance_auction(auction, clock)
    if not can_manage(auction, actor):
        raise AuctionAccessDenied("Only the auction creator can reject pre-bids")
    if auction.status not in OPEN_STATUSES:
        raise TransitionConflict(f"Pre-bids cannot be rejected on a {auction.status} auction")

    bid = _get_bid(bid_id, lock=True)
    if not bid.is_pre_bid:
        raise TransitionConflict(f"Bid {bid.pk} is not a pre-bid")

    was_winning = bid.is_winning
    bidder_id, amount = bid.bidder_id, bid.amount
    bid.delete()

    remaining = auction.bids.active().ranked()
    if was_winning:
        elect_winner(auction)
    lowest = remaining.first()
    auction.current_price = lowest.amount if lowest else auction.starting_ceiling
    auction.save(update_fields=['current_price', 'winner', 'updated_at'])
    logger.info("Pre-bid %s rejected on auction %s by %s", bid_id, auction.pk, actor.pk)

    transaction.on_commit(lambda: notify(
        bidder_id, 'prebid_rejected', auction,
        f"Your pre-bid of {amount} {auction.currency} on \"{auction.title}\" was rejected.",
        {'auction_id': auction.pk, 'bid_id': bid_id},
    ))
    return auction


def list_pre_bids(auction_id, actor):
    auction = get_auction(auction_id)
    if not can_manage(auction, actor):
        raise AuctionAccessDenied("Only the auction creator can view pre-bids")
    bids = (auction.bids.filter(is_pre_bid=True, is_winning=False)
            .select_related('bidder').order_by('amount', 'placed_at', 'id'))
    return auction, bids


# ---------------------------------------------------------------------------
# auction store
# ---------------------------------------------------------------------------

@transaction.atomic
def create_auction(owner: User, *, title, auction_date, start_time, duration, decremental_value,
                   description='', currency=None, starting_price=None, open_to_all=False,
                   pre_bid_allowed=True, participants=(), clock=None):
    clock = clock or get_clock()
    if not title or not str(title).strip():
        raise ValidationError({'title': 'This field is required.'})
    if not duration or int(duration) <= 0:
        raise ValidationError({'duration': 'Duration must be a positive number of minutes.'})
    decremental_value = Decimal(decremental_value)
    if decremental_value < ZERO:
        raise ValidationError({'decremental_value': 'Must not be negative.'})

    auction = Auction(
        title=str(title).strip(), description=description or '',
        auction_date=auction_date, start_time=start_time, duration=int(duration),
        currency=currency or settings.AUCTION_DEFAULT_CURRENCY, decremental_value=decremental_value,
        starting_price=starting_price, open_to_all=bool(open_to_all),
        pre_bid_allowed=bool(pre_bid_allowed), created_by=owner,
        status=AuctionStatus.UPCOMING,
    )
    auction.current_price = auction.starting_ceiling
    auction.save()
    # a start in the past still lands in the right status
    auction = get_auction(auction.pk, lock=True)
    advance_auction(auction, clock)

    created = invite_participants(auction, participants)
    notify_invited(auction, created)
    logger.info("Auction %s created by %s with %s participants", auction.pk, owner.pk, len(created))
    return auction


def user_can_view(auction, user):
    if auction.open_to_all or can_manage(auction, user):
        return True
    if auction.participants.filter(Q(phone_number=user.phone_number) | Q(user=user)).exists():
        return True
    return auction.bids.filter(bidder=user).exists()


def get_auction_details(auction_id, requester, clock=None):
    clock = clock or get_clock()
    run_sweep(clock)
    auction = get_auction(auction_id)
    if not user_can_view(auction, requester):
        raise AuctionAccessDenied("You do not have access to this auction")
    return auction


def list_live_auctions(clock=None):
    run_sweep(clock or get_clock())
    return (Auction.objects.filter(status=AuctionStatus.LIVE)
            .select_related('created_by').order_by('auction_date', 'start_time'))


USER_AUCTION_KINDS = ('created', 'participated')


def list_user_auctions(user, status=None, kind=None, search=None):
    """
    Auctions the user created, was invited to or bid on. ``kind`` narrows to
    the ones they created or bid on; ``search`` matches title or description.
    """
    if kind == 'created':
        scope = Q(created_by=user)
    elif kind == 'participated':
        scope = Q(bids__bidder=user)
    elif kind in (None, '', 'all'):
        scope = (Q(created_by=user)
                 | Q(participants__phone_number=user.phone_number)
                 | Q(participants__user=user)
                 | Q(bids__bidder=user))
    else:
        raise ValidationError({'type': f"Must be one of: {', '.join(USER_AUCTION_KINDS)}"})

    qs = Auction.objects.filter(scope).distinct()
    if status and status != 'all':
        if status not in AuctionStatus.values:
            raise ValidationError({'status': f"Must be one of: {', '.join(AuctionStatus.values)}"})
        qs = qs.filter(status=status)
    if search:
        qs = qs.filter(Q(title__icontains=search) | Q(description__icontains=search))
    return qs.select_related('created_by').order_by('-auction_date', '-start_time')


def list_auction_bids(auction_id, requester, clock=None):
    """Ranked active bids of an auction the requester may view."""
    run_sweep(clock or get_clock())
    auction = get_auction(auction_id)
    if not user_can_view(auction, requester):
        raise AuctionAccessDenied("You do not have access to this auction")
    return auction, ranked_bids_for(auction)


def get_my_pre_bid(auction_id, user):
    """Latest pre-bid the user placed on the auction, or None."""
    auction = get_auction(auction_id)
    return (auction.bids.filter(bidder=user, is_pre_bid=True)
            .select_related('bidder').order_by('-placed_at', '-id').first())


def _with_participant_counts(qs):
    def counted(status):
        return Count('participants', filter=Q(participants__status=status), distinct=True)

    return qs.annotate(
        total_participants=Count('participants', distinct=True),
        joined_participants=counted(ParticipantStatus.JOINED),
        invited_participants=counted(ParticipantStatus.INVITED),
        declined_participants=counted(ParticipantStatus.DECLINED),
    )


def admin_list_auctions(actor, status=None, search=None):
    if not getattr(actor, 'is_admin', False):
        raise AuctionAccessDenied("Admin access required")
    qs = Auction.objects.all()
    if status and status != 'all':
        if status not in AuctionStatus.values:
            raise ValidationError({'status': f"Must be one of: {', '.join(AuctionStatus.values)}"})
        qs = qs.filter(status=status)
    if search:
        qs = qs.filter(Q(title__icontains=search) | Q(description__icontains=search))
    return _with_participant_counts(qs).select_related('created_by').order_by('-created_at', '-id')


def admin_get_auction(auction_id, actor):
    if not getattr(actor, 'is_admin', False):
        raise AuctionAccessDenied("Admin access required")
    try:
        return _with_participant_counts(Auction.objects.select_related('created_by')).get(pk=auction_id)
    except Auction.DoesNotExist:
        raise AuctionNotFound()


def auction_timers(user, clock=None):
    clock = clock or get_clock()
    run_sweep(clock)
    timers = []
    for auction in list_user_auctions(user).filter(status__in=OPEN_STATUSES):
        countdown = clock.countdown(auction)
        timers.append({
            'id': auction.pk,
            'auction_no': auction.auction_no,
            'title': auction.title,
            'status': auction.status,
            'time_status': countdown.time_status,
            'time_value': countdown.time_value,
            'seconds_remaining': countdown.seconds_remaining,
        })
    return timers


@retry_on_conflict
@transaction.atomic
def close_auction(auction_id, actor, clock=None):
    clock = clock or get_clock()
    auction = get_auction(auction_id, lock=True)
    if not can_manage(auction, actor):
        raise AuctionAccessDenied("Only the auction creator can close this auction")
    advance_auction(auction, clock)
    if auction.status in CLOSED_STATUSES:
        raise TransitionConflict(f"Auction is already {auction.status}", status=auction.status)

    winning = elect_winner(auction)
    auction.status = AuctionStatus.COMPLETED
    auction.end_time = clock.now()
    auction.save(update_fields=['status', 'end_time', 'current_price', 'winner', 'updated_at'])
    logger.info("Auction %s closed manually by %s, winner %s", auction.pk, actor.pk, auction.winner_id)

    transaction.on_commit(lambda: notify_completion(auction))
    return auction, winning


@retry_on_conflict
@transaction.atomic
def extend_auction(auction_id, additional_minutes, actor, clock=None):
    clock = clock or get_clock()
    try:
        minutes = int(additional_minutes)
    except (TypeError, ValueError):
        raise ValidationError({'additional_minutes': 'A whole number of minutes is required.'})
    if minutes <= 0:
        raise ValidationError({'additional_minutes': 'Must be greater than zero.'})

    auction = get_auction(auction_id, lock=True)
    if not can_manage(auction, actor):
        raise AuctionAccessDenied("Only the auction creator can extend this auction")
    advance_auction(auction, clock)
    if auction.status != AuctionStatus.LIVE:
        raise TransitionConflict(f"Only live auctions can be extended (auction is {auction.status})",
                                 status=auction.status)

    auction.duration += minutes
    auction.save(update_fields=['duration', 'updated_at'])
    new_end = clock.window(auction)[1]
    logger.info("Auction %s extended by %s minutes", auction.pk, minutes)

    recipients = list(auction.participants.filter(user__isnull=False).values_list('user_id', flat=True))
    transaction.on_commit(lambda: notify(
        recipients, 'auction_extended', auction,
        f"Auction \"{auction.title}\" was extended by {minutes} minutes. "
        f"New end time: {clock.format_time(new_end)}.",
        {'auction_id': auction.pk, 'additional_minutes': minutes},
    ))
    return auction


@retry_on_conflict
@transaction.atomic
def cancel_auction(auction_id, actor, reason='', clock=None):
    if not getattr(actor, 'is_admin', False):
        raise AuctionAccessDenied("Admin access required")
    auction = get_auction(auction_id, lock=True)
    advance_auction(auction, clock)
    if auction.status in CLOSED_STATUSES:
        raise TransitionConflict(f"Auction is already {auction.status}", status=auction.status)

    auction.bids.winning().update(is_winning=False)
    auction.status = AuctionStatus.CANCELLED
    auction.winner = None
    auction.save(update_fields=['status', 'winner', 'updated_at'])
    logger.info("Auction %s cancelled by admin %s", auction.pk, actor.pk)

    recipients = [auction.created_by_id, *auction.participants.filter(user__isnull=False)
                  .values_list('user_id', flat=True)]
    message = f"Auction \"{auction.title}\" was cancelled."
    if reason:
        message = f"{message} Reason: {reason}"
    transaction.on_commit(lambda: notify(recipients, 'auction_cancelled', auction, message,
                                         {'auction_id': auction.pk}))
    return auction


@retry_on_conflict
@transaction.atomic
def update_decremental_value(auction_id, value, actor, clock=None):
    if value is None or value == '':
        raise ValidationError({'decremental_value': 'This field is required.'})
    try:
        value = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError({'decremental_value': 'A valid number is required.'})
    if not value.is_finite() or value < ZERO:
        raise ValidationError({'decremental_value': 'Must not be negative.'})

    auction = get_auction(auction_id, lock=True)
    if not can_manage(auction, actor):
        raise AuctionAccessDenied("Only the auction creator can change the decremental value")
    advance_auction(auction, clock)
    if auction.status != AuctionStatus.UPCOMING:
        raise TransitionConflict("Decremental value can only change before the auction starts",
                                 status=auction.status)
    if auction.bids.exists():
        raise InvariantViolation("Decremental value cannot change once bids exist")

    auction.decremental_value = value
    auction.current_price = auction.starting_ceiling
    auction.save(update_fields=['decremental_value', 'current_price', 'updated_at'])
    return auction


@transaction.atomic
def delete_auction(auction_id, actor):
    if not getattr(actor, 'is_admin', False):
        raise AuctionAccessDenied("Admin access required")
    auction = get_auction(auction_id, lock=True)
    summary = {
        'id': auction.pk,
        'title': auction.title,
        'bids': auction.bids.count(),
        'participants': auction.participants.count(),
        'documents': auction.documents.count(),
    }
    auction.delete()
    logger.warning("Auction %s deleted by admin %s", summary['id'], actor.pk)
    return summary