# auctions/lifecycle.py
import logging
from dataclasses import dataclass, field

from django.db import transaction

from notifications.utils import notify

from .clock import get_clock
from .models import Auction, AuctionStatus, Bid, OPEN_STATUSES

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    activated: list = field(default_factory=list)
    completed: list = field(default_factory=list)

    @property
    def changed(self):
        return len(self.activated) + len(self.completed)


def resolve_status(auction, now, clock):
    """
    Status the auction should hold at ``now``. Completion is checked first so a
    late sweep can move an upcoming auction straight to completed. Closed
    auctions are left alone and no rule moves a status backward.
    """
    if auction.status not in OPEN_STATUSES:
        return auction.status
    start, end = clock.window(auction)
    if now >= end:
        return AuctionStatus.COMPLETED
    if now >= start:
        return AuctionStatus.LIVE
    return auction.status


def elect_winner(auction):
    """
    Flag the lowest active bid (earliest on ties) as the only winning bid and
    mirror it onto the auction. Returns the elected bid, or None when the
    auction has no active bids. The caller saves the auction.
    """
    best = auction.bids.active().ranked().first()
    auction.bids.winning().exclude(pk=getattr(best, 'pk', None)).update(is_winning=False)
    if best is None:
        auction.winner = None
        return None
    if not best.is_winning:
        Bid.objects.filter(pk=best.pk).update(is_winning=True)
        best.is_winning = True
    auction.current_price = best.amount
    auction.winner_id = best.bidder_id
    return best


def advance_auction(auction, clock=None, now=None):
    """
    Apply the time rule to a row the caller already holds locked. Returns the
    new status when a transition happened, otherwise None.
    """
    clock = clock or get_clock()
    now = now or clock.now()
    target = resolve_status(auction, now, clock)
    if target == auction.status:
        return None

    previous = auction.status
    elect_winner(auction)
    auction.status = target
    update_fields = ['status', 'current_price', 'winner', 'updated_at']
    if target == AuctionStatus.COMPLETED:
        auction.end_time = clock.window(auction)[1]
        update_fields.append('end_time')
    auction.save(update_fields=update_fields)

    logger.info("Auction %s moved %s -> %s", auction.pk, previous, target)
    if target == AuctionStatus.COMPLETED:
        transaction.on_commit(lambda: notify_completion(auction))
    return target


def notify_completion(auction):
    winning = auction.bids.winning().first()
    if winning is not None:
        notify(winning.bidder_id, 'won_auction', auction,
               f"Congratulations! You won auction \"{auction.title}\" with a bid of "
               f"{winning.amount} {auction.currency}.",
               {'auction_id': auction.pk, 'amount': str(winning.amount)})
        message = f"Auction \"{auction.title}\" has ended. Winning bid: {winning.amount} {auction.currency}."
    else:
        message = f"Auction \"{auction.title}\" has ended with no bids."
    notify(auction.created_by_id, 'auction_completed', auction, message, {'auction_id': auction.pk})


def due_auction_ids(clock, now):
    """Ids of open auctions whose status lags the clock, read without locking."""
    due = []
    for auction in Auction.objects.filter(status__in=OPEN_STATUSES).order_by('pk'):
        if resolve_status(auction, now, clock) != auction.status:
            due.append(auction.pk)
    return due


def run_sweep(clock=None):
    """
    Bring every upcoming or live auction in line with the clock in one
    transaction. Only auctions with a transition due are locked, in id order,
    and each is re-checked under its lock since a bid or another sweep may
    have advanced it in between.
    """
    clock = clock or get_clock()
    now = clock.now()
    result = SweepResult()
    due = due_auction_ids(clock, now)
    if not due:
        return result
    with transaction.atomic():
        for auction in Auction.objects.filter(pk__in=due).select_for_update().order_by('pk'):
            target = advance_auction(auction, clock, now=now)
            if target == AuctionStatus.LIVE:
                result.activated.append(auction.pk)
            elif target == AuctionStatus.COMPLETED:
                result.completed.append(auction.pk)
    if result.changed:
        logger.info("Status sweep: %s activated, %s completed", len(result.activated), len(result.completed))
    return result
