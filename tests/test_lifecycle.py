from __future__ import annotations

import datetime as dt
from decimal import Decimal
from unittest import mock

import pytest
from django.db.models.query import QuerySet

from auctions.lifecycle import advance_auction, resolve_status, run_sweep
from auctions.models import AuctionStatus, Bid, BidStatus
from auctions.services import place_bid
from notifications.models import Notification

pytestmark = pytest.mark.django_db


def test_resolve_status_follows_window(clock, make_auction):
    auction = make_auction(starts_in=60, duration=30)
    start, end = clock.window(auction)

    assert resolve_status(auction, start - dt.timedelta(seconds=1), clock) == AuctionStatus.UPCOMING
    assert resolve_status(auction, start, clock) == AuctionStatus.LIVE
    assert resolve_status(auction, end, clock) == AuctionStatus.COMPLETED


def test_resolve_status_never_moves_backward_or_touches_closed(clock, make_auction):
    live = make_auction(starts_in=60, status=AuctionStatus.LIVE)
    cancelled = make_auction(starts_in=-30, status=AuctionStatus.CANCELLED)

    assert resolve_status(live, clock.now(), clock) == AuctionStatus.LIVE
    assert resolve_status(cancelled, clock.now(), clock) == AuctionStatus.CANCELLED


def test_sweep_activates_due_auction(clock, make_auction):
    auction = make_auction(starts_in=-5, duration=60)

    result = run_sweep(clock)

    auction.refresh_from_db()
    assert auction.status == AuctionStatus.LIVE
    assert result.activated == [auction.pk]
    assert result.completed == []


def test_sweep_skips_live_when_whole_window_elapsed(clock, make_auction):
    auction = make_auction(starts_in=-120, duration=60)

    result = run_sweep(clock)

    auction.refresh_from_db()
    assert auction.status == AuctionStatus.COMPLETED
    assert result.completed == [auction.pk]
    assert auction.end_time == clock.window(auction)[1]


def test_completion_stamps_scheduled_end_not_sweep_time(clock, make_auction):
    auction = make_auction(starts_in=-10, duration=30)
    run_sweep(clock)

    clock.advance(hours=3)
    run_sweep(clock)

    auction.refresh_from_db()
    assert auction.status == AuctionStatus.COMPLETED
    assert auction.end_time == clock.window(auction)[1]
    assert auction.end_time < clock.now()


def test_sweep_is_idempotent(clock, make_auction):
    make_auction(starts_in=-5)
    make_auction(starts_in=-200)

    first = run_sweep(clock)
    second = run_sweep(clock)

    assert first.changed == 2
    assert second.changed == 0


def test_sweep_leaves_cancelled_and_future_auctions(clock, make_auction):
    cancelled = make_auction(starts_in=-200, status=AuctionStatus.CANCELLED)
    future = make_auction(starts_in=600)

    run_sweep(clock)

    cancelled.refresh_from_db()
    future.refresh_from_db()
    assert cancelled.status == AuctionStatus.CANCELLED
    assert future.status == AuctionStatus.UPCOMING


def test_going_live_elects_lowest_pre_bid(clock, upcoming_auction, bidder_a, bidder_b):
    place_bid(upcoming_auction.pk, bidder_a, '950', clock=clock)
    place_bid(upcoming_auction.pk, bidder_b, '900', clock=clock)
    assert not Bid.objects.filter(is_winning=True).exists()

    clock.advance(minutes=61)
    run_sweep(clock)

    upcoming_auction.refresh_from_db()
    winning = Bid.objects.get(is_winning=True)
    assert upcoming_auction.status == AuctionStatus.LIVE
    assert winning.bidder == bidder_b
    assert upcoming_auction.current_price == Decimal('900.00')
    assert upcoming_auction.winner == bidder_b


def test_going_live_with_equal_amounts_elects_earliest(clock, make_auction, bidder_a, bidder_b):
    auction = make_auction(decremental_value=Decimal('0'))
    place_bid(auction.pk, bidder_a, '900', clock=clock)
    clock.advance(seconds=5)
    place_bid(auction.pk, bidder_b, '900', clock=clock)

    clock.advance(minutes=60)
    run_sweep(clock)

    assert Bid.objects.get(is_winning=True).bidder == bidder_a


def test_completion_keeps_winner_and_notifies(clock, upcoming_auction, bidder_a, django_capture_on_commit_callbacks):
    place_bid(upcoming_auction.pk, bidder_a, '990', clock=clock)
    clock.advance(minutes=200)

    with django_capture_on_commit_callbacks(execute=True):
        run_sweep(clock)

    upcoming_auction.refresh_from_db()
    assert upcoming_auction.status == AuctionStatus.COMPLETED
    assert upcoming_auction.winner == bidder_a
    assert Notification.objects.filter(user=bidder_a, notification_type='won_auction').exists()
    assert Notification.objects.filter(user=upcoming_auction.created_by,
                                       notification_type='auction_completed').exists()


def test_advance_auction_reports_no_change(clock, upcoming_auction):
    assert advance_auction(upcoming_auction, clock) is None
    assert upcoming_auction.status == AuctionStatus.UPCOMING


def test_pre_bids_stay_pending_until_reviewed(clock, upcoming_auction, bidder_a):
    placement = place_bid(upcoming_auction.pk, bidder_a, '950', clock=clock)

    assert placement.bid.is_pre_bid
    assert placement.bid.status == BidStatus.PENDING
    assert placement.bid.is_winning is False


def _record_locks():
    locked = []
    original = QuerySet.select_for_update

    def record(self, *args, **kwargs):
        qs = original(self, *args, **kwargs)
        locked.append(qs)
        return qs

    return locked, mock.patch.object(QuerySet, 'select_for_update', autospec=True, side_effect=record)


def test_sweep_locks_only_due_auctions(clock, make_auction):
    due = make_auction(starts_in=-5)
    not_yet = [make_auction(starts_in=120), make_auction(starts_in=-5, duration=60, status=AuctionStatus.LIVE)]
    locked, spy = _record_locks()

    with spy:
        result = run_sweep(clock)

    assert result.activated == [due.pk]
    assert [sorted(qs.values_list('pk', flat=True)) for qs in locked] == [[due.pk]]
    assert all(a.pk not in result.activated + result.completed for a in not_yet)


def test_sweep_takes_no_lock_when_nothing_due(clock, make_auction):
    make_auction(starts_in=120)
    make_auction(starts_in=-5, status=AuctionStatus.LIVE)
    locked, spy = _record_locks()

    with spy:
        result = run_sweep(clock)

    assert result.changed == 0
    assert locked == []


def test_bid_locks_only_its_own_auction(clock, make_auction, bidder_a):
    live = make_auction(starts_in=-5, status=AuctionStatus.LIVE)
    for minutes in (60, 120, 180):
        make_auction(starts_in=minutes)
    locked, spy = _record_locks()

    with spy:
        place_bid(live.pk, bidder_a, '990', clock=clock)

    assert len(locked) == 1
