from __future__ import annotations

from decimal import Decimal

import pytest
from rest_framework.exceptions import ValidationError

from auctions.exceptions import AuctionAccessDenied, BidAboveCeiling, InvariantViolation
from auctions.models import AuctionParticipant, AuctionStatus, Bid, BidStatus, ParticipantStatus
from auctions.services import compute_ceiling, place_bid

pytestmark = pytest.mark.django_db


@pytest.fixture
def live_auction(clock, make_auction):
    return make_auction(starts_in=-5, duration=60, status=AuctionStatus.LIVE)


def test_first_bid_may_equal_starting_ceiling(clock, live_auction, bidder_a):
    placement = place_bid(live_auction.pk, bidder_a, '1000', clock=clock)

    assert placement.bid.amount == Decimal('1000.00')
    assert placement.auction.current_price == Decimal('1000.00')


def test_first_bid_above_starting_ceiling_rejected(clock, live_auction, bidder_a):
    with pytest.raises(BidAboveCeiling) as excinfo:
        place_bid(live_auction.pk, bidder_a, '1000.01', clock=clock)

    assert excinfo.value.max_allowed == Decimal('1000.00')
    assert 'current_lowest' not in excinfo.value.detail


def test_starting_ceiling_falls_back_to_decremental_value(clock, make_auction, bidder_a):
    auction = make_auction(starts_in=-5, status=AuctionStatus.LIVE, starting_price=None,
                           decremental_value=Decimal('500'))

    with pytest.raises(BidAboveCeiling):
        place_bid(auction.pk, bidder_a, '501', clock=clock)
    assert place_bid(auction.pk, bidder_a, '500', clock=clock).bid.amount == Decimal('500.00')


def test_next_bid_must_undercut_by_decrement(clock, live_auction, bidder_a, bidder_b):
    place_bid(live_auction.pk, bidder_a, '950', clock=clock)

    with pytest.raises(BidAboveCeiling) as excinfo:
        place_bid(live_auction.pk, bidder_b, '945', clock=clock)

    detail = excinfo.value.detail
    assert excinfo.value.max_allowed == Decimal('940.00')
    assert detail['max_allowed'] == '940.00'
    assert detail['current_lowest'] == '950.00'
    assert detail['decrement'] == '10.00'
    assert place_bid(live_auction.pk, bidder_b, '940', clock=clock).bid.amount == Decimal('940.00')


def test_price_floor_reached_clamps_max_allowed_at_zero(clock, make_auction, bidder_a, bidder_b):
    auction = make_auction(starts_in=-5, status=AuctionStatus.LIVE, decremental_value=Decimal('10'),
                           starting_price=Decimal('15'))
    place_bid(auction.pk, bidder_a, '5', clock=clock)

    with pytest.raises(BidAboveCeiling) as excinfo:
        place_bid(auction.pk, bidder_b, '1', clock=clock)

    assert excinfo.value.max_allowed == Decimal('0')
    assert 'price floor reached' in excinfo.value.message


@pytest.mark.parametrize('amount', ['0', '-5', 'abc', '', 'NaN'])
def test_non_positive_or_malformed_amount_is_a_validation_error(clock, live_auction, bidder_a, amount):
    with pytest.raises(ValidationError):
        place_bid(live_auction.pk, bidder_a, amount, clock=clock)
    assert not Bid.objects.exists()


def test_live_bid_takes_winning_flag_from_previous(clock, live_auction, bidder_a, bidder_b):
    first = place_bid(live_auction.pk, bidder_a, '950', clock=clock).bid
    second = place_bid(live_auction.pk, bidder_b, '900', clock=clock)

    first.refresh_from_db()
    assert second.bid.is_winning is True
    assert first.is_winning is False
    assert Bid.objects.filter(auction=live_auction, is_winning=True).count() == 1
    assert second.auction.winner == bidder_b
    assert second.auction.current_price == Decimal('900.00')


def test_equal_bid_with_zero_decrement_keeps_earlier_winner(clock, make_auction, bidder_a, bidder_b):
    auction = make_auction(starts_in=-5, status=AuctionStatus.LIVE, decremental_value=Decimal('0'))
    place_bid(auction.pk, bidder_a, '900', clock=clock)
    clock.advance(seconds=1)

    placement = place_bid(auction.pk, bidder_b, '900', clock=clock)

    assert placement.bid.is_winning is False
    assert Bid.objects.get(is_winning=True).bidder == bidder_a
    assert [r.bid.bidder for r in placement.bids] == [bidder_a, bidder_b]


def test_placement_returns_ranked_bid_list(clock, live_auction, bidder_a, bidder_b):
    place_bid(live_auction.pk, bidder_a, '990', clock=clock)
    place_bid(live_auction.pk, bidder_b, '950', clock=clock)
    placement = place_bid(live_auction.pk, bidder_a, '930', clock=clock)

    assert [r.rank for r in placement.bids] == [1, 2, 3]
    assert [r.amount for r in placement.bids] == [Decimal('930.00'), Decimal('950.00'), Decimal('990.00')]


@pytest.mark.parametrize('status', [AuctionStatus.COMPLETED, AuctionStatus.CANCELLED])
def test_bids_rejected_on_closed_auction(clock, make_auction, bidder_a, status):
    auction = make_auction(starts_in=-5, status=status)

    with pytest.raises(InvariantViolation):
        place_bid(auction.pk, bidder_a, '500', clock=clock)


def test_bid_after_window_closes_is_rejected_even_before_periodic_sweep(clock, live_auction, bidder_a):
    clock.advance(minutes=90)

    with pytest.raises(InvariantViolation):
        place_bid(live_auction.pk, bidder_a, '500', clock=clock)

    live_auction.refresh_from_db()
    assert live_auction.status == AuctionStatus.COMPLETED


def test_bid_at_start_instant_is_live(clock, upcoming_auction, bidder_a):
    clock.advance(minutes=60)

    placement = place_bid(upcoming_auction.pk, bidder_a, '990', clock=clock)

    assert placement.auction.status == AuctionStatus.LIVE
    assert placement.bid.is_pre_bid is False
    assert placement.bid.is_winning is True


def test_pre_bid_refused_when_not_allowed(clock, make_auction, bidder_a):
    auction = make_auction(pre_bid_allowed=False)

    with pytest.raises(InvariantViolation):
        place_bid(auction.pk, bidder_a, '900', clock=clock)


def test_pre_bid_updates_price_but_not_winner(clock, upcoming_auction, bidder_a):
    placement = place_bid(upcoming_auction.pk, bidder_a, '970', clock=clock)

    assert placement.auction.current_price == Decimal('970.00')
    assert placement.auction.winner is None
    assert placement.bid.status == BidStatus.PENDING


def test_removed_participant_cannot_bid(clock, live_auction, bidder_a):
    AuctionParticipant.objects.create(auction=live_auction, user=bidder_a, phone_number=bidder_a.phone_number,
                                      status=ParticipantStatus.REMOVED)

    with pytest.raises(AuctionAccessDenied):
        place_bid(live_auction.pk, bidder_a, '900', clock=clock)


def test_bidder_auto_registered_after_commit(clock, live_auction, bidder_a, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True):
        place_bid(live_auction.pk, bidder_a, '990', clock=clock)

    participant = AuctionParticipant.objects.get(auction=live_auction, phone_number=bidder_a.phone_number)
    assert participant.status == ParticipantStatus.APPROVED
    assert participant.user == bidder_a
    assert participant.joined_at == clock.now()


def test_compute_ceiling_ignores_excluded_bid(clock, live_auction, bidder_a, bidder_b):
    own = place_bid(live_auction.pk, bidder_a, '950', clock=clock).bid

    assert compute_ceiling(live_auction).maximum == Decimal('940.00')
    assert compute_ceiling(live_auction, exclude=own).maximum == Decimal('1000.00')
