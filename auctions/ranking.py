# auctions/ranking.py
from dataclasses import dataclass
from decimal import Decimal

from .models import Bid


@dataclass
class RankedBid:
    rank: int
    bid: Bid

    @property
    def amount(self) -> Decimal:
        return self.bid.amount


def rank_bids(bids):
    """
    Rank bids lowest amount first. Equal amounts are ordered by submission time
    and still get distinct ranks, so the earliest of them ranks higher.
    """
    ordered = sorted(bids, key=lambda b: (b.amount, b.placed_at, b.id))
    return [RankedBid(rank=position, bid=bid) for position, bid in enumerate(ordered, start=1)]


def ranked_bids_for(auction):
    return rank_bids(auction.bids.active().select_related('bidder'))


def best_rank_by_bidder(ranked):
    """Map bidder id -> (rank, amount) of that bidder's best bid."""
    best = {}
    for entry in ranked:
        best.setdefault(entry.bid.bidder_id, (entry.rank, entry.amount))
    return best
