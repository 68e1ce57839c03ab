"""
Pytest configuration for the auction service.

Provides fixtures for:
- Users in each role (creator, bidders, admin)
- A controllable clock that also drives ``django.utils.timezone.now``
- An auction factory scheduled relative to that clock
- Authenticated API clients
"""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest
from rest_framework.test import APIClient

from accounts.models import Role, User
from auctions.clock import AuctionClock
from auctions.models import Auction, AuctionStatus

AUCTION_TZ = 'Asia/Kolkata'


class FrozenClock(AuctionClock):
    """AuctionClock whose notion of "now" only moves when told to."""

    def __init__(self, instant: dt.datetime, tz_name: str = AUCTION_TZ) -> None:
        self.current = instant
        super().__init__(tz_name, now=lambda: self.current)

    def advance(self, **delta) -> dt.datetime:
        self.current = self.current + dt.timedelta(**delta)
        return self.current

    def local_slot(self, **delta):
        """(date, time) in the auction zone, offset from now."""
        local = self.localize(self.current + dt.timedelta(**delta))
        return local.date(), local.time().replace(microsecond=0)


@pytest.fixture
def clock(monkeypatch) -> FrozenClock:
    """
    Frozen at 10:00 in the auction zone. Services that build their own clock
    read ``timezone.now``, so it is pinned to the same instant.
    """
    frozen = FrozenClock(dt.datetime(2025, 1, 15, 10, 0, tzinfo=ZoneInfo(AUCTION_TZ)))
    monkeypatch.setattr('django.utils.timezone.now', frozen.now)
    return frozen


def _user(phone, **extra):
    return User.objects.create_user(phone_number=phone, password='secret-pass', **extra)


@pytest.fixture
def creator(db) -> User:
    return _user('9000000001', person_name='Asha Buyer', company_name='Buyer Co')


@pytest.fixture
def bidder_a(db) -> User:
    return _user('9000000002', person_name='Vikram', company_name='Supplier A')


@pytest.fixture
def bidder_b(db) -> User:
    return _user('9000000003', person_name='Meera', company_name='Supplier B')


@pytest.fixture
def outsider(db) -> User:
    return _user('9000000004', person_name='Stranger')


@pytest.fixture
def admin_user(db) -> User:
    return _user('9000000009', person_name='Ops', role=Role.ADMIN)


@pytest.fixture
def make_auction(db, clock, creator):
    """
    Factory for auctions created straight through the ORM.

    ``starts_in`` / ``duration`` are minutes relative to the frozen clock.
    """

    def factory(starts_in=60, duration=60, **overrides) -> Auction:
        auction_date, start_time = clock.local_slot(minutes=starts_in)
        fields = {
            'title': 'Steel pipes supply',
            'auction_date': auction_date,
            'start_time': start_time,
            'duration': duration,
            'decremental_value': Decimal('10.00'),
            'starting_price': Decimal('1000.00'),
            'status': AuctionStatus.UPCOMING,
            'created_by': creator,
        }
        fields.update(overrides)
        auction = Auction(**fields)
        auction.current_price = auction.starting_ceiling
        auction.save()
        return auction

    return factory


@pytest.fixture
def upcoming_auction(make_auction) -> Auction:
    return make_auction()


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


@pytest.fixture
def client_for(api_client):
    def login(user) -> APIClient:
        api_client.force_authenticate(user=user)
        return api_client

    return login
