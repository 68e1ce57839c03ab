from __future__ import annotations

import datetime as dt
from zoneinfo import ZoneInfo

from auctions.clock import AuctionClock
from auctions.models import Auction, AuctionStatus

UTC = dt.timezone.utc


def _auction(**fields) -> Auction:
    defaults = {
        'auction_date': dt.date(2025, 1, 15),
        'start_time': dt.time(14, 30),
        'duration': 90,
        'status': AuctionStatus.UPCOMING,
    }
    defaults.update(fields)
    return Auction(**defaults)


def test_combine_uses_auction_zone_not_server_zone():
    clock = AuctionClock('Asia/Kolkata')

    instant = clock.combine(dt.date(2025, 1, 15), dt.time(14, 30))

    assert instant.astimezone(UTC) == dt.datetime(2025, 1, 15, 9, 0, tzinfo=UTC)


def test_window_adds_duration_minutes():
    clock = AuctionClock('Asia/Kolkata')

    start, end = clock.window(_auction())

    assert end - start == dt.timedelta(minutes=90)
    assert end.astimezone(UTC) == dt.datetime(2025, 1, 15, 10, 30, tzinfo=UTC)


def test_window_crossing_midnight_rolls_the_date():
    clock = AuctionClock('Asia/Kolkata')

    _, end = clock.window(_auction(start_time=dt.time(23, 30), duration=60))

    assert clock.localize(end).date() == dt.date(2025, 1, 16)
    assert clock.localize(end).time() == dt.time(0, 30)


def test_localize_treats_naive_values_as_utc():
    clock = AuctionClock('Asia/Kolkata')

    local = clock.localize(dt.datetime(2025, 1, 15, 9, 0))

    assert local.hour == 14 and local.minute == 30
    assert local.tzinfo == ZoneInfo('Asia/Kolkata')


def test_format_time_twelve_hour_clock():
    clock = AuctionClock('Asia/Kolkata')

    assert clock.format_time(dt.time(14, 30)) == '2:30 PM'
    assert clock.format_time(dt.time(0, 5)) == '12:05 AM'
    assert clock.format_time(dt.time(12, 0)) == '12:00 PM'
    assert clock.format_time(None) == 'N/A'


def test_format_time_converts_instants_into_auction_zone():
    clock = AuctionClock('Asia/Kolkata')

    assert clock.format_time(dt.datetime(2025, 1, 15, 9, 0, tzinfo=UTC)) == '2:30 PM'


def test_countdown_upcoming_reports_days_hours_minutes():
    start = dt.datetime(2025, 1, 15, 14, 30, tzinfo=ZoneInfo('Asia/Kolkata'))
    now = start - dt.timedelta(days=1, hours=2, minutes=3, seconds=20)
    clock = AuctionClock('Asia/Kolkata', now=lambda: now)

    countdown = clock.countdown(_auction())

    assert countdown.time_status == 'Starts in'
    assert countdown.time_value == '01d 02h 03m'
    assert countdown.seconds_remaining == 93780 + 20


def test_countdown_live_reports_padded_remaining_time():
    end = dt.datetime(2025, 1, 15, 16, 0, tzinfo=ZoneInfo('Asia/Kolkata'))
    now = end - dt.timedelta(hours=1, minutes=2, seconds=3)
    clock = AuctionClock('Asia/Kolkata', now=lambda: now)

    countdown = clock.countdown(_auction(status=AuctionStatus.LIVE))

    assert countdown.time_status == 'Live'
    assert countdown.time_value == '01h 02m 03s'
    assert countdown.seconds_remaining == 3723


def test_countdown_past_window_edges():
    late = dt.datetime(2025, 1, 16, 0, 0, tzinfo=ZoneInfo('Asia/Kolkata'))
    clock = AuctionClock('Asia/Kolkata', now=lambda: late)

    assert clock.countdown(_auction(status=AuctionStatus.LIVE)).time_status == 'Ended'
    assert clock.countdown(_auction()).time_status == 'Starting soon'
    assert clock.countdown(_auction(status=AuctionStatus.COMPLETED)).time_status == 'Completed'


def test_end_time_for_prefers_stamped_end():
    clock = AuctionClock('Asia/Kolkata')
    stamped = dt.datetime(2025, 1, 15, 9, 45, tzinfo=UTC)

    assert clock.end_time_for(_auction(end_time=stamped)) == stamped
    assert clock.end_time_for(_auction()) == clock.window(_auction())[1]
