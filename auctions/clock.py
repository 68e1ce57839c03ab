# auctions/clock.py
import datetime as dt
from dataclasses import dataclass
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from django.conf import settings
from django.utils import timezone

from .models import AuctionStatus

DEFAULT_TIME_ZONE = 'Asia/Kolkata'


@dataclass(frozen=True)
class Countdown:
    time_status: str
    time_value: str
    seconds_remaining: int


class AuctionClock:
    """
    Converts the civil (date, start time, duration) schedule of an auction into
    absolute instants. Auction dates and times are interpreted in one fixed
    zone, independent of the server's local zone.
    """

    def __init__(self, tz_name: Optional[str] = None, now: Optional[Callable[[], dt.datetime]] = None):
        self.tz = ZoneInfo(tz_name or getattr(settings, 'AUCTION_TIME_ZONE', DEFAULT_TIME_ZONE))
        self._now = now or timezone.now

    def now(self) -> dt.datetime:
        return self._now()

    def combine(self, date: dt.date, time: dt.time) -> dt.datetime:
        return dt.datetime.combine(date, time.replace(tzinfo=None), tzinfo=self.tz)

    def window(self, auction):
        """Return the (start, end) instants of the auction's scheduled window."""
        start = self.combine(auction.auction_date, auction.start_time)
        return start, start + dt.timedelta(minutes=auction.duration)

    def localize(self, instant: dt.datetime) -> dt.datetime:
        if timezone.is_naive(instant):
            instant = timezone.make_aware(instant, dt.timezone.utc)
        return instant.astimezone(self.tz)

    def format_time(self, value) -> str:
        """Render a time or instant as e.g. ``2:30 PM``; ``N/A`` when missing."""
        if value is None:
            return 'N/A'
        if isinstance(value, dt.datetime):
            value = self.localize(value).time()
        hour = value.hour % 12 or 12
        return f"{hour}:{value.minute:02d} {'PM' if value.hour >= 12 else 'AM'}"

    def end_time_for(self, auction) -> dt.datetime:
        """Stamped end instant when the auction is over, otherwise the scheduled one."""
        if auction.end_time is not None:
            return auction.end_time
        return self.window(auction)[1]

    def countdown(self, auction) -> Countdown:
        now = self.now()
        start, end = self.window(auction)

        if auction.status == AuctionStatus.LIVE:
            remaining = int((end - now).total_seconds())
            if remaining <= 0:
                return Countdown('Ended', '', 0)
            hours, rest = divmod(remaining, 3600)
            minutes, seconds = divmod(rest, 60)
            return Countdown('Live', f"{hours:02d}h {minutes:02d}m {seconds:02d}s", remaining)

        if auction.status == AuctionStatus.UPCOMING:
            remaining = int((start - now).total_seconds())
            if remaining <= 0:
                return Countdown('Starting soon', '', 0)
            days, rest = divmod(remaining, 86400)
            hours, rest = divmod(rest, 3600)
            return Countdown('Starts in', f"{days:02d}d {hours:02d}h {rest // 60:02d}m", remaining)

        return Countdown(auction.get_status_display(), '', 0)


def get_clock() -> AuctionClock:
    return AuctionClock()
