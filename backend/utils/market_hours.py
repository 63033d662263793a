"""US equity market hours and quote polling cadence.

Mirrors the regular NYSE session only; exchange holidays and half days
are treated as ordinary weekdays.
"""

from datetime import datetime, time, timezone
from typing import Callable, Iterable, Optional
from zoneinfo import ZoneInfo

from config import settings

MARKET_OPEN = time(9, 30)
MARKET_CLOSE = time(16, 0)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock: the current instant as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_market_time(instant: datetime, tz_name: Optional[str] = None) -> datetime:
    """Convert an instant to the trading timezone.

    Naive datetimes are taken to be UTC.
    """
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(ZoneInfo(tz_name or settings.MARKET_TIMEZONE))


def is_market_open(instant: datetime, tz_name: Optional[str] = None) -> bool:
    """Return True during the regular session: Mon-Fri, 09:30 <= t < 16:00."""
    local = to_market_time(instant, tz_name)
    if local.weekday() >= 5:
        return False
    return MARKET_OPEN <= local.time() < MARKET_CLOSE


def polling_interval(
    instant: datetime,
    symbols: Iterable[str] = (),
    is_crypto: Optional[Callable[[str], bool]] = None,
    open_interval: Optional[float] = None,
    closed_interval: Optional[float] = None,
) -> float:
    """Seconds between quote refreshes at the given instant.

    An all-crypto watch list always gets the open-market cadence since
    crypto trades around the clock. Any equity in the list ties the
    cadence to market hours.
    """
    fast = open_interval if open_interval is not None else settings.QUOTE_POLL_OPEN_SECONDS
    slow = closed_interval if closed_interval is not None else settings.QUOTE_POLL_CLOSED_SECONDS

    symbols = list(symbols)
    if symbols and is_crypto is not None and all(is_crypto(s) for s in symbols):
        return fast
    return fast if is_market_open(instant) else slow
