"""Adaptive quote polling.

The scheduler owns the watched symbol set, the latest-quote cache and a
single repeating timer. Its cadence follows the market: fast while the
US market is open, slow while it is closed, re-evaluated after every
refresh so the timer corrects itself across the open/close boundary.

Clock and timer are injected so tests can drive time by hand.
"""

import asyncio
import functools
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Optional, Protocol

from integrations.market_data_protocol import Quote
from utils.market_hours import Clock, polling_interval, utc_now
from utils.ticker import dedupe_symbols, normalize_symbol

logger = logging.getLogger(__name__)

QuoteFetcher = Callable[[list[str]], Awaitable[dict[str, Quote]]]
TickCallback = Callable[[], Awaitable[None]]


class TimerHandle(Protocol):
    """A live repeating timer."""

    def cancel(self) -> None:
        ...


class IntervalTimer(Protocol):
    """Schedules an async callback every ``interval`` seconds."""

    def call_every(self, interval: float, callback: TickCallback) -> TimerHandle:
        ...


class _AsyncioTimerHandle:
    """Repeating timer on the running event loop.

    The next firing is scheduled before the callback runs, so the cadence
    is wall-clock driven: a slow or hung callback never delays the next
    tick. Cancelling stops future firings but leaves callbacks that are
    already running alone.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, interval: float, callback: TickCallback):
        self._loop = loop
        self.interval = interval
        self._callback = callback
        self._cancelled = False
        self._running: set[asyncio.Task] = set()
        self._handle = loop.call_later(interval, self._fire)

    def _fire(self) -> None:
        if self._cancelled:
            return
        self._handle = self._loop.call_later(self.interval, self._fire)
        task = self._loop.create_task(self._callback())
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    def cancel(self) -> None:
        self._cancelled = True
        self._handle.cancel()


class AsyncioIntervalTimer:
    """Default IntervalTimer backed by ``loop.call_later``."""

    def call_every(self, interval: float, callback: TickCallback) -> TimerHandle:
        return _AsyncioTimerHandle(asyncio.get_running_loop(), interval, callback)


@dataclass
class SchedulerStatus:
    """Snapshot of the scheduler for status displays."""

    symbols: list[str]
    is_polling: bool
    interval_seconds: Optional[float]
    last_updated: Optional[datetime]
    loading: bool
    error: Optional[str]
    cached_symbols: list[str] = field(default_factory=list)


def format_relative_time(timestamp: datetime, now: datetime) -> str:
    """Human-readable age of a timestamp: 'just now', '12s ago', '3m ago', '2h ago'."""
    seconds = int((now - timestamp).total_seconds())
    if seconds < 5:
        return "just now"
    if seconds < 60:
        return f"{seconds}s ago"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m ago"
    return f"{minutes // 60}h ago"


class QuoteScheduler:
    """Keeps a quote cache fresh by polling at a market-aware cadence.

    At most one timer is live at any time. A failed refresh records
    ``error`` and leaves the cache as it was; the timer keeps running,
    so the next tick is the retry.
    """

    def __init__(
        self,
        fetcher: QuoteFetcher,
        clock: Clock = utc_now,
        timer: Optional[IntervalTimer] = None,
        open_interval: Optional[float] = None,
        closed_interval: Optional[float] = None,
        is_crypto: Optional[Callable[[str], bool]] = None,
    ):
        """
        Args:
            fetcher: Async batched quote fetch for upper-case symbols.
            clock: Returns the current instant (aware datetime).
            timer: Repeating timer primitive; asyncio-based by default.
            open_interval: Seconds between polls while the market is open.
            closed_interval: Seconds between polls while it is closed.
            is_crypto: Symbols for which this returns True trade 24/7.
        """
        self._fetcher = fetcher
        self._clock = clock
        self._timer = timer or AsyncioIntervalTimer()
        self._open_interval = open_interval
        self._closed_interval = closed_interval
        self._is_crypto = is_crypto

        self._quotes: dict[str, Quote] = {}
        self._symbols: list[str] = []
        self._handle: Optional[TimerHandle] = None
        self._armed_interval: Optional[float] = None
        # Bumped whenever the timer is cancelled so late ticks of an old
        # timer can tell they are stale.
        self._generation = 0
        self._in_flight = 0

        self.last_updated: Optional[datetime] = None
        self.error: Optional[str] = None

    # --- State ---

    @property
    def quotes(self) -> dict[str, Quote]:
        """Snapshot copy of the cache, keyed by upper-case symbol."""
        return dict(self._quotes)

    @property
    def symbols(self) -> list[str]:
        return list(self._symbols)

    @property
    def loading(self) -> bool:
        return self._in_flight > 0

    @property
    def is_polling(self) -> bool:
        return self._handle is not None

    @property
    def armed_interval(self) -> Optional[float]:
        """Interval the live timer was armed with, None when idle."""
        return self._armed_interval

    def current_interval(self) -> float:
        """Polling interval the market calls for right now."""
        return polling_interval(
            self._clock(),
            self._symbols,
            is_crypto=self._is_crypto,
            open_interval=self._open_interval,
            closed_interval=self._closed_interval,
        )

    def status(self) -> SchedulerStatus:
        return SchedulerStatus(
            symbols=self.symbols,
            is_polling=self.is_polling,
            interval_seconds=self._armed_interval,
            last_updated=self.last_updated,
            loading=self.loading,
            error=self.error,
            cached_symbols=sorted(self._quotes),
        )

    def get_quote(self, symbol: str) -> Optional[Quote]:
        """Case-insensitive cache lookup; None if never fetched."""
        return self._quotes.get(normalize_symbol(symbol))

    # --- Fetching ---

    async def fetch_quotes(self, symbols: list[str]) -> dict[str, Quote]:
        """Fetch quotes for ``symbols`` and merge them into the cache.

        Symbols are upper-cased and de-duplicated. Partial results are
        merged as they come. On failure the error is recorded, the cache
        is left untouched and its current contents are returned.

        Returns:
            The freshly fetched quotes, or the whole cache after a failure.
        """
        normalized = dedupe_symbols(symbols)
        if not normalized:
            return {}

        self._in_flight += 1
        try:
            fresh = await self._fetcher(normalized)
        except Exception as e:
            self.error = str(e) or e.__class__.__name__
            logger.warning("Quote refresh failed for %d symbols: %s", len(normalized), self.error)
            return self.quotes
        finally:
            self._in_flight -= 1

        fresh = {normalize_symbol(symbol): quote for symbol, quote in fresh.items()}
        self._quotes.update(fresh)
        self.last_updated = self._clock()
        self.error = None
        logger.debug("Refreshed %d/%d quotes", len(fresh), len(normalized))
        return fresh

    # --- Polling lifecycle ---

    async def start_polling(self, symbols: list[str]) -> None:
        """Watch ``symbols``: arm the polling timer, then fetch once now.

        Any existing timer is cancelled first. An empty list leaves the
        scheduler idle. The timer is live before the immediate fetch
        starts, so a hung first fetch only delays this call.
        """
        self._cancel_timer()
        watched = dedupe_symbols(symbols)
        self._symbols = watched
        if not watched:
            logger.debug("No symbols to watch; quote polling idle")
            return

        interval = self.current_interval()
        self._arm(interval)
        logger.info("Polling quotes for %d symbols every %ss", len(watched), interval)

        # Nothing runs after the fetch, so a stop_polling() or restart that
        # lands while it is in flight leaves the newer timer state alone.
        await self.fetch_quotes(watched)

    def stop_polling(self) -> None:
        """Cancel the timer and forget the watched symbols. Idempotent."""
        if self._handle is not None:
            logger.info("Stopped quote polling")
        self._cancel_timer()
        self._symbols = []

    def _arm(self, interval: float) -> None:
        self._cancel_timer()
        generation = self._generation
        self._handle = self._timer.call_every(
            interval, functools.partial(self._on_tick, generation, interval)
        )
        self._armed_interval = interval

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._armed_interval = None
        self._generation += 1

    async def _on_tick(self, generation: int, armed_interval: float) -> None:
        # Always read the live symbol set, it may have been replaced
        symbols = list(self._symbols)
        if not symbols:
            return

        await self.fetch_quotes(symbols)

        if generation != self._generation:
            return

        interval = self.current_interval()
        if interval != armed_interval:
            logger.info("Market status changed; polling every %ss (was %ss)", interval, armed_interval)
            self._arm(interval)
