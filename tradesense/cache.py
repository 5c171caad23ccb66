"""TTL caches for quote snapshots and close history."""

import logging
import time
from typing import Callable, Generic, Optional, TypeVar

from tradesense.errors import DataUnavailableError
from tradesense.models import HistoricalSeries, QuoteSnapshot
from tradesense.providers.base import BaseDataProvider
from tradesense.ratelimit import RateLimiter

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Quote TTL in seconds; history refreshes five times less often
QUOTE_TTL = 60.0
HISTORY_TTL = QUOTE_TTL * 5


class TTLCache(Generic[T]):
    """In-memory cache whose entries expire ``ttl`` seconds after being set."""

    def __init__(self, ttl: float, clock: Optional[Callable[[], float]] = None):
        """Initialize the cache.
        
        Args:
            ttl: Entry lifetime in seconds.
            clock: Monotonic time source in seconds.
        """
        self.ttl = ttl
        self._clock = clock or time.monotonic
        self._entries: dict[str, tuple[T, float]] = {}

    def get(self, key: str) -> Optional[T]:
        """Return the cached value, or None when missing or stale."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, stored_at = entry
        if self._clock() - stored_at >= self.ttl:
            return None
        return value

    def set(self, key: str, value: T) -> None:
        """Store a value, resetting its age."""
        self._entries[key] = (value, self._clock())

    def invalidate(self, key: str) -> None:
        """Drop one entry."""
        self._entries.pop(key, None)

    def clear(self) -> None:
        """Drop all entries."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class DataCache:
    """Provider-backed cache of quotes and close history.
    
    Failed fetches are never cached, so the next call retries the provider.
    Keys are the raw symbol strings.
    """

    def __init__(
        self,
        provider: BaseDataProvider,
        quote_ttl: float = QUOTE_TTL,
        history_ttl: Optional[float] = None,
        clock: Optional[Callable[[], float]] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        """Initialize the data cache.
        
        Args:
            provider: Data provider used on a miss.
            quote_ttl: Quote lifetime in seconds.
            history_ttl: History lifetime in seconds (default 5x quote_ttl).
            clock: Monotonic time source shared by both caches.
            rate_limiter: Limiter acquired before every provider call.
        """
        self.provider = provider
        self.rate_limiter = rate_limiter
        self.quotes: TTLCache[QuoteSnapshot] = TTLCache(quote_ttl, clock)
        self.history: TTLCache[HistoricalSeries] = TTLCache(
            history_ttl if history_ttl is not None else quote_ttl * 5, clock
        )

    def _throttle(self) -> None:
        if self.rate_limiter is not None:
            self.rate_limiter.acquire()

    def get_quote(self, symbol: str) -> Optional[QuoteSnapshot]:
        """Get a quote snapshot, fetching on miss.
        
        Args:
            symbol: Trading symbol.
            
        Returns:
            QuoteSnapshot, or None if the provider failed.
        """
        cached = self.quotes.get(symbol)
        if cached is not None:
            return cached
        
        self._throttle()
        try:
            quote = self.provider.get_quote(symbol)
        except DataUnavailableError as e:
            logger.warning("Failed to fetch quote for %s: %s", symbol, e)
            return None
        
        snapshot = QuoteSnapshot(
            price=quote.price or 0.0,
            previous_close=quote.previous_close or 0.0,
            volume=quote.volume or 0.0,
            avg_volume=quote.avg_volume or 0.0,
            day_high=quote.day_high,
            day_low=quote.day_low,
        )
        self.quotes.set(symbol, snapshot)
        return snapshot

    def get_history(self, symbol: str) -> Optional[HistoricalSeries]:
        """Get the close history, fetching on miss.
        
        Args:
            symbol: Trading symbol.
            
        Returns:
            HistoricalSeries (highs/lows empty), or None if the provider failed.
        """
        cached = self.history.get(symbol)
        if cached is not None:
            return cached
        
        self._throttle()
        try:
            closes = self.provider.get_history(symbol)
        except DataUnavailableError as e:
            logger.warning("Failed to fetch history for %s: %s", symbol, e)
            return None
        
        series = HistoricalSeries(closes=[float(c) for c in closes])
        if series.closes:
            self.history.set(symbol, series)
        return series

    def invalidate(self, symbol: str) -> None:
        """Drop both cached entries for a symbol."""
        self.quotes.invalidate(symbol)
        self.history.invalidate(symbol)

    def clear(self) -> None:
        """Drop all cached quotes and history."""
        self.quotes.clear()
        self.history.clear()
