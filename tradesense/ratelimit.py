"""Token-bucket rate limiter for provider calls."""

import threading
import time
from typing import Callable, Optional

# Absorbs float drift in the refill arithmetic
TOKEN_EPSILON = 1e-9


class RateLimiter:
    """Token bucket limiting how often a provider is called.
    
    Tokens refill continuously at ``rate`` per second up to ``capacity``.
    ``acquire`` blocks (via the injected ``sleep``) until a token is free.
    The default ``rate=10, capacity=1`` spaces calls 100ms apart.
    """

    def __init__(
        self,
        rate: float = 10.0,
        capacity: float = 1.0,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        """Initialize the limiter.
        
        Args:
            rate: Tokens added per second.
            capacity: Maximum tokens held (burst size).
            clock: Monotonic time source in seconds.
            sleep: Function used to wait.
        """
        if rate <= 0:
            raise ValueError("rate must be positive")
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        
        self.rate = rate
        self.capacity = capacity
        self._clock = clock or time.monotonic
        self._sleep = sleep or time.sleep
        self._tokens = capacity
        self._updated = self._clock()
        self._lock = threading.Lock()

    @classmethod
    def from_interval(cls, interval: float, **kwargs) -> "RateLimiter":
        """Build a limiter allowing one call every ``interval`` seconds."""
        if interval <= 0:
            raise ValueError("interval must be positive")
        return cls(rate=1.0 / interval, capacity=1.0, **kwargs)

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
        self._updated = now

    def try_acquire(self) -> bool:
        """Take a token if one is available without waiting."""
        with self._lock:
            self._refill()
            if self._tokens >= 1 - TOKEN_EPSILON:
                self._tokens = max(0.0, self._tokens - 1)
                return True
            return False

    def acquire(self) -> float:
        """Take a token, waiting for one if necessary.
        
        Returns:
            Seconds spent waiting.
        """
        waited = 0.0
        while True:
            with self._lock:
                self._refill()
                if self._tokens >= 1 - TOKEN_EPSILON:
                    self._tokens = max(0.0, self._tokens - 1)
                    return waited
                delay = (1 - self._tokens) / self.rate
            self._sleep(delay)
            waited += delay
