"""Minimum-interval pacing for outbound connpass API calls."""
import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_MIN_INTERVAL = 5.0  # seconds


class RateLimiter:
    """Blocks callers so consecutive calls start at least min_interval apart."""

    def __init__(
        self,
        min_interval: float = DEFAULT_MIN_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize the rate limiter.

        Args:
            min_interval: Minimum seconds between the start of two calls
            clock: Monotonic clock returning seconds
            sleep: Function used to block for a number of seconds
        """
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last_call: Optional[float] = None

    def wait(self) -> None:
        """Block until the next call is allowed, then record it."""
        if self._last_call is not None:
            elapsed = self._clock() - self._last_call
            if elapsed < self.min_interval:
                wait_time = self.min_interval - elapsed
                logger.debug(f"Rate limiting: waiting {wait_time:.2f}s")
                self._sleep(wait_time)

        self._last_call = self._clock()


_shared_limiter: Optional[RateLimiter] = None


def shared_rate_limiter() -> RateLimiter:
    """Process-wide limiter used by clients built without an explicit one."""
    global _shared_limiter
    if _shared_limiter is None:
        _shared_limiter = RateLimiter()
    return _shared_limiter
