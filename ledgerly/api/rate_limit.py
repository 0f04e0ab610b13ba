"""Rate limiting for the Ledgerly API.

In-memory sliding windows per user and endpoint. Limits are per process;
several workers each keep their own counts.
"""

import os
import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

from ledgerly.api.exceptions import RateLimitError

DEFAULT_LIMIT = int(os.getenv("RATE_LIMIT_DEFAULT", "60"))
DEFAULT_WINDOW = int(os.getenv("RATE_LIMIT_WINDOW", "60"))  # seconds

# Per-endpoint rate limits
RATE_LIMITS = {
    "calculate_health": {"limit": int(os.getenv("RATE_LIMIT_CALCULATE_HEALTH", "5")), "window": 60},
    "validate_coupon": {"limit": int(os.getenv("RATE_LIMIT_VALIDATE_COUPON", "10")), "window": 60},
    "crypto_prices": {"limit": int(os.getenv("RATE_LIMIT_CRYPTO_PRICES", "30")), "window": 60},
    "pin_reset_request": {"limit": int(os.getenv("RATE_LIMIT_PIN_RESET_REQUEST", "3")), "window": 3600},
}


# Full sweep of idle keys every this many hits
CLEANUP_EVERY = 1000


class InMemoryRateLimitStorage:
    """Request timestamps per ``user:endpoint`` key.

    Sync endpoints run in a threadpool, so every access holds a lock. Keys
    with no request inside their window are dropped.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self.store: Dict[str, List[float]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._max_window = DEFAULT_WINDOW

    def _prune(self, key: str, window: int) -> List[float]:
        now = self.clock()
        timestamps = [ts for ts in self.store.get(key, ()) if now - ts < window]
        if timestamps:
            self.store[key] = timestamps
        else:
            self.store.pop(key, None)
        return timestamps

    def _sweep(self, window: int) -> None:
        for key in list(self.store.keys()):
            self._prune(key, window)

    def hit(self, key: str, limit: int, window: int) -> Tuple[bool, Optional[int]]:
        """Record a request if it fits in the window.

        Returns:
            Tuple of (is_allowed, retry_after_seconds)
        """
        with self._lock:
            self._max_window = max(self._max_window, window)
            self._hits += 1
            if self._hits % CLEANUP_EVERY == 0:
                self._sweep(self._max_window)

            timestamps = self._prune(key, window)
            now = self.clock()
            if len(timestamps) >= limit:
                retry_after = int(window - (now - timestamps[0])) + 1
                return False, retry_after
            timestamps.append(now)
            self.store[key] = timestamps
            return True, None

    def cleanup(self, window: int = DEFAULT_WINDOW) -> None:
        with self._lock:
            self._sweep(window)

    def reset(self) -> None:
        with self._lock:
            self.store.clear()
            self._hits = 0


rate_limit_storage = InMemoryRateLimitStorage()


def check_rate_limit(
    user_id: str,
    endpoint: str = "default",
    storage: Optional[InMemoryRateLimitStorage] = None,
) -> Tuple[bool, Optional[int]]:
    """Check if user has exceeded the rate limit for an endpoint.

    Args:
        user_id: User identifier
        endpoint: Endpoint identifier (e.g., "calculate_health", "validate_coupon")
        storage: Storage to count in (default: the module-level storage)

    Returns:
        Tuple of (is_allowed, retry_after_seconds)
        - is_allowed: True if within limit, False if exceeded
        - retry_after_seconds: Seconds until a slot frees up (None if allowed)
    """
    config = RATE_LIMITS.get(endpoint, {"limit": DEFAULT_LIMIT, "window": DEFAULT_WINDOW})
    storage = storage or rate_limit_storage
    return storage.hit(f"{user_id}:{endpoint}", config["limit"], config["window"])


def enforce_rate_limit(user_id: str, endpoint: str) -> None:
    """Raise RateLimitError when the caller is over the limit."""
    allowed, retry_after = check_rate_limit(user_id, endpoint)
    if not allowed:
        raise RateLimitError(
            f"Rate limit exceeded for {endpoint}. Try again in {retry_after} seconds.",
            retry_after=retry_after,
        )
