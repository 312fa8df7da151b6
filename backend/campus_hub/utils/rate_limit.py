"""In-memory rate limiting for the contact form and chat messages."""

from __future__ import annotations

import threading
import time
from collections import defaultdict, deque


class SlidingWindowLimiter:
    """Allow at most `max_hits` per key inside a rolling `window_seconds`.

    State lives in process memory, so limits are per worker.
    """

    def __init__(self, max_hits: int, window_seconds: int = 60):
        if max_hits < 1 or window_seconds < 1:
            raise ValueError("max_hits and window_seconds must be positive")
        self.max_hits = max_hits
        self.window_seconds = window_seconds
        self._hits: dict[str, deque] = defaultdict(deque)
        self._lock = threading.Lock()

    def hit(self, key: str) -> int:
        """Record a hit for `key`.

        Returns 0 when the hit is allowed, otherwise the number of seconds
        until the oldest hit leaves the window (the hit is not recorded).
        """
        now = time.monotonic()
        with self._lock:
            hits = self._hits[key]
            while hits and hits[0] <= now - self.window_seconds:
                hits.popleft()
            if len(hits) >= self.max_hits:
                return max(1, int(self.window_seconds - (now - hits[0])))
            hits.append(now)
        return 0

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
