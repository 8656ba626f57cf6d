"""
Per-client sliding-window rate limiting.

Hit timestamps are kept per client address. Stale entries are pruned
periodically and the number of tracked clients is bounded so memory stays
flat under address churn.
"""

import logging
import time
from collections import deque
from typing import Callable

logger = logging.getLogger(__name__)

_CLEANUP_INTERVAL = 300.0  # 5 minutes


class SlidingWindowRateLimiter:
    """
    Allow at most ``max_requests`` per client within any ``window_seconds`` span.

    Not thread-safe; intended to be called from the event loop only.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        max_tracked_clients: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.max_tracked_clients = max_tracked_clients
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._last_cleanup = clock()
        self.blocked_count = 0

    def hit(self, client: str) -> float | None:
        """
        Record a request from ``client``.

        Returns:
            None if the request is allowed, otherwise the number of seconds
            until the oldest hit in the window expires.
        """
        now = self._clock()
        self._cleanup(now)

        hits = self._hits.get(client)
        if hits is None:
            hits = self._hits[client] = deque()
        window_start = now - self.window_seconds
        while hits and hits[0] <= window_start:
            hits.popleft()

        if len(hits) >= self.max_requests:
            self.blocked_count += 1
            logger.warning(
                f"rate_limited client={client} limit={self.max_requests}"
            )
            return max(hits[0] + self.window_seconds - now, 0.0)

        hits.append(now)
        return None

    def _cleanup(self, now: float) -> None:
        """Remove stale clients and evict the quietest if over capacity."""
        if now - self._last_cleanup < _CLEANUP_INTERVAL and len(self._hits) <= self.max_tracked_clients:
            return
        self._last_cleanup = now
        window_start = now - self.window_seconds
        for client in list(self._hits):
            hits = self._hits[client]
            while hits and hits[0] <= window_start:
                hits.popleft()
            if not hits:
                del self._hits[client]

        if len(self._hits) > self.max_tracked_clients:
            excess = len(self._hits) - self.max_tracked_clients
            quietest = sorted(self._hits, key=lambda c: len(self._hits[c]))[:excess]
            for client in quietest:
                del self._hits[client]

    @property
    def tracked_clients(self) -> int:
        return len(self._hits)
