# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Fixed-window rate limiter keyed by client identifier.

Each client gets a counter and the time its current window began. The first
request of a window sets the counter to one; later requests in the same
window increment it until the limit is reached, after which requests are
denied until the window expires. A client may therefore pass up to twice
the limit across a window boundary.

Checking and counting happen in one step under a process-wide lock, so two
concurrent requests from the same client can never both take the last slot.

Entries whose window has expired carry no information (the next request
would reset them anyway), so :meth:`RateLimiter.prune` drops them to keep
memory bounded by the number of recently active clients.

Example:
    Using the rate limiter::

        limiter = RateLimiter(limit=10, window_seconds=60)
        decision = limiter.check(client_ip)
        if not decision.allowed:
            return 429, decision.message
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
DEFAULT_WINDOW_SECONDS = 60.0


@dataclass
class RateLimitEntry:
    """Per-client window state.

    Attributes:
        count: Requests admitted in the current window.
        window_start: Clock value at which the current window began.
    """

    count: int
    window_start: float


@dataclass
class RateLimitDecision:
    """Result of :meth:`RateLimiter.check`."""

    allowed: bool
    message: Optional[str] = None


def _describe_window(window_seconds: float) -> str:
    if window_seconds == 60:
        return "minute"
    if window_seconds == 3600:
        return "hour"
    return f"{window_seconds:g} seconds"


class RateLimiter:
    """Per-client fixed-window request counter.

    Attributes:
        limit: Maximum admitted requests per client per window.
        window_seconds: Window length in seconds.
    """

    def __init__(
        self,
        limit: int = DEFAULT_LIMIT,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize an empty limiter.

        Args:
            limit: Maximum requests per window, must be positive.
            window_seconds: Window length in seconds, must be positive.
            clock: Monotonic time source returning seconds.
        """
        if limit <= 0:
            raise ValueError("limit must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.limit = limit
        self.window_seconds = float(window_seconds)
        self._clock = clock
        self._entries: Dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    @property
    def denial_message(self) -> str:
        return (
            f"Rate limit exceeded. Maximum {self.limit} requests per "
            f"{_describe_window(self.window_seconds)}."
        )

    def check(self, client_id: str) -> RateLimitDecision:
        """Count a request from ``client_id`` and decide whether to admit it.

        Denied requests are not counted.
        """
        now = self._clock()
        with self._lock:
            entry = self._entries.get(client_id)
            if entry is None or now - entry.window_start > self.window_seconds:
                self._entries[client_id] = RateLimitEntry(count=1, window_start=now)
                return RateLimitDecision(allowed=True)
            if entry.count >= self.limit:
                logger.info("Rate limit hit for %s: %d >= %d", client_id, entry.count, self.limit)
                return RateLimitDecision(allowed=False, message=self.denial_message)
            entry.count += 1
            return RateLimitDecision(allowed=True)

    def get_entry(self, client_id: str) -> Optional[RateLimitEntry]:
        """Return a copy of the entry for ``client_id``, if tracked."""
        with self._lock:
            entry = self._entries.get(client_id)
            if entry is None:
                return None
            return RateLimitEntry(count=entry.count, window_start=entry.window_start)

    def prune(self, now: Optional[float] = None) -> int:
        """Drop entries whose window has expired.

        Args:
            now: Clock value to prune against. Defaults to the limiter clock.

        Returns:
            The number of entries removed.
        """
        if now is None:
            now = self._clock()
        with self._lock:
            expired = [
                client_id
                for client_id, entry in self._entries.items()
                if now - entry.window_start > self.window_seconds
            ]
            for client_id in expired:
                del self._entries[client_id]
        if expired:
            logger.debug("Pruned %d expired rate limit entries", len(expired))
        return len(expired)

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


async def prune_periodically(
    limiter: RateLimiter,
    interval_seconds: float,
    on_prune: Optional[Callable[[int], None]] = None,
) -> None:
    """Run :meth:`RateLimiter.prune` every ``interval_seconds`` until cancelled.

    Args:
        limiter: The limiter to prune.
        interval_seconds: Delay between passes.
        on_prune: Called after each pass with the number of tracked clients.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        limiter.prune()
        if on_prune is not None:
            on_prune(len(limiter))
