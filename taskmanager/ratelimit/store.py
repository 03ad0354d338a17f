"""Fixed-window rate limit counters."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from datetime import timedelta
from typing import Protocol

from taskmanager.core.clock import Clock
from taskmanager.core.clock import utc_now


class RateLimitStoreUnavailableError(RuntimeError):
    """Raised by a rate limit store whose backing state cannot be reached."""


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    allowed: bool
    remaining: int


@dataclass(slots=True)
class RateLimitEntry:
    """Counter state for one key. Mutated only while ``lock`` is held."""

    window_start: datetime
    permit_count: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)


class RateLimitStore(Protocol):
    """Atomic consume capability used by the admission gate."""

    def try_consume(self, key: str, limit: int, window: timedelta) -> RateLimitDecision:
        """Account one request for ``key``; raises RateLimitStoreUnavailableError on outage."""


class InMemoryRateLimitStore:
    """Process-local table of per-key fixed-window counters.

    Each key has its own lock so unrelated callers never serialize on each
    other; the table lock only guards first-touch insertion. Windows are
    anchored at the first request seen after the previous window elapsed,
    so up to ``2 * limit`` requests can pass around a window boundary.
    Entries are never evicted.
    """

    def __init__(self, *, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._entries: dict[str, RateLimitEntry] = {}
        self._entries_guard = threading.Lock()

    def try_consume(self, key: str, limit: int, window: timedelta) -> RateLimitDecision:
        now = self._clock()
        entry = self._get_or_create(key, now)

        with entry.lock:
            if now - entry.window_start > window:
                entry.permit_count = 0
                entry.window_start = now

            if entry.permit_count >= limit:
                return RateLimitDecision(allowed=False, remaining=0)

            entry.permit_count += 1
            return RateLimitDecision(allowed=True, remaining=limit - entry.permit_count)

    def _get_or_create(self, key: str, now: datetime) -> RateLimitEntry:
        entry = self._entries.get(key)
        if entry is not None:
            return entry
        with self._entries_guard:
            return self._entries.setdefault(key, RateLimitEntry(window_start=now))

    def __len__(self) -> int:
        return len(self._entries)
