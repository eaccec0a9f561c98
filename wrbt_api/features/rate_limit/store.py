"""Counter stores for fixed-window rate limiting.

The in-memory store is best-effort: counters are lost on restart. A
multi-process deployment needs a shared store implementing ``CounterStore``.
"""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class WindowCounter:
    """Snapshot of one (ip, bucket) window after an increment."""

    count: int
    reset_at: float  # epoch seconds


class CounterStore(Protocol):
    def increment(self, key: str, window_seconds: int) -> WindowCounter: ...

    def purge_expired(self) -> int: ...


class InMemoryCounterStore:
    """Lock-guarded dict of fixed windows.

    The critical section is a dict lookup and an integer add, so unrelated
    keys never wait on each other for more than a few microseconds and no
    increment is ever lost.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[str, tuple[int, float]] = {}

    def increment(self, key: str, window_seconds: int) -> WindowCounter:
        now = self._clock()
        with self._lock:
            count, reset_at = self._windows.get(key, (0, 0.0))
            if now >= reset_at:
                count, reset_at = 0, now + window_seconds
            count += 1
            self._windows[key] = (count, reset_at)
        return WindowCounter(count=count, reset_at=reset_at)

    def purge_expired(self) -> int:
        """Drop windows that have already reset. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [key for key, (_, reset_at) in self._windows.items() if now >= reset_at]
            for key in expired:
                del self._windows[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)
