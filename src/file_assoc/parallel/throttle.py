# parallel/throttle.py
"""Submission throttling and resource ceilings for the dispatcher."""

from __future__ import annotations

import logging
import os
import threading
import time
from collections import deque
from typing import Callable, Deque, Optional

import psutil

logger = logging.getLogger(__name__)

__all__ = ["SlidingWindowRateLimiter", "MemoryGuard", "current_memory_mb"]


class SlidingWindowRateLimiter:
    """
    Keep task submissions at or below ``max_rate`` per ``window`` seconds.

    Each permit is timestamped; a new permit waits until the oldest one in
    the window ages out. The clock and sleep functions are injectable so
    tests can run without real delays.
    """

    def __init__(
        self,
        max_rate: int,
        window: float = 1.0,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_rate < 1:
            raise ValueError(f"max_rate must be >= 1, got {max_rate}")
        self.max_rate = max_rate
        self.window = window
        self._clock = clock
        self._sleep = sleep
        self._events: Deque[float] = deque()
        self._lock = threading.Lock()
        self.total_wait = 0.0

    def acquire(self, n: int = 1) -> None:
        """Block until ``n`` permits fit inside the window."""
        for _ in range(n):
            self._acquire_one()

    def _acquire_one(self) -> None:
        with self._lock:
            while True:
                now = self._clock()
                horizon = now - self.window
                while self._events and self._events[0] <= horizon:
                    self._events.popleft()
                if len(self._events) < self.max_rate:
                    self._events.append(now)
                    return
                delay = max(self._events[0] - horizon, 1e-6)
                self.total_wait += delay
                self._sleep(delay)

    def in_window(self) -> int:
        """Permits granted within the current window."""
        with self._lock:
            horizon = self._clock() - self.window
            return sum(1 for t in self._events if t > horizon)

    @classmethod
    def maybe(cls, max_rate: Optional[int], **kwargs) -> Optional["SlidingWindowRateLimiter"]:
        """Build a limiter, or None when throttling is disabled (0/None)."""
        return cls(max_rate, **kwargs) if max_rate else None


def current_memory_mb(pid: Optional[int] = None) -> float:
    """Resident set size of ``pid`` (default: this process) in MB."""
    proc = psutil.Process(pid or os.getpid())
    return proc.memory_info().rss / (1024 * 1024)


class MemoryGuard:
    """Compare the main process RSS against a ceiling in MB."""

    def __init__(
        self,
        max_memory_mb: Optional[int],
        *,
        probe: Callable[[], float] = current_memory_mb,
    ):
        self.max_memory_mb = max_memory_mb
        self._probe = probe
        self.last_mb = 0.0
        self.peak_mb = 0.0

    def exceeded(self) -> bool:
        if not self.max_memory_mb:
            return False
        self.last_mb = self._probe()
        self.peak_mb = max(self.peak_mb, self.last_mb)
        if self.last_mb > self.max_memory_mb:
            logger.error(
                "Memory limit exceeded: current=%.0fMB max=%dMB",
                self.last_mb,
                self.max_memory_mb,
            )
            return True
        return False
