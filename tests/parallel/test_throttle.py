# tests/parallel/test_throttle.py
from __future__ import annotations

import logging

import pytest

import file_assoc.parallel.throttle as throttle
from file_assoc.parallel.throttle import MemoryGuard, SlidingWindowRateLimiter


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def test_limiter_never_exceeds_rate_within_window():
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(5, window=1.0, clock=clock, sleep=clock.sleep)

    stamps = []
    for _ in range(23):
        limiter.acquire()
        stamps.append(clock.now)

    for t in stamps:
        in_window = [s for s in stamps if t - 1.0 < s <= t]
        assert len(in_window) <= 5
    assert clock.sleeps  # had to wait
    assert limiter.total_wait == pytest.approx(sum(clock.sleeps))


def test_limiter_does_not_wait_under_rate():
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(10, clock=clock, sleep=clock.sleep)
    limiter.acquire(10)
    assert clock.sleeps == []
    assert limiter.in_window() == 10

    clock.now = 1.5
    assert limiter.in_window() == 0


def test_maybe_disables_throttling_for_zero_or_none():
    assert SlidingWindowRateLimiter.maybe(None) is None
    assert SlidingWindowRateLimiter.maybe(0) is None
    assert SlidingWindowRateLimiter.maybe(3).max_rate == 3
    with pytest.raises(ValueError):
        SlidingWindowRateLimiter(0)


def test_memory_guard_tracks_peak_and_logs(caplog):
    readings = iter([100.0, 450.0, 600.0])
    guard = MemoryGuard(500, probe=lambda: next(readings))

    with caplog.at_level(logging.ERROR, logger="file_assoc.parallel.throttle"):
        assert guard.exceeded() is False
        assert guard.exceeded() is False
        assert guard.exceeded() is True

    assert guard.peak_mb == 600.0
    assert "Memory limit exceeded" in caplog.text


def test_memory_guard_disabled_never_probes():
    def probe():
        raise AssertionError("should not be called")

    assert MemoryGuard(None, probe=probe).exceeded() is False


def test_current_memory_mb_uses_psutil(monkeypatch):
    class Info:
        rss = 256 * 1024 * 1024

    class Proc:
        def __init__(self, pid):
            self.pid = pid

        def memory_info(self):
            return Info()

    monkeypatch.setattr(throttle.psutil, "Process", Proc)
    assert throttle.current_memory_mb(1234) == pytest.approx(256.0)
