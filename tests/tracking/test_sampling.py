# tests/tracking/test_sampling.py
from __future__ import annotations

import random
from collections import Counter

import pytest

from file_assoc.errors import FilePermissionError
from file_assoc.parallel.types import FileTask
from file_assoc.tracking.sampling import (
    Sampler,
    calculate_rate,
    estimate_total,
    get_confidence,
    reservoir_sample,
)


def _tasks(n: int, ext: str = "log"):
    return [FileTask(path=f"/r/f{i:04d}.{ext}", extension=ext) for i in range(n)]


class CountingCheck:
    def __init__(self, present=()):
        self.present = set(present)
        self.calls = []

    def __call__(self, path: str) -> bool:
        self.calls.append(path)
        return path in self.present


def test_reservoir_sample_returns_population_size():
    picked, n = reservoir_sample(iter(range(1000)), 10, random.Random(1))
    assert n == 1000
    assert len(picked) == 10
    assert len(set(picked)) == 10


def test_reservoir_sample_small_population_is_exhaustive():
    picked, n = reservoir_sample(range(4), 10)
    assert picked == [0, 1, 2, 3]
    assert n == 4
    with pytest.raises(ValueError):
        reservoir_sample(range(4), 0)


def test_reservoir_sample_is_roughly_uniform():
    rng = random.Random(42)
    counts = Counter()
    for _ in range(2000):
        picked, _ = reservoir_sample(range(20), 5, rng)
        counts.update(picked)
    # each item expected 500 times
    assert all(350 < c < 650 for c in counts.values())


def test_sampling_floor_inspects_whole_small_population():
    check = CountingCheck()
    result = Sampler(check).sample("md", _tasks(7, "md"), sample_size=10)
    assert len(check.calls) == 7
    assert result.sampled == 7
    assert result.exhaustive


def test_all_clean_population_is_never_worth_processing():
    for population in (1, 3, 49, 50, 200):
        check = CountingCheck()
        result = Sampler(check, rng=random.Random(0)).sample(
            "log", _tasks(population), sample_size=50
        )
        assert result.worth_processing is False
        assert result.sampled == min(50, population)


def test_200_clean_logs_sample_exactly_50():
    check = CountingCheck()
    result = Sampler(check, min_sample_size=50).sample("log", _tasks(200), sample_size=50)
    assert len(check.calls) == 50
    assert result.population == 200
    assert result.with_override == 0
    assert not result.worth_processing
    assert not result.exhaustive


def test_hits_make_extension_worth_processing():
    tasks = _tasks(3, "md")
    check = CountingCheck({tasks[0].path, tasks[2].path})
    result = Sampler(check).sample("md", tasks, sample_size=10)
    assert result.with_override == 2
    assert result.worth_processing
    assert result.estimated_total == 2


def test_small_sample_below_floor_is_not_skipped():
    # 40 sampled of a larger population is below the 50-file floor
    result = Sampler(CountingCheck(), min_sample_size=50).sample(
        "txt", _tasks(500, "txt"), sample_size=40
    )
    assert result.sampled == 40
    assert result.worth_processing


def test_empty_population():
    check = CountingCheck()
    result = Sampler(check).sample("csv", iter(()), sample_size=10)
    assert result.population == 0
    assert not result.worth_processing
    assert check.calls == []
    assert result.confidence == "N/A"


def test_check_errors_are_counted_not_raised():
    tasks = _tasks(4, "md")

    def check(path):
        if path == tasks[1].path:
            raise FilePermissionError(path)
        return False

    result = Sampler(check).sample("md", tasks, sample_size=10)
    assert result.errors == 1
    assert result.sampled == 4


def test_seeded_sampler_is_reproducible():
    a = CountingCheck()
    b = CountingCheck()
    Sampler(a, rng=random.Random(7)).sample("log", _tasks(300), 20)
    Sampler(b, rng=random.Random(7)).sample("log", _tasks(300), 20)
    assert a.calls == b.calls


def test_statistics_helpers():
    assert calculate_rate(5, 100) == pytest.approx(5.0)
    assert calculate_rate(0, 0) == 0.0
    assert estimate_total(5, 100, 1000) == 50
    assert estimate_total(0, 100, 1000) == 0
    assert get_confidence(100, 500) == "High"
    assert get_confidence(30, 500) == "Medium"
    assert get_confidence(10, 500) == "Low"
    assert get_confidence(10, 5000) == "Very Low"
