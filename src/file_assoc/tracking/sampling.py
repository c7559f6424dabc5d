"""Pre-scan sampling that decides whether an extension is worth a full pass."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple, TypeVar

from file_assoc.errors import PerFileError
from file_assoc.parallel.types import FileTask

logger = logging.getLogger(__name__)

__all__ = [
    "SampleResult",
    "Sampler",
    "reservoir_sample",
    "calculate_rate",
    "estimate_total",
    "get_confidence",
]

T = TypeVar("T")

DEFAULT_MIN_SAMPLE_SIZE = 1


def reservoir_sample(
    items: Iterable[T],
    k: int,
    rng: Optional[random.Random] = None,
) -> Tuple[List[T], int]:
    """
    Uniformly sample up to k items from a stream of unknown length.

    Uses Algorithm R (Vitter, 1985) with O(k) memory. The whole stream is
    consumed, so the second return value is the population size.

    Returns:
        (samples, total_items_seen)
    """
    if k < 1:
        raise ValueError(f"sample size must be >= 1, got {k}")
    rng = rng or random.Random()
    reservoir: List[T] = []
    n = 0

    for item in items:
        n += 1
        if len(reservoir) < k:
            reservoir.append(item)
        else:
            # Replace with decreasing probability k/n
            j = rng.randint(0, n - 1)
            if j < k:
                reservoir[j] = item

    return reservoir, n


def calculate_rate(with_override: int, sampled: int) -> float:
    """Hit rate as a percentage (0.0 for an empty sample)."""
    if sampled <= 0:
        return 0.0
    return with_override / sampled * 100.0


def estimate_total(with_override: int, sampled: int, population: int) -> int:
    """Extrapolate the number of overridden files in the population."""
    if sampled <= 0 or with_override <= 0:
        return 0
    return population * with_override // sampled


def get_confidence(sampled: int, population: int) -> str:
    """Describe how representative a sample is by its share of the population."""
    if population <= 0:
        return "N/A"
    pct = sampled * 100 // population
    if pct >= 10:
        return "High"
    if pct >= 5:
        return "Medium"
    if pct >= 1:
        return "Low"
    return "Very Low"


@dataclass(frozen=True)
class SampleResult:
    """Verdict for one extension, derived once before its full pass."""

    extension: str
    sampled: int
    with_override: int
    population: int
    worth_processing: bool
    exhaustive: bool = False
    errors: int = 0

    @property
    def hit_rate(self) -> float:
        return calculate_rate(self.with_override, self.sampled)

    @property
    def estimated_total(self) -> int:
        if self.exhaustive:
            return self.with_override
        return estimate_total(self.with_override, self.sampled, self.population)

    @property
    def confidence(self) -> str:
        return get_confidence(self.sampled, self.population)


class Sampler:
    """
    Draw a random subsample per extension and check it for overrides.

    Decision rule: an extension is skipped only when no sampled file has
    the override and either the sample covered the whole population or it
    reached ``min_sample_size``. A zero-hit sample does not prove a
    zero-hit population; that false-negative risk is accepted.
    """

    def __init__(
        self,
        check: Callable[[str], bool],
        *,
        min_sample_size: int = DEFAULT_MIN_SAMPLE_SIZE,
        rng: Optional[random.Random] = None,
    ):
        self._check = check
        self.min_sample_size = min_sample_size
        self._rng = rng or random.Random()

    def should_skip(self, with_override: int, sampled: int, exhaustive: bool) -> bool:
        if with_override > 0:
            return False
        return exhaustive or sampled >= self.min_sample_size

    def sample(
        self,
        extension: str,
        candidates: Iterable[FileTask],
        sample_size: int,
    ) -> SampleResult:
        """Sample ``candidates`` (consumed fully) and return the verdict."""
        picked, population = reservoir_sample(candidates, sample_size, self._rng)

        if population == 0:
            return SampleResult(
                extension=extension,
                sampled=0,
                with_override=0,
                population=0,
                worth_processing=False,
                exhaustive=True,
            )

        hits = 0
        errors = 0
        for task in picked:
            try:
                if self._check(task.path):
                    hits += 1
            except PerFileError as exc:
                errors += 1
                logger.debug("Sample check failed for %s: %s", task.path, exc)

        exhaustive = population <= sample_size
        worth = not self.should_skip(hits, len(picked), exhaustive)

        logger.info(
            "Sampled .%s: %d/%d files have overrides (population %d, %s)",
            extension,
            hits,
            len(picked),
            population,
            "process" if worth else "skip",
        )
        return SampleResult(
            extension=extension,
            sampled=len(picked),
            with_override=hits,
            population=population,
            worth_processing=worth,
            exhaustive=exhaustive,
            errors=errors,
        )
