"""Sampling and metrics tracking for extension batches."""

from .sampling import SampleResult, Sampler, reservoir_sample
from .metrics import ExtensionMetrics, ExtensionStatus, MetricsAggregator, RunReport

__all__ = [
    "SampleResult",
    "Sampler",
    "reservoir_sample",
    "ExtensionMetrics",
    "ExtensionStatus",
    "MetricsAggregator",
    "RunReport",
]
