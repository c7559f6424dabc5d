"""
Reset per-file LaunchServices overrides so files fall back to system defaults.

Main entry point:
    reset_file_associations() - Full run orchestration

Key components:
    - io.xattrs: Attribute check/clear against the extended-attribute store
    - io.walk: Lazy file discovery by extension
    - tracking.sampling: Reservoir sampling and the skip decision
    - parallel.dispatcher: Chunked parallel/sequential dispatch
    - tracking.metrics: Per-extension throughput metrics and run report
"""

__version__ = "2.0.0"

from file_assoc.config import ResetConfig, WorkerConfig
from file_assoc.pipeline.orchestrate import reset_file_associations

__all__ = ["ResetConfig", "WorkerConfig", "reset_file_associations", "__version__"]
