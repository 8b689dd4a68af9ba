"""Per-agent rolling performance statistics."""

from agent_dispatch.performance.tracker import OutcomeRecord, PerformanceStats, PerformanceTracker

__all__ = [
    "OutcomeRecord",
    "PerformanceStats",
    "PerformanceTracker",
]
