"""Run orchestration: batch scheduling, progress events and metrics."""

from .monitor import PerformanceMonitor, PerformanceReport
from .scheduler import BatchScheduler, ConversionResult, RunState

__all__ = [
    "BatchScheduler",
    "ConversionResult",
    "PerformanceMonitor",
    "PerformanceReport",
    "RunState",
]
