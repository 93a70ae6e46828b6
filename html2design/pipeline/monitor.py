"""Run metrics: element/node/image counters and batch timings."""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

MAX_BATCH_SAMPLES = 100


@dataclass
class PerformanceReport:
    duration_ms: float
    elements_per_second: float
    success_rate: float  # percent
    total_elements: int
    processed_elements: int
    created_nodes: int
    failed_elements: int
    images_processed: int
    batches_processed: int
    average_batch_ms: float
    asset_stats: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)

    def summary(self) -> str:
        return (
            f"{self.processed_elements}/{self.total_elements} elements, "
            f"{self.created_nodes} nodes, {self.failed_elements} failed, "
            f"{self.images_processed} images in {self.duration_ms / 1000:.2f}s "
            f"({self.elements_per_second:.1f} el/s, {self.success_rate:.1f}% success)"
        )


class PerformanceMonitor:
    """Aggregates counts and timings emitted during a run."""

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._start: Optional[float] = None
        self._end: Optional[float] = None
        self.total_elements = 0
        self.processed_elements = 0
        self.created_nodes = 0
        self.failed_elements = 0
        self.images_processed = 0
        self.batches_processed = 0
        self.batch_durations: List[float] = []

    def start(self, total_elements: int) -> None:
        self._start = self._clock()
        self._end = None
        self.total_elements = total_elements
        self.processed_elements = 0
        self.created_nodes = 0
        self.failed_elements = 0
        self.images_processed = 0
        self.batches_processed = 0
        self.batch_durations = []
        logger.info("Performance monitoring started for %d elements", total_elements)

    def stop(self) -> None:
        if self._start is not None and self._end is None:
            self._end = self._clock()

    @property
    def elapsed(self) -> float:
        """Seconds since start (frozen once stopped)."""
        if self._start is None:
            return 0.0
        end = self._end if self._end is not None else self._clock()
        return end - self._start

    def record_processed(self, count: int = 1) -> None:
        self.processed_elements += count

    def record_failure(self, count: int = 1) -> None:
        self.failed_elements += count

    def record_nodes(self, count: int) -> None:
        self.created_nodes += count

    def batch_completed(self, duration: float) -> None:
        self.batches_processed += 1
        self.batch_durations.append(duration)

    def image_processed(self, count: int = 1) -> None:
        self.images_processed += count

    @property
    def average_batch_time(self) -> float:
        """Running average seconds per batch since start."""
        if not self.batches_processed:
            return 0.0
        return self.elapsed / self.batches_processed

    def cleanup(self) -> None:
        """Drop old batch samples; counters are kept."""
        if len(self.batch_durations) > MAX_BATCH_SAMPLES:
            del self.batch_durations[:-MAX_BATCH_SAMPLES]

    def report(self, asset_stats: Optional[Dict[str, int]] = None) -> PerformanceReport:
        duration = self.elapsed
        rate = self.processed_elements / duration if duration > 0 else 0.0
        success = (
            (self.processed_elements - self.failed_elements) / self.total_elements * 100
            if self.total_elements > 0 else 0.0
        )
        samples = self.batch_durations
        return PerformanceReport(
            duration_ms=round(duration * 1000, 1),
            elements_per_second=round(rate, 2),
            success_rate=round(min(max(success, 0.0), 100.0), 1),
            total_elements=self.total_elements,
            processed_elements=self.processed_elements,
            created_nodes=self.created_nodes,
            failed_elements=self.failed_elements,
            images_processed=self.images_processed,
            batches_processed=self.batches_processed,
            average_batch_ms=round(sum(samples) / len(samples) * 1000, 1) if samples else 0.0,
            asset_stats=dict(asset_stats or {}),
        )
