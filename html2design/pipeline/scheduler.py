"""BatchScheduler: drive a whole conversion run.

Flow of ``run()``:
  1. collect image URLs and start the asset prefetch as a concurrent task,
     then preload the page fonts when a host is configured
  2. build top-level elements in fixed-size batches (concurrently within a
     batch, batches strictly one after another), attaching successes to
     the root frame
  3. pace batches, doubling the pause once batches run slow on average
  4. run periodic cleanup on the asset pipeline and the monitor
  5. finalize: await the prefetch, z-sort the root, render through the host

The whole run is bounded by ``max_processing_time_ms``. Hitting it, or any
unexpected exception, ends the run without a tree.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Union

from ..errors import ErrorInfo, ProcessingTimeoutError, categorize_error
from ..integrations.asset_pipeline import AssetPipeline, normalize_asset_url
from ..integrations.host import DesignHost, FontLoader, collect_fonts, render_tree
from ..models import Bounds, ConversionConfig, ExtractedElement, parse_elements
from ..nodes.design_nodes import DesignNode, FrameNode, attach_node
from ..nodes.tree_builder import BuildContext, TreeBuilder
from ..style.paints import WHITE, SolidPaint
from .monitor import PerformanceMonitor, PerformanceReport
from .progress import Phase, ProgressReporter, ProgressTransport

logger = logging.getLogger(__name__)

# Progress bands (percent)
PREFETCH_START, PREFETCH_SPAN = 50.0, 15.0
BUILD_START, BUILD_SPAN = 65.0, 20.0
FINALIZE_START = 85.0


class RunState(str, Enum):
    IDLE = "idle"
    PREFETCHING = "prefetching"  # prefetch and building run together
    FINALIZING = "finalizing"
    DONE = "done"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass
class ConversionResult:
    state: RunState
    root: Optional[FrameNode] = None
    nodes: List[DesignNode] = field(default_factory=list)
    total_elements: int = 0
    created_nodes: int = 0
    failed_elements: int = 0
    images_processed: int = 0
    elapsed_seconds: float = 0.0
    report: Optional[PerformanceReport] = None
    root_handle: Optional[str] = None
    error: Optional[str] = None
    error_info: Optional[ErrorInfo] = None

    @property
    def success(self) -> bool:
        return self.state == RunState.DONE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "state": self.state.value,
            "totalElements": self.total_elements,
            "createdNodes": self.created_nodes,
            "failedElements": self.failed_elements,
            "imagesProcessed": self.images_processed,
            "elapsedSeconds": round(self.elapsed_seconds, 3),
            "report": self.report.to_dict() if self.report else None,
            "error": self.error,
            "errorInfo": self.error_info.to_dict() if self.error_info else None,
        }


def collect_asset_urls(elements: Iterable[ExtractedElement]) -> List[str]:
    """Unique fetchable image URLs (IMG sources and background images)."""
    seen: Dict[str, str] = {}
    stack = list(reversed(list(elements)))
    while stack:
        element = stack.pop()
        candidates = []
        if element.tag == "IMG" and element.src:
            candidates.append(element.src)
        if element.style("backgroundImage"):
            candidates.append(element.style("backgroundImage"))
        for raw in candidates:
            key = normalize_asset_url(raw)
            if key is not None and key not in seen:
                seen[key] = raw
        stack.extend(reversed(element.children))
    return list(seen.values())


Sleeper = Callable[[float], Awaitable[None]]


class BatchScheduler:
    """Runs conversions.

    Args:
        pipeline: Asset pipeline to use. When omitted each run creates (and
            closes) its own pipeline with the default httpx fetcher.
        host: Design host to render the finished tree into (optional).
        progress: Transport for progress events (optional).
        monitor: Performance monitor; a fresh one is used when omitted.
        sleep: Pacing coroutine, replaceable in tests.
    """

    def __init__(
        self,
        pipeline: Optional[AssetPipeline] = None,
        host: Optional[DesignHost] = None,
        progress: Optional[ProgressTransport] = None,
        monitor: Optional[PerformanceMonitor] = None,
        sleep: Sleeper = asyncio.sleep,
    ):
        self._pipeline = pipeline
        self._host = host
        self._transport = progress
        self.monitor = monitor or PerformanceMonitor()
        self._sleep = sleep
        self.state = RunState.IDLE
        self.reporter = ProgressReporter(progress)
        self.context: Optional[BuildContext] = None
        self._prefetch: Optional[asyncio.Task] = None

    def _set_state(self, state: RunState) -> None:
        logger.debug("Run state %s -> %s", self.state.value, state.value)
        self.state = state

    async def run(
        self,
        elements: Sequence[Union[ExtractedElement, dict]],
        config: Optional[ConversionConfig] = None,
    ) -> ConversionResult:
        config = config or ConversionConfig()
        items = parse_elements(list(elements) if isinstance(elements, (list, tuple)) else elements)
        owns_pipeline = self._pipeline is None
        pipeline = self._pipeline or AssetPipeline(config=config)
        pipeline.reset()

        self.state = RunState.IDLE
        self.reporter = ProgressReporter(self._transport)
        self.monitor.start(len(items))
        self.context = BuildContext(
            config=config,
            pipeline=pipeline,
            fonts=FontLoader(self._host) if self._host is not None else None,
            monitor=self.monitor,
        )
        root = FrameNode(
            id="root",
            name=f"Website: {config.document_title or 'Converted Page'}",
            bounds=Bounds(x=0, y=0, width=config.viewport_width, height=config.viewport_height),
            fills=[SolidPaint(WHITE)],
        )
        result = ConversionResult(state=RunState.IDLE, total_elements=len(items))
        logger.info(
            "Conversion started: %d elements, batch size %d, ceiling %dms",
            len(items), config.node_batch_size, config.max_processing_time_ms,
        )

        try:
            images, handle = await asyncio.wait_for(
                self._execute(items, config, pipeline, root),
                timeout=config.max_processing_time,
            )
            self._set_state(RunState.DONE)
            result.root = root
            result.nodes = list(self.context.created)
            result.images_processed = images
            result.root_handle = handle
        except asyncio.TimeoutError:
            self._set_state(RunState.TIMED_OUT)
            error = ProcessingTimeoutError(config.max_processing_time_ms)
            result.error = str(error)
            result.error_info = categorize_error(error)
            logger.error("Conversion aborted: %s", error)
        except Exception as e:
            self._set_state(RunState.FAILED)
            result.error = str(e) or e.__class__.__name__
            result.error_info = categorize_error(e)
            logger.error("Conversion failed: %s", e, exc_info=True)
        finally:
            if self._prefetch is not None and not self._prefetch.done():
                self._prefetch.cancel()
                await asyncio.gather(self._prefetch, return_exceptions=True)
            self._prefetch = None
            self.monitor.stop()
            await self.reporter.drain()
            if owns_pipeline:
                await pipeline.close()

        result.state = self.state
        result.created_nodes = len(self.context.created)
        result.failed_elements = self.context.failed_elements
        result.elapsed_seconds = self.monitor.elapsed
        result.report = self.monitor.report(asset_stats=pipeline.stats)
        if result.success:
            logger.info("Conversion complete: %s", result.report.summary())
        return result

    async def _execute(
        self,
        items: List[ExtractedElement],
        config: ConversionConfig,
        pipeline: AssetPipeline,
        root: FrameNode,
    ):
        builder = TreeBuilder(self.context)
        progress = self.reporter

        self._set_state(RunState.PREFETCHING)
        urls = collect_asset_urls(items)
        if urls:
            progress.report(Phase.PREFETCH, f"Prefetching {len(urls)} images...", PREFETCH_START)
            self._prefetch = asyncio.ensure_future(pipeline.resolve_many(
                urls,
                on_progress=lambda message, pct: progress.report(
                    Phase.PREFETCH, f"Images: {message}", PREFETCH_START + pct * PREFETCH_SPAN / 100
                ),
            ))

        fonts = self.context.fonts
        if fonts is not None:
            needed = collect_fonts(items)
            if needed:
                logger.info("Preloading %d fonts", len(needed))
                await fonts.preload(needed)

        total = len(items)
        batch_size = config.node_batch_size
        total_batches = (total + batch_size - 1) // batch_size

        for batch_number, start in enumerate(range(0, total, batch_size), start=1):
            batch = items[start:start + batch_size]
            end = start + len(batch)
            progress.report(
                Phase.BUILD,
                f"Creating nodes: batch {batch_number}/{total_batches} ({end}/{total} elements)",
                BUILD_START + start / total * BUILD_SPAN,
            )

            batch_start = time.monotonic()
            outcomes = await asyncio.gather(
                *(builder.build(el, None, 0, start + i) for i, el in enumerate(batch)),
                return_exceptions=True,
            )
            for element, outcome in zip(batch, outcomes):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                if isinstance(outcome, BaseException):
                    self.context.element_failed()
                    logger.warning("Element %s escaped the builder: %s", element.id, outcome)
                elif outcome is not None:
                    attach_node(root, outcome)
            self.monitor.record_processed(len(batch))
            self.monitor.batch_completed(time.monotonic() - batch_start)

            if batch_number % config.cleanup_interval_batches == 0:
                pipeline.cleanup()
                self.monitor.cleanup()
                logger.info("Cleanup after batch %d", batch_number)

            if end < total:
                delay = config.inter_batch_delay
                if self.monitor.average_batch_time * 1000 > config.slow_batch_threshold_ms:
                    delay *= 2
                await self._sleep(delay)

        self._set_state(RunState.FINALIZING)
        images = 0
        if self._prefetch is not None:
            progress.report(Phase.FINALIZE, "Finalizing image processing...", FINALIZE_START)
            images = len(await self._prefetch)

        progress.report(Phase.FINALIZE, "Organizing layers...", 90)
        root.sort_children()

        handle = None
        if self._host is not None:
            handle = render_tree(self._host, root)
        progress.report(Phase.FINALIZE, f"Created {len(root.children)} top-level layers", 100)
        return images, handle
