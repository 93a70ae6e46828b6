"""Progress events for a conversion run.

Events are ``{phase, message, percent}`` envelopes published one-way to a
transport. Publishing is fire-and-forget: a transport that fails is logged
and never affects the run.

Transports:
  - QueueProgressTransport: in-process queue with a bounded replay buffer,
    consumed through the ``subscribe()`` async generator
  - HttpProgressTransport: POSTs each event as JSON to a URL
  - LoggingProgressTransport: writes events to the log
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from datetime import datetime, timezone
from enum import Enum
from typing import AsyncGenerator, Deque, List, Optional, Protocol, Set

import httpx
from pydantic import BaseModel, Field

from .. import settings

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    PREFETCH = "prefetch"
    BUILD = "build"
    FINALIZE = "finalize"


class ProgressEvent(BaseModel):
    phase: Phase
    message: str
    percent: float = Field(ge=0, le=100)
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class ProgressTransport(Protocol):
    async def publish(self, event: ProgressEvent) -> None:
        ...


class ProgressReporter:
    """Publishes monotonically non-decreasing progress.

    A report below the last published percentage is raised to it, so
    overlapping phases (prefetch runs alongside building) never move the
    bar backwards.
    """

    def __init__(self, transport: Optional[ProgressTransport] = None):
        self._transport = transport
        self._pending: Set[asyncio.Future] = set()
        self.last_percent = 0.0
        self.history: List[ProgressEvent] = []

    def report(self, phase: Phase, message: str, percent: float) -> ProgressEvent:
        percent = max(self.last_percent, min(100.0, float(percent)))
        self.last_percent = percent
        event = ProgressEvent(phase=phase, message=message, percent=round(percent, 1))
        self.history.append(event)
        if self._transport is not None:
            task = asyncio.ensure_future(self._publish(event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        return event

    async def _publish(self, event: ProgressEvent) -> None:
        try:
            await self._transport.publish(event)
        except Exception as e:
            # Log error but don't fail the run
            logger.error(f"Failed to publish progress event: {e}")

    async def drain(self) -> None:
        """Wait for in-flight publishes (used at the end of a run)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


class QueueProgressTransport:
    """In-process transport with a replay buffer for late subscribers."""

    def __init__(self, buffer_max_events: int = settings.PROGRESS_BUFFER_MAX_EVENTS):
        self._buffer: Deque[ProgressEvent] = deque(maxlen=buffer_max_events)
        self._queues: List[asyncio.Queue] = []

    async def publish(self, event: ProgressEvent) -> None:
        self._buffer.append(event)
        for queue in self._queues:
            queue.put_nowait(event)

    @property
    def buffered(self) -> List[ProgressEvent]:
        return list(self._buffer)

    async def subscribe(self, timeout: Optional[float] = None) -> AsyncGenerator[ProgressEvent, None]:
        """Yield buffered then live events until one reaches 100%.

        Args:
            timeout: Seconds to wait for the next event before giving up.
        """
        queue: asyncio.Queue = asyncio.Queue()
        self._queues.append(queue)
        try:
            for event in list(self._buffer):
                yield event
                if event.percent >= 100:
                    return
            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=timeout)
                except asyncio.TimeoutError:
                    logger.warning("Progress subscriber timed out waiting for events")
                    return
                yield event
                if event.percent >= 100:
                    return
        finally:
            self._queues.remove(queue)


class HttpProgressTransport:
    """POSTs each event to ``url`` using a shared pooled client."""

    def __init__(self, url: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=settings.PROGRESS_HTTP_TIMEOUT,
                transport=self._transport,
                limits=httpx.Limits(
                    max_connections=settings.PROGRESS_HTTP_MAX_CONNECTIONS,
                    max_keepalive_connections=settings.PROGRESS_HTTP_MAX_KEEPALIVE,
                ),
            )
        return self._client

    async def publish(self, event: ProgressEvent) -> None:
        client = await self._get_client()
        try:
            resp = await client.post(self.url, json=event.model_dump(mode="json"))
            logger.debug(f"Progress push response: {resp.status_code}")
        except httpx.HTTPError as e:
            logger.error(f"Failed to push progress event: {e}")

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


class LoggingProgressTransport:
    def __init__(self, log: Optional[logging.Logger] = None):
        self._log = log or logger

    async def publish(self, event: ProgressEvent) -> None:
        self._log.info("[%s] %3.0f%% %s", event.phase.value, event.percent, event.message)
