"""Bounded-concurrency image fetching with a FIFO-evicted cache.

The pipeline depends on an abstract ``Fetcher``; ``HttpxFetcher`` is the
default network implementation. Downloads are limited by an
``asyncio.Semaphore`` (scoped acquisition, FIFO wake order), each fetch is
bounded by a per-request timeout, and responses are validated against the
content-type allowlist and the byte-size limit before they are cached.
Concurrent requests for one URL share a single download.

Usage:
    pipeline = AssetPipeline(HttpxFetcher(), ConversionConfig())
    records = await pipeline.resolve_many(urls, on_progress=print)
    record = await pipeline.resolve("https://example.org/logo.png")
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import re
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Protocol

import httpx

from .. import settings
from ..errors import AssetError
from ..models import ConversionConfig

logger = logging.getLogger("html2design.assets")

_CSS_URL_RE = re.compile(r"""^url\(\s*(['"]?)(.*?)\1\s*\)$""", re.IGNORECASE)

DEFAULT_HEADERS = {
    "User-Agent": settings.ASSET_USER_AGENT,
    "Accept": "image/*,*/*;q=0.8",
    "Cache-Control": "no-cache",
}

ProgressCallback = Callable[[str, float], None]


@dataclass(frozen=True)
class AssetRecord:
    """A successfully fetched image."""
    url: str
    content: bytes = field(repr=False)
    size: int
    content_type: Optional[str]
    handle: str  # content hash, stable across identical payloads


@dataclass
class FetchResponse:
    status_code: int
    headers: Mapping[str, str]
    content: bytes
    reason: str = ""

    def header(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None


class Fetcher(Protocol):
    async def fetch(self, url: str, headers: Mapping[str, str]) -> FetchResponse:
        ...


class HttpxFetcher:
    """Fetcher backed by a pooled httpx.AsyncClient.

    Args:
        timeout: Transport timeout in seconds. The pipeline enforces its own
            per-asset timeout on top of this.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        timeout: float = settings.ASSET_TIMEOUT_MS / 1000,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client: Optional[httpx.AsyncClient] = None
        self._timeout = timeout
        self._transport = transport

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                transport=self._transport,
                limits=httpx.Limits(
                    max_connections=settings.ASSET_HTTP_MAX_CONNECTIONS,
                    max_keepalive_connections=settings.ASSET_HTTP_MAX_KEEPALIVE,
                ),
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def fetch(self, url: str, headers: Mapping[str, str]) -> FetchResponse:
        client = await self._get_client()
        try:
            resp = await client.get(url, headers=dict(headers))
        except httpx.TimeoutException as e:
            raise AssetError("Image download timeout", url=url) from e
        except httpx.HTTPError as e:
            raise AssetError(f"Network error downloading image: {e}", url=url) from e
        return FetchResponse(
            status_code=resp.status_code,
            headers=dict(resp.headers),
            content=resp.content,
            reason=resp.reason_phrase,
        )


def normalize_asset_url(url: Optional[str]) -> Optional[str]:
    """Admit a URL for fetching, or return None.

    ``url(...)`` wrappers are removed, protocol-relative URLs are upgraded
    to https, root-relative and data URLs are rejected (there is no base URL
    to resolve against and inline data is not decoded).
    """
    if not url or not isinstance(url, str):
        return None
    value = url.strip()
    match = _CSS_URL_RE.match(value)
    if match:
        value = match.group(2).strip()
    if not value or value.lower() == "none":
        return None
    if value.startswith("//"):
        return "https:" + value
    if value.startswith("/"):
        return None
    if value.lower().startswith("data:"):
        return None
    return value


def content_hash(content: bytes) -> str:
    return hashlib.sha1(content).hexdigest()


class AssetPipeline:
    """Resolve image URLs to cached AssetRecords.

    Args:
        fetcher: Network capability. Defaults to a new HttpxFetcher.
        config: Run configuration (slots, timeouts, limits, cache size).
    """

    def __init__(self, fetcher: Optional[Fetcher] = None, config: Optional[ConversionConfig] = None):
        self.config = config or ConversionConfig()
        self._fetcher = fetcher or HttpxFetcher(timeout=self.config.asset_timeout)
        self._cache: "OrderedDict[str, AssetRecord]" = OrderedDict()
        self._inflight: Dict[str, "asyncio.Future[AssetRecord]"] = {}
        self._slots = asyncio.Semaphore(self.config.max_concurrent_downloads)
        self._stats = self._empty_stats()
        self.active_downloads = 0
        self.peak_active = 0

    @staticmethod
    def _empty_stats() -> Dict[str, int]:
        return {"total": 0, "completed": 0, "failed": 0, "cached": 0}

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def cached_urls(self) -> List[str]:
        return list(self._cache.keys())

    def get_cached(self, url: str) -> Optional[AssetRecord]:
        key = normalize_asset_url(url)
        return self._cache.get(key) if key else None

    def _evict_oldest(self) -> int:
        count = max(1, int(self.config.cache_capacity * settings.ASSET_CACHE_EVICT_FRACTION))
        evicted = 0
        while self._cache and evicted < count:
            self._cache.popitem(last=False)
            evicted += 1
        return evicted

    def _store(self, record: AssetRecord) -> None:
        if record.url not in self._cache and len(self._cache) >= self.config.cache_capacity:
            evicted = self._evict_oldest()
            logger.debug("Asset cache full, evicted %d oldest entries", evicted)
        self._cache[record.url] = record

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def _validate(self, url: str, response: FetchResponse) -> AssetRecord:
        if response.status_code >= 400:
            if response.status_code == 404:
                raise AssetError(f"Image not found (HTTP 404): {url}", url=url)
            raise AssetError(f"HTTP {response.status_code}: {response.reason}", url=url)

        content_type = response.header("content-type")
        if content_type:
            mime = content_type.split(";")[0].strip().lower()
            if mime not in self.config.supported_image_types:
                raise AssetError(f"Unsupported image format: {content_type}", url=url)

        declared = response.header("content-length")
        if declared and declared.isdigit() and int(declared) > self.config.max_image_bytes:
            raise AssetError(f"Image too large: {declared} bytes", url=url)

        size = len(response.content)
        if size > self.config.max_image_bytes:
            raise AssetError(f"Image too large: {size} bytes", url=url)

        return AssetRecord(
            url=url,
            content=response.content,
            size=size,
            content_type=content_type,
            handle=content_hash(response.content),
        )

    async def _download(self, url: str) -> AssetRecord:
        async with self._slots:
            self.active_downloads += 1
            self.peak_active = max(self.peak_active, self.active_downloads)
            try:
                response = await asyncio.wait_for(
                    self._fetcher.fetch(url, DEFAULT_HEADERS),
                    timeout=self.config.asset_timeout,
                )
            except asyncio.TimeoutError as e:
                raise AssetError("Image download timeout", url=url) from e
            finally:
                self.active_downloads -= 1
        return self._validate(url, response)

    async def _fetch_record(self, key: str) -> AssetRecord:
        try:
            return await self._download(key)
        except AssetError:
            raise
        except Exception as e:
            # custom fetchers may leak transport or OS errors
            reason = str(e) or e.__class__.__name__
            raise AssetError(f"Network error downloading image: {reason}", url=key) from e

    async def resolve(self, url: Optional[str]) -> Optional[AssetRecord]:
        """Resolve one URL.

        Returns the cached or freshly fetched record, None for URLs that are
        not admitted, and raises AssetError when the fetch fails. Concurrent
        calls for the same URL share one download; the callers that joined
        it are counted as cache hits.
        """
        self._stats["total"] += 1
        key = normalize_asset_url(url)
        if key is None:
            logger.debug("Skipping unsupported image URL: %.60s", url)
            self._stats["failed"] += 1
            return None

        cached = self._cache.get(key)
        if cached is not None:
            self._stats["cached"] += 1
            return cached

        pending = self._inflight.get(key)
        owner = pending is None
        if owner:
            pending = asyncio.ensure_future(self._fetch_record(key))
            self._inflight[key] = pending
        try:
            record = await (pending if owner else asyncio.shield(pending))
        except AssetError:
            self._stats["failed"] += 1
            raise
        finally:
            if owner and self._inflight.get(key) is pending:
                del self._inflight[key]

        if owner:
            self._store(record)
            self._stats["completed"] += 1
        else:
            self._stats["cached"] += 1
        return record


    async def resolve_many(
        self,
        urls: Iterable[str],
        on_progress: Optional[ProgressCallback] = None,
    ) -> Dict[str, AssetRecord]:
        """Resolve unique URLs in batches; failed URLs are simply absent."""
        unique = list(dict.fromkeys(u for u in urls if u))
        results: Dict[str, AssetRecord] = {}
        if not unique:
            return results

        batch_size = self.config.asset_batch_size
        total_batches = (len(unique) + batch_size - 1) // batch_size
        logger.info("Prefetching %d images in %d batches", len(unique), total_batches)

        for start in range(0, len(unique), batch_size):
            batch = unique[start:start + batch_size]
            outcomes = await asyncio.gather(
                *(self.resolve(u) for u in batch), return_exceptions=True
            )
            for url, outcome in zip(batch, outcomes):
                if isinstance(outcome, AssetRecord):
                    results[url] = outcome
                elif isinstance(outcome, BaseException):
                    if isinstance(outcome, asyncio.CancelledError):
                        raise outcome
                    logger.warning("Failed to download image %s: %s", url, outcome)

            if on_progress is not None:
                done = start + len(batch)
                on_progress(
                    f"Processed {len(results)}/{len(unique)} images",
                    done / len(unique) * 100,
                )

        logger.info("Image prefetch complete: %s", self.stats)
        return results

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def stats(self) -> Dict[str, int]:
        return {**self._stats, "active": self.active_downloads, "peak_active": self.peak_active}

    def cleanup(self) -> int:
        """Periodic trim: drop the oldest cache entries once half full."""
        if len(self._cache) < self.config.cache_capacity // 2:
            return 0
        evicted = self._evict_oldest()
        logger.info("Asset cache cleanup evicted %d entries (%d left)", evicted, len(self._cache))
        return evicted

    def reset(self) -> None:
        """Clear cache, counters and slot accounting between conversions."""
        self._cache.clear()
        self._inflight.clear()
        self._stats = self._empty_stats()
        self.active_downloads = 0
        self.peak_active = 0
        self._slots = asyncio.Semaphore(self.config.max_concurrent_downloads)

    async def close(self) -> None:
        close = getattr(self._fetcher, "close", None)
        if close is not None:
            await close()
