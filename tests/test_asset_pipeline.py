"""Tests for html2design.integrations.asset_pipeline."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from conftest import PNG_BYTES, FakeFetcher
from html2design.errors import AssetError
from html2design.integrations.asset_pipeline import (
    DEFAULT_HEADERS,
    AssetPipeline,
    FetchResponse,
    HttpxFetcher,
    normalize_asset_url,
)
from html2design.models import ConversionConfig


def png_response(content=PNG_BYTES, **headers):
    return FetchResponse(
        status_code=200,
        headers={"Content-Type": "image/png", **headers},
        content=content,
    )


# ---------------------------------------------------------------------------
# URL admission
# ---------------------------------------------------------------------------


class TestNormalizeAssetUrl:
    @pytest.mark.parametrize("raw,expected", [
        ("https://x.test/a.png", "https://x.test/a.png"),
        ("  https://x.test/a.png ", "https://x.test/a.png"),
        ("url(https://x.test/a.png)", "https://x.test/a.png"),
        ("url('https://x.test/a.png')", "https://x.test/a.png"),
        ('url("//cdn.test/a.png")', "https://cdn.test/a.png"),
        ("//cdn.test/a.png", "https://cdn.test/a.png"),
        ("/static/a.png", None),
        ("data:image/png;base64,AAAA", None),
        ("none", None),
        ("", None),
        (None, None),
    ])
    def test_admission(self, raw, expected):
        assert normalize_asset_url(raw) == expected


# ---------------------------------------------------------------------------
# resolve()
# ---------------------------------------------------------------------------


class TestResolve:
    @pytest.mark.asyncio
    async def test_fetch_and_cache(self, fetcher):
        pipeline = AssetPipeline(fetcher)
        first = await pipeline.resolve("https://x.test/a.png")
        second = await pipeline.resolve("url(https://x.test/a.png)")

        assert first is second
        assert fetcher.calls == ["https://x.test/a.png"]
        assert pipeline.stats["total"] == 2
        assert pipeline.stats["completed"] == 1
        assert pipeline.stats["cached"] == 1

    @pytest.mark.asyncio
    async def test_sends_default_headers(self):
        seen = {}

        class Recorder(FakeFetcher):
            async def fetch(self, url, headers):
                seen.update(headers)
                return await super().fetch(url, headers)

        await AssetPipeline(Recorder()).resolve("https://x.test/a.png")
        assert seen == DEFAULT_HEADERS

    @pytest.mark.asyncio
    async def test_rejected_url_returns_none(self, fetcher):
        pipeline = AssetPipeline(fetcher)
        assert await pipeline.resolve("/relative.png") is None
        assert fetcher.calls == []
        assert pipeline.stats["failed"] == 1

    @pytest.mark.asyncio
    async def test_record_handle_is_content_hash(self):
        fetcher = FakeFetcher(responses={
            "https://x.test/a.png": png_response(b"same"),
            "https://x.test/b.png": png_response(b"same"),
        })
        pipeline = AssetPipeline(fetcher)
        a = await pipeline.resolve("https://x.test/a.png")
        b = await pipeline.resolve("https://x.test/b.png")
        assert a.handle == b.handle
        assert a.size == 4

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response,message", [
        (FetchResponse(404, {}, b"", "Not Found"), "HTTP 404"),
        (FetchResponse(500, {}, b"", "Server Error"), "HTTP 500"),
        (FetchResponse(200, {"Content-Type": "text/html"}, b"<html>"), "Unsupported image format"),
        (FetchResponse(200, {"content-type": "image/png", "Content-Length": "999999999"}, b"x"), "too large"),
    ])
    async def test_validation_errors(self, response, message):
        url = "https://x.test/a.png"
        pipeline = AssetPipeline(FakeFetcher(responses={url: response}))
        with pytest.raises(AssetError, match=message):
            await pipeline.resolve(url)
        assert pipeline.stats["failed"] == 1
        assert pipeline.cache_size == 0

    @pytest.mark.asyncio
    async def test_actual_size_is_checked(self):
        url = "https://x.test/big.png"
        config = ConversionConfig(maxImageBytes=10)
        pipeline = AssetPipeline(FakeFetcher(responses={url: png_response(b"x" * 11)}), config)
        with pytest.raises(AssetError, match="too large"):
            await pipeline.resolve(url)

    @pytest.mark.asyncio
    async def test_content_type_parameters_are_ignored(self):
        url = "https://x.test/a.svg"
        response = FetchResponse(200, {"Content-Type": "image/svg+xml; charset=utf-8"}, b"<svg/>")
        record = await AssetPipeline(FakeFetcher(responses={url: response})).resolve(url)
        assert record.content_type.startswith("image/svg+xml")

    @pytest.mark.asyncio
    async def test_fetch_error_propagates(self):
        url = "https://x.test/down.png"
        pipeline = AssetPipeline(FakeFetcher(failures={url}))
        with pytest.raises(AssetError):
            await pipeline.resolve(url)
        assert pipeline.stats["failed"] == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error,reason", [
        (ConnectionError("connection reset"), "connection reset"),
        (OSError(), "OSError"),
    ])
    async def test_fetcher_exceptions_become_asset_errors(self, error, reason):
        url = "https://x.test/reset.png"
        fetcher = MagicMock()
        fetcher.fetch = AsyncMock(side_effect=error)
        pipeline = AssetPipeline(fetcher)

        with pytest.raises(AssetError, match=f"Network error downloading image: {reason}") as exc_info:
            await pipeline.resolve(url)

        assert exc_info.value.url == url
        assert pipeline.stats["failed"] == 1
        assert pipeline.active_downloads == 0

    @pytest.mark.asyncio
    async def test_timeout(self):
        config = ConversionConfig(assetTimeoutMs=20)
        pipeline = AssetPipeline(FakeFetcher(delay=1.0), config)
        with pytest.raises(AssetError, match="timeout"):
            await pipeline.resolve("https://x.test/slow.png")
        assert pipeline.active_downloads == 0


# ---------------------------------------------------------------------------
# Concurrency and batching
# ---------------------------------------------------------------------------


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_downloads_never_exceed_limit(self):
        fetcher = FakeFetcher(delay=0.01)
        config = ConversionConfig(maxConcurrentDownloads=2)
        pipeline = AssetPipeline(fetcher, config)

        await asyncio.gather(*(pipeline.resolve(f"https://x.test/{i}.png") for i in range(10)))

        assert fetcher.max_active <= 2
        assert pipeline.peak_active == 2
        assert pipeline.active_downloads == 0
        assert pipeline.stats["completed"] == 10

    @pytest.mark.asyncio
    async def test_concurrent_requests_share_one_download(self):
        url = "https://x.test/shared.png"
        fetcher = FakeFetcher(delay=0.01)
        pipeline = AssetPipeline(fetcher)

        records = await asyncio.gather(*(pipeline.resolve(url) for _ in range(3)))

        assert fetcher.calls == [url]
        assert records[0] is records[1] is records[2]
        assert pipeline.stats == {
            "total": 3, "completed": 1, "failed": 0, "cached": 2, "active": 0, "peak_active": 1,
        }

    @pytest.mark.asyncio
    async def test_shared_download_failure_reaches_every_caller(self):
        url = "https://x.test/down.png"
        fetcher = FakeFetcher(delay=0.01, failures={url})
        pipeline = AssetPipeline(fetcher)

        outcomes = await asyncio.gather(
            *(pipeline.resolve(url) for _ in range(2)), return_exceptions=True
        )

        assert all(isinstance(o, AssetError) for o in outcomes)
        assert fetcher.calls == [url]
        assert pipeline.stats["failed"] == 2

        with pytest.raises(AssetError):
            await pipeline.resolve(url)
        assert fetcher.calls == [url, url]

    @pytest.mark.asyncio
    async def test_resolve_many_batches_and_reports(self):
        fetcher = FakeFetcher(failures={"https://x.test/3.png"})
        pipeline = AssetPipeline(fetcher, ConversionConfig(assetBatchSize=2))
        updates = []
        urls = [f"https://x.test/{i}.png" for i in range(5)] + ["https://x.test/0.png", "data:x"]

        results = await pipeline.resolve_many(urls, on_progress=lambda m, p: updates.append((m, p)))

        assert len(results) == 4
        assert "https://x.test/3.png" not in results
        assert [p for _, p in updates] == pytest.approx([100 * 2 / 6, 100 * 4 / 6, 100.0])
        assert updates[-1][0] == "Processed 4/6 images"

    @pytest.mark.asyncio
    async def test_resolve_many_empty(self, fetcher):
        assert await AssetPipeline(fetcher).resolve_many([]) == {}


# ---------------------------------------------------------------------------
# Cache lifecycle
# ---------------------------------------------------------------------------


class TestCache:
    @pytest.mark.asyncio
    async def test_fifo_eviction(self, fetcher):
        pipeline = AssetPipeline(fetcher)
        urls = [f"https://x.test/{i}.png" for i in range(105)]
        for url in urls:
            await pipeline.resolve(url)

        assert pipeline.cache_size <= 100
        for url in urls[:20]:
            assert pipeline.get_cached(url) is None
        assert pipeline.get_cached(urls[-1]) is not None

    @pytest.mark.asyncio
    async def test_cleanup_only_when_half_full(self, fetcher):
        pipeline = AssetPipeline(fetcher, ConversionConfig(cacheCapacity=10))
        for i in range(4):
            await pipeline.resolve(f"https://x.test/{i}.png")
        assert pipeline.cleanup() == 0

        await pipeline.resolve("https://x.test/4.png")
        assert pipeline.cleanup() == 2
        assert pipeline.cached_urls() == [f"https://x.test/{i}.png" for i in (2, 3, 4)]

    @pytest.mark.asyncio
    async def test_reset(self, fetcher):
        pipeline = AssetPipeline(fetcher)
        await pipeline.resolve("https://x.test/a.png")
        pipeline.reset()
        assert pipeline.cache_size == 0
        assert pipeline.stats["total"] == 0
        assert pipeline.peak_active == 0


# ---------------------------------------------------------------------------
# HttpxFetcher
# ---------------------------------------------------------------------------


class TestHttpxFetcher:
    @pytest.mark.asyncio
    async def test_fetch(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["accept"].startswith("image/")
            return httpx.Response(200, headers={"Content-Type": "image/png"}, content=PNG_BYTES)

        fetcher = HttpxFetcher(transport=httpx.MockTransport(handler))
        try:
            resp = await fetcher.fetch("https://x.test/a.png", DEFAULT_HEADERS)
        finally:
            await fetcher.close()
        assert resp.status_code == 200
        assert resp.header("content-type") == "image/png"
        assert resp.content == PNG_BYTES

    @pytest.mark.asyncio
    async def test_transport_error_is_asset_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        fetcher = HttpxFetcher(transport=httpx.MockTransport(handler))
        with pytest.raises(AssetError, match="Network error"):
            await fetcher.fetch("https://x.test/a.png", {})
        await fetcher.close()

    @pytest.mark.asyncio
    async def test_timeout_is_asset_error(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        fetcher = HttpxFetcher(transport=httpx.MockTransport(handler))
        with pytest.raises(AssetError, match="timeout"):
            await fetcher.fetch("https://x.test/a.png", {})
        await fetcher.close()

    @pytest.mark.asyncio
    async def test_pipeline_over_http(self):
        def handler(request):
            if request.url.path == "/missing.png":
                return httpx.Response(404)
            return httpx.Response(200, headers={"Content-Type": "image/webp"}, content=b"RIFF")

        pipeline = AssetPipeline(HttpxFetcher(transport=httpx.MockTransport(handler)))
        results = await pipeline.resolve_many(["https://x.test/ok.webp", "https://x.test/missing.png"])
        await pipeline.close()
        assert list(results) == ["https://x.test/ok.webp"]
        assert pipeline.stats["failed"] == 1
