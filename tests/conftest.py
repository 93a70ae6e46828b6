"""Shared fixtures for html2design tests.

Provides:
- FakeFetcher: scripted in-memory fetcher with delay and concurrency tracking
- make_element: ExtractedElement factory with sensible defaults
- PNG payload bytes
"""

from __future__ import annotations

import asyncio
from typing import Dict, List, Mapping, Optional

import pytest

from html2design.errors import AssetError
from html2design.integrations.asset_pipeline import FetchResponse
from html2design.models import ConversionConfig, ExtractedElement

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class FakeFetcher:
    """Serves canned responses; unknown URLs return a small PNG.

    Args:
        delay: Seconds each fetch suspends for.
        responses: url -> FetchResponse overrides.
        failures: urls that raise AssetError.
    """

    def __init__(
        self,
        delay: float = 0.0,
        responses: Optional[Dict[str, FetchResponse]] = None,
        failures: Optional[set] = None,
    ):
        self.delay = delay
        self.responses = responses or {}
        self.failures = failures or set()
        self.calls: List[str] = []
        self.active = 0
        self.max_active = 0

    async def fetch(self, url: str, headers: Mapping[str, str]) -> FetchResponse:
        self.calls.append(url)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if url in self.failures:
                raise AssetError(f"Network error downloading image: {url}", url=url)
            if url in self.responses:
                return self.responses[url]
            return FetchResponse(
                status_code=200,
                headers={"Content-Type": "image/png", "Content-Length": str(len(PNG_BYTES))},
                content=PNG_BYTES + url.encode(),
            )
        finally:
            self.active -= 1


def make_element(
    tag: str = "DIV",
    text: str = "",
    x: float = 0,
    y: float = 0,
    width: float = 100,
    height: float = 50,
    styles: Optional[dict] = None,
    children: Optional[list] = None,
    **extra,
) -> ExtractedElement:
    data = {
        "tagName": tag,
        "textContent": text,
        "bounds": {"x": x, "y": y, "width": width, "height": height},
        "styles": styles or {},
        "children": children or [],
    }
    data.update(extra)
    return ExtractedElement.model_validate(data)


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def config():
    return ConversionConfig(interBatchDelayMs=0)
