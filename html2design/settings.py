"""Conversion runtime settings: tunable parameters for a conversion run.

All values read from environment variables with sensible defaults. They
seed ConversionConfig (html2design/models.py); per-run overrides go through
that model instead of the environment.
"""

from __future__ import annotations

import os


def _int(key: str, default: int) -> int:
    return int(os.getenv(key, str(default)))


def _float(key: str, default: float) -> float:
    return float(os.getenv(key, str(default)))


def _str(key: str, default: str) -> str:
    return os.getenv(key, default)


# =====================================================================
# Asset pipeline
# =====================================================================

# Simultaneous image downloads
MAX_CONCURRENT_DOWNLOADS = _int("H2D_MAX_CONCURRENT_DOWNLOADS", 5)

# URLs resolved per prefetch batch
ASSET_BATCH_SIZE = _int("H2D_ASSET_BATCH_SIZE", 3)

# Per-request timeout (milliseconds)
ASSET_TIMEOUT_MS = _int("H2D_ASSET_TIMEOUT_MS", 10000)

# Largest accepted image payload (bytes)
MAX_IMAGE_BYTES = _int("H2D_MAX_IMAGE_BYTES", 5 * 1024 * 1024)

# Comma separated content-type allowlist
SUPPORTED_IMAGE_TYPES = tuple(
    t.strip()
    for t in _str(
        "H2D_SUPPORTED_IMAGE_TYPES",
        "image/jpeg,image/png,image/gif,image/webp,image/svg+xml",
    ).split(",")
    if t.strip()
)

# Asset cache entries before FIFO eviction
ASSET_CACHE_CAPACITY = _int("H2D_ASSET_CACHE_CAPACITY", 100)

# Fraction of the cache evicted on overflow
ASSET_CACHE_EVICT_FRACTION = _float("H2D_ASSET_CACHE_EVICT_FRACTION", 0.2)

# HTTP client pool for the default fetcher
ASSET_HTTP_MAX_CONNECTIONS = _int("H2D_ASSET_HTTP_MAX_CONNECTIONS", 10)
ASSET_HTTP_MAX_KEEPALIVE = _int("H2D_ASSET_HTTP_MAX_KEEPALIVE", 5)

ASSET_USER_AGENT = _str(
    "H2D_ASSET_USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0 Safari/537.36",
)


# =====================================================================
# Tree building / scheduling
# =====================================================================

# Elements built per batch
NODE_BATCH_SIZE = _int("H2D_NODE_BATCH_SIZE", 15)

# Pause between batches (milliseconds)
INTER_BATCH_DELAY_MS = _int("H2D_INTER_BATCH_DELAY_MS", 20)

# Average batch time above which the pause doubles (milliseconds)
SLOW_BATCH_THRESHOLD_MS = _int("H2D_SLOW_BATCH_THRESHOLD_MS", 1000)

# Wall-clock ceiling for a whole run (milliseconds)
MAX_PROCESSING_TIME_MS = _int("H2D_MAX_PROCESSING_TIME_MS", 300000)

# Batches between cleanup passes
CLEANUP_INTERVAL_BATCHES = _int("H2D_CLEANUP_INTERVAL_BATCHES", 50)

# Root container defaults
VIEWPORT_WIDTH = _int("H2D_VIEWPORT_WIDTH", 1200)
VIEWPORT_HEIGHT = _int("H2D_VIEWPORT_HEIGHT", 800)


# =====================================================================
# Progress transport
# =====================================================================

PROGRESS_HTTP_TIMEOUT = _float("H2D_PROGRESS_HTTP_TIMEOUT", 5.0)
PROGRESS_HTTP_MAX_CONNECTIONS = _int("H2D_PROGRESS_HTTP_MAX_CONNECTIONS", 5)
PROGRESS_HTTP_MAX_KEEPALIVE = _int("H2D_PROGRESS_HTTP_MAX_KEEPALIVE", 2)

# Events kept for late subscribers
PROGRESS_BUFFER_MAX_EVENTS = _int("H2D_PROGRESS_BUFFER_MAX_EVENTS", 200)
