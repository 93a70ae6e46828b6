"""Error taxonomy for conversion runs.

Recoverable errors (ElementValidationError, AssetError) are absorbed into
per-run counters by the builder and the asset pipeline. Fatal errors
(ProcessingTimeoutError and anything unexpected) end the run and are
surfaced on ConversionResult together with a user-facing ErrorInfo.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional


class ConversionError(Exception):
    """Base class for errors raised by html2design."""


class ElementValidationError(ConversionError):
    """Raised when an element record cannot be turned into a node."""

    def __init__(self, message: str, element_id: Optional[str] = None):
        super().__init__(message)
        self.element_id = element_id


class AssetError(ConversionError):
    """Raised when an asset cannot be fetched or fails validation."""

    def __init__(self, message: str, url: str = ""):
        super().__init__(message)
        self.url = url


class ProcessingTimeoutError(ConversionError):
    """Raised when a run exceeds its wall-clock ceiling."""

    def __init__(self, limit_ms: int):
        super().__init__(f"Processing timeout: exceeded {limit_ms}ms")
        self.limit_ms = limit_ms


@dataclass(frozen=True)
class ErrorInfo:
    """User-facing description of a failed run."""
    category: str
    user_message: str
    details: str
    can_retry: bool
    suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "userMessage": self.user_message,
            "details": self.details,
            "canRetry": self.can_retry,
            "suggestions": list(self.suggestions),
        }


def categorize_error(error: BaseException) -> ErrorInfo:
    """Map an exception onto a user-facing category.

    Matching is keyword based on the lower-cased message, checked in order:
    network, timeout, invalid input, not found, extraction, generic.
    """
    message = str(error).lower()

    if "network" in message or "fetch" in message:
        return ErrorInfo(
            category="network",
            user_message="Network Connection Error",
            details="A remote resource could not be reached.",
            can_retry=True,
            suggestions=[
                "Check your internet connection",
                "Make sure the image host is reachable",
                "Try again in a few moments",
            ],
        )

    if (
        "timeout" in message
        or isinstance(error, (ProcessingTimeoutError, asyncio.TimeoutError))
    ):
        return ErrorInfo(
            category="timeout",
            user_message="Request Timeout",
            details="The page took too long to convert.",
            can_retry=True,
            suggestions=[
                "Try a simpler page first",
                "Raise maxProcessingTimeMs for large pages",
                "Convert a smaller viewport",
            ],
        )

    if "invalid" in message or isinstance(error, ElementValidationError):
        return ErrorInfo(
            category="invalid",
            user_message="Invalid Input",
            details="The element payload could not be read.",
            can_retry=False,
            suggestions=[
                "Check that the input is an extractor JSON export",
                "Make sure every element has tagName and bounds",
            ],
        )

    if "unreachable" in message or "404" in message or "not found" in message:
        return ErrorInfo(
            category="not_found",
            user_message="Website Not Found",
            details="The website could not be reached or does not exist.",
            can_retry=False,
            suggestions=[
                "Check the URL for typos",
                "Verify the website is online",
            ],
        )

    if "scraping" in message or "extract" in message:
        return ErrorInfo(
            category="extraction",
            user_message="Content Processing Error",
            details="Content could not be extracted from the page.",
            can_retry=True,
            suggestions=[
                "The page may need JavaScript to render its content",
                "Try a different page on the same site",
            ],
        )

    return ErrorInfo(
        category="generic",
        user_message="Conversion Error",
        details="An unexpected error occurred during conversion.",
        can_retry=True,
        suggestions=[
            "Try again in a few moments",
            "Re-run with --verbose for details",
        ],
    )
