"""Command-line entry point.

Usage:
    # Convert an extractor export to a design document
    html2design convert page.json -o design.json

    # Override run options and stream progress to an HTTP endpoint
    html2design convert page.json --node-batch-size 30 --progress-url http://127.0.0.1:8000/progress

The input is either a list of element records or an extractor page export
(``{"title": ..., "viewport": {...}, "elements": [...]}``).
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import categorize_error
from .integrations.host import InMemoryHost
from .logging_config import get_conversion_logger
from .models import ConversionConfig, parse_elements
from .pipeline.progress import HttpProgressTransport, LoggingProgressTransport
from .pipeline.scheduler import BatchScheduler, ConversionResult


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="html2design",
        description="Convert extracted web page elements into a design node tree",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    convert = sub.add_parser("convert", help="Convert an element export to a design document")
    convert.add_argument("input", help="Element JSON file ('-' for stdin)")
    convert.add_argument(
        "-o", "--output", default=None,
        help="Write the design document here (default: stdout)",
    )
    convert.add_argument("--title", default=None, help="Document title for the root frame")
    convert.add_argument("--viewport-width", type=int, default=None)
    convert.add_argument("--viewport-height", type=int, default=None)
    convert.add_argument("--node-batch-size", type=int, default=None)
    convert.add_argument("--max-concurrent-downloads", type=int, default=None)
    convert.add_argument(
        "--max-processing-time-ms", type=int, default=None,
        help="Wall-clock ceiling for the whole run",
    )
    convert.add_argument("--progress-url", default=None, help="POST progress events to this URL")
    convert.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def _read_payload(path: str) -> Any:
    if path == "-":
        return json.load(sys.stdin)
    return json.loads(Path(path).read_text(encoding="utf-8"))


def build_config(args: argparse.Namespace, payload: Any) -> ConversionConfig:
    """Merge page metadata and command-line overrides into a config."""
    overrides: Dict[str, Any] = {}
    if isinstance(payload, dict):
        viewport = payload.get("viewport") or {}
        if viewport.get("width"):
            overrides["viewport_width"] = int(viewport["width"])
        if viewport.get("height"):
            overrides["viewport_height"] = int(viewport["height"])
        title = payload.get("title") or payload.get("url")
        if title:
            overrides["document_title"] = str(title)

    for name in (
        "viewport_width",
        "viewport_height",
        "node_batch_size",
        "max_concurrent_downloads",
        "max_processing_time_ms",
    ):
        value = getattr(args, name)
        if value is not None:
            overrides[name] = value
    if args.title:
        overrides["document_title"] = args.title
    return ConversionConfig(**overrides)


async def convert(args: argparse.Namespace, logger: logging.Logger) -> int:
    payload = _read_payload(args.input)
    elements = parse_elements(payload)
    config = build_config(args, payload)

    host = InMemoryHost()
    transport = HttpProgressTransport(args.progress_url) if args.progress_url else LoggingProgressTransport(logger)
    scheduler = BatchScheduler(host=host, progress=transport)
    try:
        result: ConversionResult = await scheduler.run(elements, config)
    finally:
        if isinstance(transport, HttpProgressTransport):
            await transport.close()

    if not result.success:
        info = result.error_info
        print(f"Error: {info.user_message if info else 'Conversion failed'}", file=sys.stderr)
        if info:
            print(f"  {info.details}", file=sys.stderr)
            for suggestion in info.suggestions:
                print(f"  - {suggestion}", file=sys.stderr)
        print(f"  ({result.error})", file=sys.stderr)
        return 1

    document = {
        "document": host.export(result.root_handle) if result.root_handle else None,
        "stats": result.to_dict(),
    }
    text = json.dumps(document, indent=2, ensure_ascii=False)
    if args.output:
        Path(args.output).write_text(text, encoding="utf-8")
        logger.info(f"Design document written to {args.output}")
    else:
        print(text)

    print(result.report.summary(), file=sys.stderr)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logger = get_conversion_logger(logging.DEBUG if args.verbose else logging.INFO)
    try:
        return asyncio.run(convert(args, logger))
    except (OSError, ValueError) as e:
        info = categorize_error(e)
        print(f"Error: {info.user_message}: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
