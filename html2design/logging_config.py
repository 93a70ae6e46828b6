"""Unified logging configuration for conversion runs."""
from __future__ import annotations

import logging
import os
from pathlib import Path

# Log directory, configurable via H2D_LOG_DIR
LOG_DIR = Path(os.getenv("H2D_LOG_DIR", str(Path.cwd() / "logs")))

# Prevent duplicate handlers
_configured_loggers: set[str] = set()


def setup_logger(name: str, filename: str, level: int = logging.INFO) -> logging.Logger:
    """Setup a logger with file and console handlers.

    Args:
        name: Logger name (e.g., 'html2design', 'html2design.cli')
        filename: Log file name (e.g., 'conversion.log')
        level: Minimum level for both handlers

    Returns:
        Configured logger instance
    """
    if name in _configured_loggers:
        return logging.getLogger(name)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False  # Prevent duplicate logs

    LOG_DIR.mkdir(parents=True, exist_ok=True)

    # File handler
    fh = logging.FileHandler(LOG_DIR / filename, encoding='utf-8')
    fh.setLevel(level)
    fh.setFormatter(logging.Formatter(
        "%(asctime)s [%(name)s] [%(levelname)s] %(message)s"
    ))

    # Console handler
    sh = logging.StreamHandler()
    sh.setLevel(level)
    sh.setFormatter(logging.Formatter(
        "%(asctime)s [%(name)s] %(message)s"
    ))

    logger.addHandler(fh)
    logger.addHandler(sh)

    _configured_loggers.add(name)
    return logger


def get_conversion_logger(level: int = logging.INFO) -> logging.Logger:
    """Package root logger; module loggers under html2design.* inherit it."""
    return setup_logger("html2design", "conversion.log", level)
