"""Loguru setup for the nutrition assistant.

``setup_logging()`` runs once, before the engine is built. It installs one
stderr sink (coloured text or JSON), an optional rotating file sink, and
routes the stdlib loggers of the libraries the engine talks to through loguru.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from loguru import logger

_TEXT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
    "<level>{message}</level>"
)

# Library loggers and the level they are held at unless the engine runs at DEBUG.
LIBRARY_LEVELS: dict[str, int] = {
    "openai": logging.WARNING,
    "httpx": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "asyncio": logging.WARNING,
}


class InterceptHandler(logging.Handler):
    """Hand stdlib records to loguru under the originating caller."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back  # type: ignore[assignment]
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(
    *,
    level: str = "INFO",
    json: bool = False,
    log_file: Path | None = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """Make loguru the only logging backend.

    Args:
        level: Minimum level for engine messages.
        json: Emit one JSON object per record instead of coloured text.
        log_file: Also write records here, rotated by ``rotation`` and
            pruned by ``retention``.
    """
    logger.remove()

    if json:
        logger.add(sys.stderr, level=level, serialize=True)
    else:
        logger.add(sys.stderr, level=level, format=_TEXT_FORMAT, colorize=True)

    if log_file is not None:
        logger.add(
            log_file,
            level=level,
            serialize=json,
            rotation=rotation,
            retention=retention,
            encoding="utf-8",
        )

    verbose = logger.level(level.upper()).no <= logger.level("DEBUG").no
    intercept = InterceptHandler()
    for name, library_level in LIBRARY_LEVELS.items():
        stdlib_logger = logging.getLogger(name)
        stdlib_logger.handlers = [intercept]
        stdlib_logger.propagate = False
        stdlib_logger.setLevel(logging.DEBUG if verbose else library_level)

    logging.root.handlers = [intercept]
    logging.root.setLevel(logging.WARNING)
