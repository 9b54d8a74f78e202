"""Logging configuration for the reelname CLI.

Library modules only create loggers; handlers are attached here, once, by the
command-line entry point.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from reelname.config.models import LoggingSettings

_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

_FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def resolve_level(level: str) -> int:
    """Map a level name to its ``logging`` constant.

    Raises:
        ValueError: If ``level`` is not a known level name.
    """
    try:
        return _LEVELS[level.casefold()]
    except KeyError:
        raise ValueError(f"Unknown logging level: {level!r}") from None


def configure_logging(
    settings: LoggingSettings,
    *,
    level_override: Optional[str] = None,
    console: Optional[Console] = None,
) -> logging.Logger:
    """Attach console and optional rotating-file handlers to the package logger.

    Args:
        settings: Logging configuration.
        level_override: Level name taking precedence over ``settings.level``.
        console: Rich console for the stderr handler.

    Returns:
        logging.Logger: The configured ``reelname`` logger.
    """
    level = resolve_level(level_override or settings.level)
    logger = logging.getLogger("reelname")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    rich_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    rich_handler.setLevel(level)
    logger.addHandler(rich_handler)

    if settings.file:
        path = Path(settings.file).expanduser()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                path,
                maxBytes=settings.max_size_mb * 1024 * 1024,
                backupCount=settings.backup_count,
                encoding="utf-8",
            )
        except OSError as exc:
            sys.stderr.write(f"Warning: could not open log file {path}: {exc}\n")
        else:
            file_handler.setLevel(level)
            file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
            logger.addHandler(file_handler)

    return logger


__all__ = ["configure_logging", "resolve_level"]
