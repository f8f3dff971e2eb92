"""Logging configuration shared by the CLI and the watch daemon."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from aifiles.config.models import LoggingSettings

LOG_FILENAME = "aifiles.log"
_HANDLER_MARKER = "_aifiles_handler"


def configure_logging(
    settings: LoggingSettings,
    log_dir: Path,
    *,
    console: Console | None = None,
) -> Path:
    """Attach a rotating file handler and a rich console handler to the package logger.

    Calling this repeatedly replaces the handlers installed by a previous call
    instead of stacking duplicates.

    Args:
        settings: Logging section of the loaded configuration.
        log_dir: Directory receiving the rotating log file.
        console: Optional rich console for stderr output.

    Returns:
        Path: Location of the log file.
    """
    logger = logging.getLogger("aifiles")
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()

    level = logging.getLevelName(settings.level.upper())
    if not isinstance(level, int):
        level = logging.WARNING
    logger.setLevel(min(level, logging.INFO))

    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / LOG_FILENAME
    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=max(1, settings.max_size_mb) * 1024 * 1024,
        backupCount=max(0, settings.backup_count),
        encoding="utf-8",
    )
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )

    rich_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    rich_handler.setLevel(level)

    for handler in (file_handler, rich_handler):
        setattr(handler, _HANDLER_MARKER, True)
        logger.addHandler(handler)
    return log_path


__all__ = ["LOG_FILENAME", "configure_logging"]
