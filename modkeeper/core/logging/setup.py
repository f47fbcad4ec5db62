# modkeeper/core/logging/setup.py
from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

from modkeeper.config.settings import LoggingSettings
from .filters import RecurringSuppressFilter
from .formatters import DevFormatter, JsonFormatter

__all__ = ["NO_PROPAGATE", "configureLogging"]

# Chatty third-party loggers
NO_PROPAGATE = ["py7zr", "pefile", "dnfile"]



def configureLogging(settings: LoggingSettings | None = None, *, verbose: bool = False) -> list[logging.Handler]:
    """
    Root logging configuration:
      - console: DevFormatter at the configured level (DEBUG with verbose)
      - optional file: JsonFormatter, rotated by size
      - optional recurring suppression on every handler
    Returns the installed handlers.
    """
    settings = settings or LoggingSettings()
    level = logging.DEBUG if verbose else getattr(logging, settings.level, logging.INFO)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)

    for name in NO_PROPAGATE:
        logging.getLogger(name).propagate = False

    consoleHandler = logging.StreamHandler()
    consoleHandler.setLevel(level)
    consoleHandler.setFormatter(DevFormatter())
    handlers: list[logging.Handler] = [consoleHandler]

    if settings.file:
        logPath = Path(settings.file).expanduser()
        logPath.parent.mkdir(parents=True, exist_ok=True)
        fileHandler = logging.handlers.RotatingFileHandler(
            logPath,
            maxBytes=settings.maxBytes,
            backupCount=settings.backupCount,
            encoding="utf-8",
        )
        fileHandler.setLevel(logging.DEBUG)
        fileHandler.setFormatter(JsonFormatter())
        handlers.append(fileHandler)
        # The file always gets everything
        root.setLevel(logging.DEBUG)

    if settings.suppressRecurring:
        suppressFilter = RecurringSuppressFilter()
        for handler in handlers:
            handler.addFilter(suppressFilter)

    for handler in handlers:
        root.addHandler(handler)
    return handlers
