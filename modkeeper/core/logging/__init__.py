# modkeeper/core/logging/__init__.py
from __future__ import annotations

from .context import setLogContext, clearLogContext, getLogContext, logContext
from .filters import RecurringSuppressFilter
from .formatters import DevFormatter, JsonFormatter
from .setup import configureLogging

__all__ = [
    "configureLogging",
    "setLogContext",
    "clearLogContext",
    "getLogContext",
    "logContext",
    "RecurringSuppressFilter",
    "DevFormatter",
    "JsonFormatter",
]
