# modkeeper/core/logging/formatters.py
from __future__ import annotations

import logging

from modkeeper.core.jsonutils import safeJsonDumps
from .context import getLogContext

__all__ = ["JsonFormatter", "DevFormatter"]

# Context keys shown on console lines, in this order
_CONSOLE_CONTEXT_KEYS = ("operation", "packageId")



class JsonFormatter(logging.Formatter):
    """One-line JSON records for the log file."""
    def format(self, record: logging.LogRecord) -> str:
        base = {
            "ts": int(record.created * 1000),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
            "ctx": getLogContext() or {},
            "proc": {"pid": record.process, "name": record.processName},
        }

        if record.exc_info:
            excType, excValue = record.exc_info[0], record.exc_info[1]
            try:
                typ = getattr(excType, "__name__", type(excType).__name__)
                msg = str(excValue)
                stack = self.formatException(record.exc_info)
            except Exception:
                typ, msg, stack = "Error", "format failed", None
            base["exc"] = {"type": typ, "message": msg, "stack": stack}

        return safeJsonDumps(base)



class DevFormatter(logging.Formatter):
    """Human-friendly console formatter."""
    def format(self, record: logging.LogRecord) -> str:
        ctx = getLogContext()
        ctxStr = ""
        if ctx:
            md = [str(ctx[key]) for key in _CONSOLE_CONTEXT_KEYS if ctx.get(key)]
            if md:
                ctxStr = " [" + "/".join(md) + "]"
        msg = record.getMessage()
        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)
        if record.stack_info:
            msg += "\n" + str(record.stack_info)
        return f"{record.levelname}: [{record.name}] {msg}{ctxStr}"
