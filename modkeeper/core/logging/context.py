# modkeeper/core/logging/context.py
from __future__ import annotations

import contextvars
from collections.abc import Iterator
from contextlib import contextmanager

# Per-operation log context (packageId, operation, source, ...)
_logContextVar: contextvars.ContextVar[dict[str, object] | None] = contextvars.ContextVar("modkeeper.logctx", default=None)

def setLogContext(**kvs):
    """Set or update context values; None values are ignored."""
    current = dict(_logContextVar.get() or {}) # use copy
    for key, value in kvs.items():
        if value is not None:
            current[key] = value
    _logContextVar.set(current)

def clearLogContext():
    _logContextVar.set(None)

def getLogContext():
    """Current context dict or None."""
    return _logContextVar.get()

@contextmanager
def logContext(**kvs) -> Iterator[None]:
    """Scoped setLogContext; the previous context comes back on exit."""
    token = _logContextVar.set(dict(_logContextVar.get() or {}))
    try:
        setLogContext(**kvs)
        yield
    finally:
        _logContextVar.reset(token)
