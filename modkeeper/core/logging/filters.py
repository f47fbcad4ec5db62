# modkeeper/core/logging/filters.py
from __future__ import annotations

import logging
import threading
import time
from collections import defaultdict, deque
from collections.abc import Callable

__all__ = ["RecurringSuppressFilter"]

MAX_KEY_LEN = 512



class RecurringSuppressFilter(logging.Filter):
    """
    Drops identical records after `maxPerWindow` occurrences inside a sliding
    `windowSeconds` window. Once a key is let through again, a summary line
    reports how many were dropped.

    Key = (logger name, levelno, normalized message). Bulk enable/disable
    over a folder of locked files is the typical source of such bursts.
    """
    def __init__(
        self,
        *,
        windowSeconds: int = 60,
        maxPerWindow: int = 5,
        summaryLevel: int = logging.INFO,
        normalize: Callable[[logging.LogRecord], str] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__()
        self.windowSeconds = max(1, int(windowSeconds))
        self.maxPerWindow = max(1, int(maxPerWindow))
        self.summaryLevel = int(summaryLevel)
        self.normalize = normalize or self._defaultNormalize
        self._clock = clock

        self._buckets: dict[tuple[str, int, str], deque[float]] = defaultdict(deque)
        self._suppressedCounts: dict[tuple[str, int, str], int] = defaultdict(int)
        self._lock = threading.Lock()

    def _defaultNormalize(self, record: logging.LogRecord) -> str:
        try:
            msg = record.getMessage()
        except Exception:
            msg = str(record.msg)
        norm = " ".join(str(msg).split())
        if len(norm) > MAX_KEY_LEN:
            norm = norm[:MAX_KEY_LEN] + "..."
        return norm

    def _pruneOld(self, dq: deque[float], now: float) -> None:
        limit = now - self.windowSeconds
        while dq and dq[0] < limit:
            dq.popleft()

    def _emitSummary(self, key: tuple[str, int, str]) -> None:
        suppressedCount = self._suppressedCounts.get(key, 0)
        if suppressedCount <= 0:
            return
        loggerName, _levelno, normMessage = key
        self._suppressedCounts[key] = 0
        logging.getLogger(loggerName).log(
            self.summaryLevel,
            "Suppressed %d repeated logs: %s",
            suppressedCount,
            normMessage,
            extra={"_noRecurringSuppress": True},
        )

    def suppressedCount(self, record: logging.LogRecord) -> int:
        return self._suppressedCounts.get((record.name, record.levelno, self.normalize(record)), 0)

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "_noRecurringSuppress", False):
            return True

        now = self._clock()
        key = (record.name, record.levelno, self.normalize(record))
        summarize = False

        with self._lock:
            dq = self._buckets[key]
            self._pruneOld(dq, now)
            dq.append(now)
            if len(dq) > self.maxPerWindow:
                self._suppressedCounts[key] += 1
                return False
            summarize = self._suppressedCounts.get(key, 0) > 0

        if summarize:
            self._emitSummary(key)
        return True
