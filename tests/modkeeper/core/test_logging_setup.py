import json
import logging
import logging.handlers
from pathlib import Path

import pytest

from modkeeper.config.settings import LoggingSettings
from modkeeper.core.logging import (
    DevFormatter,
    JsonFormatter,
    RecurringSuppressFilter,
    configureLogging,
    getLogContext,
    logContext,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def make_record(msg: str = "Could not disable '%s'", *args, name: str = "modkeeper.test", level: int = logging.WARNING):
    return logging.LogRecord(name, level, __file__, 1, msg, args, None)


@pytest.fixture
def restoreRootLogging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


# ----------------------------
# Context
# ----------------------------

def test_logContext_isScoped():
    assert getLogContext() in (None, {})
    with logContext(operation="install", packageId="com.x"):
        assert getLogContext() == {"operation": "install", "packageId": "com.x"}
        with logContext(packageId="com.y", ignored=None):
            assert getLogContext() == {"operation": "install", "packageId": "com.y"}
        assert getLogContext()["packageId"] == "com.x"
    assert not getLogContext()


# ----------------------------
# Formatters
# ----------------------------

def test_devFormatter_appendsContext():
    record = make_record("Stashed %s", "com.x")
    assert DevFormatter().format(record) == "WARNING: [modkeeper.test] Stashed com.x"
    with logContext(operation="switch", packageId="com.x"):
        assert DevFormatter().format(record).endswith(" [switch/com.x]")


def test_jsonFormatter_oneLineWithContext():
    with logContext(operation="install"):
        line = JsonFormatter().format(make_record("Installed %s", Path("Mod.dll")))
    data = json.loads(line)
    assert "\n" not in line
    assert data["level"] == "warning"
    assert data["msg"] == "Installed Mod.dll"
    assert data["ctx"] == {"operation": "install"}


# ----------------------------
# Recurring suppression
# ----------------------------

def test_recurringSuppressFilter_dropsBurstsInsideWindow():
    clock = FakeClock()
    flt = RecurringSuppressFilter(windowSeconds=10, maxPerWindow=2, clock=clock)
    record = make_record("Could not disable '%s'", "A.dll")

    assert [flt.filter(record) for _ in range(4)] == [True, True, False, False]
    assert flt.suppressedCount(record) == 2
    # Different message is its own key
    assert flt.filter(make_record("Could not disable '%s'", "B.dll"))


def test_recurringSuppressFilter_summaryAfterWindow(caplog: pytest.LogCaptureFixture):
    clock = FakeClock()
    flt = RecurringSuppressFilter(windowSeconds=10, maxPerWindow=1, clock=clock)
    record = make_record("locked", name="modkeeper.burst")
    assert flt.filter(record)
    assert not flt.filter(record)

    clock.now += 11
    with caplog.at_level(logging.INFO, logger="modkeeper.burst"):
        assert flt.filter(record)
    assert "Suppressed 1 repeated logs: locked" in caplog.text
    assert flt.suppressedCount(record) == 0


# ----------------------------
# configureLogging
# ----------------------------

def test_configureLogging_consoleOnly(restoreRootLogging):
    handlers = configureLogging(LoggingSettings(level="warning", suppressRecurring=False))
    assert len(handlers) == 1
    assert isinstance(handlers[0].formatter, DevFormatter)
    assert logging.getLogger().level == logging.WARNING
    assert logging.getLogger("py7zr").propagate is False


def test_configureLogging_rotatingJsonFile(tmp_path: Path, restoreRootLogging):
    logFile = tmp_path / "logs" / "modkeeper.jsonl"
    handlers = configureLogging(LoggingSettings(file=str(logFile), maxBytes=1024, backupCount=2), verbose=True)

    fileHandler = handlers[1]
    assert isinstance(fileHandler, logging.handlers.RotatingFileHandler)
    assert isinstance(fileHandler.formatter, JsonFormatter)
    assert any(isinstance(f, RecurringSuppressFilter) for f in fileHandler.filters)

    logging.getLogger("modkeeper.test").debug("hello %s", "file")
    fileHandler.flush()
    lines = logFile.read_text(encoding="utf-8").splitlines()
    assert json.loads(lines[-1])["msg"] == "hello file"
