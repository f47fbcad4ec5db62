import sys
from collections.abc import Sequence
from pathlib import Path

import pytest

from modkeeper.app.paths import HostLayout
from modkeeper.app.prompts import Choice, PromptContext, PromptKind, VersionPickResult
from modkeeper.install.orchestrator import ModOrchestrator
from modkeeper.scanner.identity import IdentityScanner



def pytest_configure(config: pytest.Config) -> None:
    if sys.flags.optimize:
        raise RuntimeError("Assertions are disabled (optimize > 0)")



# ----------------------------------------------
#        Fake modules understood by FakeScanner
# ----------------------------------------------

IDENT_PREFIX = "IDENT:"


def write_module(path: Path, stableId: str, name: str = "", version: str = "1.0.0", *, extra: str = "") -> Path:
    """A fake plugin module: 'IDENT:<id>|<name>|<version>' plus optional filler."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"{IDENT_PREFIX}{stableId}|{name}|{version}\n{extra}", encoding="utf-8")
    return path


def write_dependency(path: Path, content: str = "dependency") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


class FakeScanner(IdentityScanner):
    """Reads identities from fake module text instead of CLI metadata."""

    def readArguments(self, path: Path) -> Sequence[str | None] | None:
        text = path.read_text(encoding="utf-8", errors="replace")
        first = text.splitlines()[0] if text else ""
        if not first.startswith(IDENT_PREFIX):
            return None
        return tuple(first[len(IDENT_PREFIX):].split("|"))



# ----------------------------------------------
#        Prompt and status doubles
# ----------------------------------------------

class ScriptedPrompts:
    """
    Answers prompts from a per-kind script (lists are consumed in order) and
    records every question.
    """

    def __init__(self, answers: dict[PromptKind, Choice | list[Choice]] | None = None, pick: VersionPickResult | None = None) -> None:
        self.answers = dict(answers or {})
        self.pick = pick
        self.asked: list[tuple[PromptKind, PromptContext]] = []
        self.picks: list[tuple[str, str, tuple[str, ...]]] = []

    def askChoice(self, kind: PromptKind, context: PromptContext) -> Choice:
        self.asked.append((kind, context))
        answer = self.answers.get(kind, Choice.CANCEL)
        if isinstance(answer, list):
            return answer.pop(0) if answer else Choice.CANCEL
        return answer

    def pickVersions(self, displayName: str, activeVersion: str, storedVersions: Sequence[str]) -> VersionPickResult | None:
        self.picks.append((displayName, activeVersion, tuple(storedVersions)))
        return self.pick

    def kinds(self) -> list[PromptKind]:
        return [kind for kind, _context in self.asked]


class RecordingStatus:
    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []

    def info(self, message: str) -> None:
        self.messages.append(("info", message))

    def warn(self, message: str) -> None:
        self.messages.append(("warn", message))

    def error(self, message: str) -> None:
        self.messages.append(("error", message))

    def of(self, level: str) -> list[str]:
        return [message for lvl, message in self.messages if lvl == level]



# ----------------------------------------------
#        Fixtures
# ----------------------------------------------

@pytest.fixture
def layout(tmp_path: Path) -> HostLayout:
    host = tmp_path / "host"
    hostLayout = HostLayout(hostRoot=host)
    hostLayout.pluginsDir.mkdir(parents=True)
    return hostLayout


@pytest.fixture
def plugins(layout: HostLayout) -> Path:
    return layout.pluginsDir


@pytest.fixture
def scanner(layout: HostLayout) -> FakeScanner:
    return FakeScanner(naming=layout.naming)


@pytest.fixture
def prompts() -> ScriptedPrompts:
    return ScriptedPrompts()


@pytest.fixture
def status() -> RecordingStatus:
    return RecordingStatus()


@pytest.fixture
def orchestrator(layout: HostLayout, prompts: ScriptedPrompts, status: RecordingStatus, scanner: FakeScanner) -> ModOrchestrator:
    return ModOrchestrator(layout, prompts, status, scanner)


@pytest.fixture
def incoming(tmp_path: Path) -> Path:
    """Drop zone for payloads that are about to be installed."""
    path = tmp_path / "incoming"
    path.mkdir()
    return path
