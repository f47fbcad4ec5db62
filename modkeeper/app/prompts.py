# modkeeper/app/prompts.py
from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

__all__ = [
    "Choice",
    "PromptKind",
    "PromptContext",
    "PromptSink",
    "VersionPickResult",
    "VersionPicker",
    "StatusSink",
    "LoggingStatusSink",
    "AutoPrompts",
]



class Choice(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    DESTRUCTIVE = "destructive"
    CANCEL = "cancel"



class PromptKind(str, Enum):
    """
    Decision points. Button meaning per kind:
        DOWNGRADE         PRIMARY=overwrite   SECONDARY=keep both
        UNINSTALL_SINGLE  PRIMARY=uninstall
        UNINSTALL_MULTI   PRIMARY=remove all  SECONDARY=pick versions
        OVERWRITE_FILE    PRIMARY=overwrite
    DESTRUCTIVE is accepted wherever "remove" is the primary action.
    """
    DOWNGRADE = "downgrade"
    UNINSTALL_SINGLE = "uninstallSingle"
    UNINSTALL_MULTI = "uninstallMulti"
    OVERWRITE_FILE = "overwriteFile"



@dataclass(frozen=True)
class PromptContext:
    """What a prompt shows; fields not relevant to a kind stay empty."""
    displayName: str
    installedVersion: str | None = None
    incomingVersion: str | None = None
    storedVersions: tuple[str, ...] = ()
    targetName: str | None = None           # OVERWRITE_FILE: the occupied name

    @property
    def title(self) -> str:
        return self.displayName or "Package"



@dataclass(frozen=True)
class VersionPickResult:
    """
    removeVersions: stored versions to delete.
    keepVersion: a stored version to make active (never deleted), or None.
    """
    removeVersions: tuple[str, ...] = field(default_factory=tuple)
    keepVersion: str | None = None



# ----------------------------------------------
#          Interfaces (UI side implements)
# ----------------------------------------------

@runtime_checkable
class PromptSink(Protocol):
    def askChoice(self, kind: PromptKind, context: PromptContext) -> Choice: ...



@runtime_checkable
class VersionPicker(Protocol):
    def pickVersions(
        self,
        displayName: str,
        activeVersion: str,
        storedVersions: Sequence[str],
    ) -> VersionPickResult | None:
        """None means the picker was dismissed."""
        ...



@runtime_checkable
class StatusSink(Protocol):
    def info(self, message: str) -> None: ...
    def warn(self, message: str) -> None: ...
    def error(self, message: str) -> None: ...



# ----------------------------------------------
#          Headless implementations
# ----------------------------------------------

class LoggingStatusSink:
    """Status lines go to the `modkeeper.status` logger."""

    def __init__(self, loggerName: str = "modkeeper.status") -> None:
        self._logger = logging.getLogger(loggerName)

    def info(self, message: str) -> None:
        self._logger.info(message)

    def warn(self, message: str) -> None:
        self._logger.warning(message)

    def error(self, message: str) -> None:
        self._logger.error(message)



class AutoPrompts:
    """
    Non-interactive answers (`--yes` on the command line): every prompt gets
    the same choice, the picker keeps nothing and removes nothing.
    """

    def __init__(self, choice: Choice = Choice.PRIMARY) -> None:
        self.choice = choice

    def askChoice(self, kind: PromptKind, context: PromptContext) -> Choice:
        logger.debug("Auto-answering %s for '%s' with %s", kind.value, context.title, self.choice.value)
        return self.choice

    def pickVersions(self, displayName: str, activeVersion: str, storedVersions: Sequence[str]) -> VersionPickResult | None:
        return None
