# modkeeper/core/errors.py
from __future__ import annotations

from pathlib import Path

__all__ = [
    "ModKeeperError",
    "NotConfiguredError",
    "PackageNotFoundError",
    "UnsupportedFormatError",
    "StoreInvariantError",
]



class ModKeeperError(Exception):
    """Base class for failures reported to the caller of a mod operation."""
    pass



class NotConfiguredError(ModKeeperError):
    """No usable host directory is set (or the plugin host is not ready yet)."""
    pass



class PackageNotFoundError(ModKeeperError):
    """A source payload, stored version or the plugin directory is missing."""
    def __init__(self, message: str, *, path: Path | str | None = None) -> None:
        super().__init__(message)
        self.path = Path(path) if path is not None else None



class UnsupportedFormatError(ModKeeperError):
    """The dropped input is neither a module, a folder nor a known archive type."""
    def __init__(self, message: str, *, path: Path | str | None = None) -> None:
        super().__init__(message)
        self.path = Path(path) if path is not None else None



class StoreInvariantError(ModKeeperError):
    """
    The plugin directory or the version store is in a shape we refuse to touch
    (e.g. a restore target is occupied by something that is not the active payload).
    """
    pass
