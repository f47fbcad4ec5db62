# modkeeper/mods/types.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

__all__ = ["PackageIdentity", "PackageKind", "InstalledPackage"]



@dataclass(frozen=True, slots=True)
class PackageIdentity:
    """
    Identity declared by a compiled module.
    Only ever produced by the scanner; a module without one is a dependency.
    """
    stableId: str               # Package-unique id, e.g. "com.example.coolmod"
    displayName: str            # Human-friendly name, falls back to stableId
    version: str                # Free-form, blank/placeholder normalized to "0.0.0"
    modulePath: Path | None = None  # Module the identity was read from

    @property
    def key(self) -> str:
        """Case-insensitive lookup key for the stable id."""
        return self.stableId.casefold()



class PackageKind(str, Enum):
    FOLDER = "folder"
    SINGLE_FILE = "singleFile"



@dataclass(frozen=True, slots=True)
class InstalledPackage:
    """
    One active payload in the plugin directory.
    `enabled` is derived from the on-disk names when the record is built.
    """
    identity: PackageIdentity
    kind: PackageKind
    locationName: str           # Folder name, or "<name>.dll" for single files
    activePath: Path            # Folder path, or the module path (plain or disabled)
    enabled: bool

    @property
    def stableId(self) -> str:
        return self.identity.stableId

    @property
    def displayName(self) -> str:
        return self.identity.displayName

    @property
    def version(self) -> str:
        return self.identity.version

    @property
    def isFolder(self) -> bool:
        return self.kind is PackageKind.FOLDER

    @property
    def statusSuffix(self) -> str:
        return "" if self.enabled else " (disabled)"
