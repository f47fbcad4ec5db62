# modkeeper/store/version_store.py
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from modkeeper.core.errors import PackageNotFoundError, StoreInvariantError
from modkeeper.core.fsops import markHidden, movePath, removeTree, sanitizeName
from modkeeper.mods.listing import setModuleEnabled
from modkeeper.mods.naming import ModuleNaming
from modkeeper.mods.types import PackageKind
from modkeeper.versions.lenient import sortVersions, versionsEqual

logger = logging.getLogger(__name__)

__all__ = ["StoreEntry", "VersionStore"]



@dataclass(frozen=True, slots=True)
class StoreEntry:
    stableId: str
    version: str            # Entry directory name
    path: Path              # <store>/<id>/<version>
    kind: PackageKind

    def payloads(self) -> list[Path]:
        """Top-level items of the entry, in name order."""
        if not self.path.is_dir():
            return []
        return sorted(self.path.iterdir(), key=lambda p: p.name.casefold())



class VersionStore:
    """
    Hidden per-package directory of version-tagged payloads:

        <plugins>/.versions/<sanitizedStableId>/<sanitizedVersion>/<payload...>

    Each entry mirrors the active layout (one folder, or module files) with
    every module forced to the disabled form. Holds no state besides the
    paths it was built with.
    """

    def __init__(self, pluginsDir: Path, *, storeDirName: str = ".versions", naming: ModuleNaming | None = None) -> None:
        self.pluginsDir = Path(pluginsDir)
        self.storeDirName = storeDirName
        self.naming = naming or ModuleNaming()

    @property
    def root(self) -> Path:
        return self.pluginsDir / self.storeDirName

    # ----- Path helpers -----

    def packageDir(self, stableId: str) -> Path:
        """Store dir for an id, matching an existing one case-insensitively."""
        name = sanitizeName(stableId)
        if self.root.is_dir():
            for child in self.root.iterdir():
                if child.is_dir() and child.name.casefold() == name.casefold():
                    return child
        return self.root / name

    def _findEntryDir(self, stableId: str, version: str) -> Path | None:
        pkgDir = self.packageDir(stableId)
        if not pkgDir.is_dir():
            return None
        exact = pkgDir / sanitizeName(version)
        if exact.is_dir():
            return exact
        for child in pkgDir.iterdir():
            if child.is_dir() and versionsEqual(child.name, version):
                return child
        return None

    def _entryKind(self, entryDir: Path) -> PackageKind:
        children = list(entryDir.iterdir()) if entryDir.is_dir() else []
        if any(child.is_dir() for child in children):
            return PackageKind.FOLDER
        return PackageKind.SINGLE_FILE

    def _disableAll(self, entryDir: Path) -> None:
        for module in self.naming.iterModules(entryDir):
            if self.naming.isDisabledModule(module):
                continue
            try:
                setModuleEnabled(module, False, self.naming)
            except OSError as err:
                logger.warning("Could not disable stored module '%s': %s", module, err)

    def _pruneEmptyParents(self, pkgDir: Path) -> None:
        for folder in (pkgDir, self.root):
            if folder.is_dir() and not any(folder.iterdir()):
                removeTree(folder)

    # ----- Public API -----

    def stash(self, stableId: str, version: str, payloadPath: Path) -> StoreEntry:
        return self.stashMany(stableId, version, [payloadPath])

    def stashMany(self, stableId: str, version: str, payloadPaths: Iterable[Path]) -> StoreEntry:
        """
        Move payloads into the entry for (stableId, version), replacing an
        existing entry of that version, then disable every module inside.
        """
        payloads = [Path(p) for p in payloadPaths]
        missing = [p for p in payloads if not p.exists()]
        if missing:
            raise PackageNotFoundError(f"Nothing to stash at '{missing[0]}'", path=missing[0])

        entryDir = self._findEntryDir(stableId, version)
        if entryDir is not None:
            logger.info("Replacing stored %s %s", stableId, entryDir.name)
            if not removeTree(entryDir):
                raise StoreInvariantError(f"Stored entry '{entryDir}' cannot be replaced")
        entryDir = self.packageDir(stableId) / sanitizeName(version)
        entryDir.mkdir(parents=True, exist_ok=True)

        for payload in payloads:
            movePath(payload, entryDir / payload.name)
        self._disableAll(entryDir)
        markHidden(self.root)

        logger.info("Stashed %s %s (%d item(s))", stableId, version, len(payloads))
        return StoreEntry(stableId, entryDir.name, entryDir, self._entryKind(entryDir))

    def restore(self, stableId: str, version: str) -> Path:
        """
        Directory of a stored version. The caller moves its children into
        the active location and re-enables them, then prunes the entry.
        """
        entryDir = self._findEntryDir(stableId, version)
        if entryDir is None:
            raise PackageNotFoundError(f"No stored version {version} for '{stableId}'")
        return entryDir

    def entries(self, stableId: str) -> list[StoreEntry]:
        pkgDir = self.packageDir(stableId)
        if not pkgDir.is_dir():
            return []
        versions = sortVersions([
            child.name for child in pkgDir.iterdir()
            if child.is_dir() and ".trash-" not in child.name
        ])
        return [
            StoreEntry(stableId, version, pkgDir / version, self._entryKind(pkgDir / version))
            for version in versions
        ]

    def listAlternates(self, stableId: str, excludingVersion: str | None = None) -> list[str]:
        return [
            entry.version
            for entry in self.entries(stableId)
            if excludingVersion is None or not versionsEqual(entry.version, excludingVersion)
        ]

    def prune(self, stableId: str, version: str) -> bool:
        """Delete one stored version; False when it was not there."""
        entryDir = self._findEntryDir(stableId, version)
        if entryDir is None:
            return False
        removed = removeTree(entryDir)
        self._pruneEmptyParents(entryDir.parent)
        logger.info("Pruned stored %s %s", stableId, entryDir.name)
        return removed

    def pruneRedundant(self, stableId: str, activeVersion: str) -> list[str]:
        """Drop stored copies of the version that is active right now."""
        redundant = [entry.version for entry in self.entries(stableId) if versionsEqual(entry.version, activeVersion)]
        for version in redundant:
            self.prune(stableId, version)
        return redundant

    def removePackage(self, stableId: str) -> bool:
        """Delete every stored version of an id."""
        pkgDir = self.packageDir(stableId)
        if not pkgDir.exists():
            return True
        removed = removeTree(pkgDir)
        self._pruneEmptyParents(pkgDir)
        return removed
