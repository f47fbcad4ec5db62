# modkeeper/catalog/index.py
from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from modkeeper.app.paths import HostLayout
from modkeeper.core.jsonutils import readJson5File, writeJson5Atomic
from modkeeper.mods.listing import iterPackageFolders, iterTopLevelModules
from modkeeper.mods.types import PackageIdentity
from modkeeper.scanner.identity import IdentityScanner
from modkeeper.versions.lenient import ZERO_VERSION, normalizeVersion

logger = logging.getLogger(__name__)

__all__ = ["LEGACY_FIELDS", "CatalogEntry", "PackageCatalog"]

# Fields of older catalog shapes; their presence forces a rebuild.
LEGACY_FIELDS = frozenset({"confidence", "primaryDll", "sha256"})



class CatalogEntry(BaseModel):
    """Last known name and version of one package."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    stableId: str = Field(min_length=1)
    name: str
    version: str = ZERO_VERSION

    @classmethod
    def fromIdentity(cls, identity: PackageIdentity) -> "CatalogEntry":
        return cls(
            stableId=identity.stableId,
            name=identity.displayName or identity.stableId,
            version=normalizeVersion(identity.version),
        )



def _hasLegacyFields(data: Any) -> bool:
    if isinstance(data, Mapping):
        if any(key in LEGACY_FIELDS for key in data):
            return True
        return any(_hasLegacyFields(value) for value in data.values())
    if isinstance(data, list):
        return any(_hasLegacyFields(value) for value in data)
    return False



class PackageCatalog:
    """
    Persisted stableId -> {name, version} cache.

    The plugin directory is the source of truth; the catalog only saves a
    rescan. Anything unexpected in the file (missing, empty, unparsable,
    older shape) is answered with a full rebuild from disk.
    """

    def __init__(self, layout: HostLayout, scanner: IdentityScanner) -> None:
        self.layout = layout
        self.scanner = scanner

    @property
    def path(self) -> Path:
        return self.layout.catalogPath

    # ----- Reading -----

    def _parse(self) -> dict[str, CatalogEntry] | None:
        """Entries from disk, or None when the file needs a rebuild."""
        path = self.path
        if not path.is_file():
            return None
        try:
            if not path.read_text(encoding="utf-8").strip():
                return None
            raw = readJson5File(path)
        except (OSError, ValueError) as err:
            logger.warning("Catalog '%s' is unreadable: %s", path, err)
            return None

        if not isinstance(raw, Mapping) or _hasLegacyFields(raw):
            logger.info("Catalog '%s' has an outdated shape", path)
            return None

        entries: dict[str, CatalogEntry] = {}
        try:
            for key, value in raw.items():
                if not isinstance(value, Mapping):
                    return None
                entry = CatalogEntry.model_validate({"stableId": key, **value})
                entries[entry.stableId] = entry
        except ValidationError as err:
            logger.info("Catalog '%s' failed validation: %s", path, err.error_count())
            return None
        return entries

    def load(self) -> dict[str, CatalogEntry]:
        """Entries keyed by stableId; an unusable file is rebuilt first."""
        return self.ensureValid()

    def findEntry(self, stableId: str) -> CatalogEntry | None:
        key = stableId.casefold()
        for entryId, entry in self.load().items():
            if entryId.casefold() == key:
                return entry
        return None

    # ----- Writing -----

    def _save(self, entries: Mapping[str, CatalogEntry]) -> None:
        data = {
            stableId: entry.model_dump(exclude={"stableId"})
            for stableId, entry in sorted(entries.items(), key=lambda item: item[0].casefold())
        }
        writeJson5Atomic(self.path, data)

    def upsert(self, identity: PackageIdentity) -> CatalogEntry:
        entries = dict(self.load())
        # Keep one entry per id regardless of letter case
        for existing in [key for key in entries if key.casefold() == identity.key]:
            del entries[existing]
        entry = CatalogEntry.fromIdentity(identity)
        entries[entry.stableId] = entry
        self._save(entries)
        logger.debug("Catalog upsert %s %s", entry.stableId, entry.version)
        return entry

    def rebuildFromDisk(self) -> dict[str, CatalogEntry]:
        """Rescan every folder package and every top-level module."""
        fresh: dict[str, CatalogEntry] = {}
        identities: list[PackageIdentity | None] = []
        for folder in iterPackageFolders(self.layout):
            identities.append(self.scanner.scanFolder(folder))
        for module in iterTopLevelModules(self.layout):
            identities.append(self.scanner.scanModule(module))

        for identity in identities:
            if identity is None:
                continue
            entry = CatalogEntry.fromIdentity(identity)
            fresh[entry.stableId] = entry

        self._save(fresh)
        logger.info("Catalog rebuilt with %d package(s)", len(fresh))
        return fresh

    def ensureValid(self) -> dict[str, CatalogEntry]:
        entries = self._parse()
        if entries is None:
            return self.rebuildFromDisk()
        return entries
