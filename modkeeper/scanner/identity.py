# modkeeper/scanner/identity.py
from __future__ import annotations

import logging
import tempfile
from collections.abc import Iterable, Sequence
from pathlib import Path

from modkeeper.core.fsops import depthFrom, removeTree
from modkeeper.install.archives import DEFAULT_ARCHIVE_EXTENSIONS, extractMatching
from modkeeper.mods.naming import ModuleNaming
from modkeeper.mods.types import PackageIdentity
from modkeeper.scanner.metadata import readIdentityAttribute
from modkeeper.versions.lenient import normalizeVersion

logger = logging.getLogger(__name__)

__all__ = ["DEFAULT_IDENTITY_ATTRIBUTES", "IdentityScanner", "identityFromArguments"]



# BepInEx declares plugins with [BepInPlugin(guid, name, version)].
DEFAULT_IDENTITY_ATTRIBUTES: tuple[str, ...] = ("BepInPlugin", "BepInPluginAttribute")



def identityFromArguments(args: Sequence[str | None] | None, modulePath: Path | None = None) -> PackageIdentity | None:
    """
    Build an identity from the attribute's (id, name, version) arguments.
    Fewer than three arguments or a blank id means "not a package".
    """
    if not args or len(args) < 3:
        return None
    stableId = (args[0] or "").strip()
    if not stableId:
        return None
    displayName = (args[1] or "").strip() or stableId
    return PackageIdentity(
        stableId=stableId,
        displayName=displayName,
        version=normalizeVersion(args[2]),
        modulePath=modulePath,
    )



class IdentityScanner:
    """
    Static reader for package identities.

    Every scan* method returns None instead of raising when a module is
    missing, unreadable, native or simply carries no identity attribute.
    Stateless apart from its configuration; safe to share.
    """

    def __init__(
        self,
        *,
        naming: ModuleNaming | None = None,
        attributeNames: Iterable[str] = DEFAULT_IDENTITY_ATTRIBUTES,
        archiveExtensions: Iterable[str] = DEFAULT_ARCHIVE_EXTENSIONS,
    ) -> None:
        self.naming = naming or ModuleNaming()
        self.attributeNames = tuple(attributeNames)
        self.archiveExtensions = tuple(archiveExtensions)

    # ----- Single module -----

    def readArguments(self, path: Path) -> Sequence[str | None] | None:
        return readIdentityAttribute(path, self.attributeNames)

    def scanModule(self, path: Path | str) -> PackageIdentity | None:
        path = Path(path)
        if not path.is_file():
            return None
        try:
            args = self.readArguments(path)
        except Exception as err:
            # Corrupt, native or not a PE image at all
            logger.debug("Not a managed plugin module '%s': %s", path, err)
            return None
        return identityFromArguments(args, path)

    # ----- Folder -----

    def orderedModules(self, folder: Path) -> list[Path]:
        """Modules under folder (plain and disabled), shallow first, then by path."""
        modules = list(self.naming.iterModules(folder))
        modules.sort(key=lambda path: (depthFrom(folder, path), str(path).casefold()))
        return modules

    def scanFolder(self, path: Path | str) -> PackageIdentity | None:
        folder = Path(path)
        if not folder.is_dir():
            return None
        for module in self.orderedModules(folder):
            identity = self.scanModule(module)
            if identity is not None:
                return identity
        return None

    # ----- Archive peek -----

    def scanArchive(self, path: Path | str) -> PackageIdentity | None:
        """
        Extract only module files to a scratch directory and scan them in
        archive order. The returned identity's modulePath points into the
        (already deleted) scratch dir and is only informative.
        """
        archive = Path(path)
        if not archive.is_file():
            return None
        scratch = Path(tempfile.mkdtemp(prefix="modkeeper-peek-"))
        try:
            try:
                modules = extractMatching(
                    archive,
                    scratch,
                    lambda rel: self.naming.isModule(rel.name),
                    flatten=True,
                    extensions=self.archiveExtensions,
                )
            except Exception as err:
                logger.warning("Could not peek into archive '%s': %s", archive.name, err)
                return None
            for module in modules:
                identity = self.scanModule(module)
                if identity is not None:
                    return identity
            return None
        finally:
            removeTree(scratch)
