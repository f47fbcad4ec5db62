# modkeeper/install/orchestrator.py
from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from modkeeper.app.paths import HostLayout
from modkeeper.app.prompts import (
    Choice,
    LoggingStatusSink,
    PromptContext,
    PromptKind,
    PromptSink,
    StatusSink,
    VersionPicker,
)
from modkeeper.catalog.index import PackageCatalog
from modkeeper.config.settings import ModKeeperSettings
from modkeeper.core.errors import (
    NotConfiguredError,
    PackageNotFoundError,
    StoreInvariantError,
    UnsupportedFormatError,
)
from modkeeper.core.fsops import copyFile, copyTree, movePath, removePath, removeTree
from modkeeper.core.logging import logContext
from modkeeper.host.interfaces import RuntimeProvisioner
from modkeeper.install.archives import extractArchive, isArchive
from modkeeper.layout.content_root import RootKind, planPlacement, resolveContentRoot
from modkeeper.mods.listing import (
    findInstalled,
    listInstalled,
    setFolderEnabled,
    setModuleEnabled,
    setPackageEnabled,
)
from modkeeper.mods.types import InstalledPackage, PackageIdentity
from modkeeper.scanner.identity import IdentityScanner
from modkeeper.store.version_store import VersionStore
from modkeeper.versions.lenient import compareVersions, versionsEqual

logger = logging.getLogger(__name__)

__all__ = ["SourceKind", "InstallStatus", "InstallOutcome", "ModOrchestrator"]



class SourceKind(str, Enum):
    FOLDER = "folder"
    MODULE = "module"
    ARCHIVE = "archive"



class InstallStatus(str, Enum):
    INSTALLED = "installed"
    KEPT_BOTH = "keptBoth"          # Incoming went to the store, active untouched
    CANCELLED = "cancelled"



@dataclass(frozen=True)
class InstallOutcome:
    status: InstallStatus
    incoming: PackageIdentity | None = None     # Identity from the preflight peek
    package: InstalledPackage | None = None     # Active package afterwards
    stashedVersion: str | None = None           # Version moved into the store
    placed: tuple[Path, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.status is not InstallStatus.CANCELLED



@dataclass
class _StagedPayload:
    """Top-level items prepared in scratch; each goes to plugins/<item.name>."""
    items: list[Path] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    rootKind: RootKind | None = None



class ModOrchestrator:
    """
    Install, enable/disable, uninstall and version switching for one host.

    Synchronous and not re-entrant: callers serialize operations. Typed
    errors (NotConfiguredError, PackageNotFoundError, UnsupportedFormatError)
    are raised before anything on disk changes. Decisions go through the
    injected PromptSink / VersionPicker, progress through the StatusSink.
    """

    def __init__(
        self,
        layout: HostLayout,
        prompts: PromptSink,
        status: StatusSink | None = None,
        scanner: IdentityScanner | None = None,
        *,
        picker: VersionPicker | None = None,
        runtime: RuntimeProvisioner | None = None,
    ) -> None:
        self.layout = layout
        self.prompts = prompts
        self.status = status or LoggingStatusSink()
        self.scanner = scanner or IdentityScanner(naming=layout.naming, archiveExtensions=layout.archiveExtensions)
        self.picker = picker if picker is not None else (prompts if isinstance(prompts, VersionPicker) else None)
        self.runtime = runtime
        self.naming = layout.naming
        self.catalog = PackageCatalog(layout, self.scanner)

    @classmethod
    def fromSettings(
        cls,
        settings: ModKeeperSettings,
        prompts: PromptSink,
        status: StatusSink | None = None,
        scanner: IdentityScanner | None = None,
        **kwargs,
    ) -> "ModOrchestrator":
        layout = HostLayout.fromSettings(settings)
        scanner = scanner or IdentityScanner(
            naming=layout.naming,
            attributeNames=settings.identityAttributeNames,
            archiveExtensions=layout.archiveExtensions,
        )
        return cls(layout, prompts, status, scanner, **kwargs)

    @property
    def store(self) -> VersionStore:
        return VersionStore(self.layout.pluginsDir, storeDirName=self.layout.storeDirName, naming=self.naming)

    # ------------------------------------------------------------------ #
    # Listing
    # ------------------------------------------------------------------ #

    def listInstalled(self) -> list[InstalledPackage]:
        self.layout.requirePluginsDir()
        return listInstalled(self.layout, self.scanner)

    def findInstalled(self, stableId: str) -> InstalledPackage | None:
        return findInstalled(self.listInstalled(), stableId)

    def refresh(self) -> list[InstalledPackage]:
        """Heal the catalog if needed, then list."""
        self.layout.requirePluginsDir()
        self.catalog.ensureValid()
        return self.listInstalled()

    # ------------------------------------------------------------------ #
    # Install
    # ------------------------------------------------------------------ #

    def _requireReady(self) -> Path:
        plugins = self.layout.requirePluginsDir()
        if self.runtime is not None:
            hostRoot = self.layout.requireHostRoot()
            if not self.runtime.isReady(hostRoot):
                raise NotConfiguredError(f"Plugin host in '{hostRoot}' is not set up yet")
        return plugins

    def classifySource(self, source: Path) -> SourceKind:
        if not source.exists():
            raise PackageNotFoundError(f"Source not found: '{source}'", path=source)
        if source.is_dir():
            return SourceKind.FOLDER
        if self.naming.isModule(source):
            return SourceKind.MODULE
        if isArchive(source, self.layout.archiveExtensions):
            return SourceKind.ARCHIVE
        raise UnsupportedFormatError(f"Unsupported file type for install: '{source.name}'", path=source)

    def peek(self, source: Path, kind: SourceKind) -> PackageIdentity | None:
        if kind is SourceKind.FOLDER:
            return self.scanner.scanFolder(source)
        if kind is SourceKind.MODULE:
            return self.scanner.scanModule(source)
        return self.scanner.scanArchive(source)

    def install(self, sourcePath: Path | str) -> InstallOutcome:
        source = Path(sourcePath)
        plugins = self._requireReady()
        kind = self.classifySource(source)
        incoming = self.peek(source, kind)

        with logContext(operation="install", packageId=incoming.stableId if incoming else source.name):
            logger.info("Installing '%s' (%s)", source.name, kind.value)
            installed = findInstalled(self.listInstalled(), incoming.stableId) if incoming else None

            stashInstalled = False
            if incoming is not None and installed is not None:
                order = compareVersions(incoming.version, installed.version)
                if order < 0:
                    choice = self.prompts.askChoice(PromptKind.DOWNGRADE, PromptContext(
                        displayName=installed.displayName,
                        installedVersion=installed.version,
                        incomingVersion=incoming.version,
                    ))
                    if choice is Choice.SECONDARY:
                        return self._keepBoth(source, kind, incoming, installed)
                    if choice is not Choice.PRIMARY:
                        self.status.info(f"Install of {incoming.displayName} {incoming.version} cancelled")
                        return InstallOutcome(InstallStatus.CANCELLED, incoming=incoming, package=installed)
                    stashInstalled = True
                elif order > 0:
                    stashInstalled = True

            scratch = Path(tempfile.mkdtemp(prefix="modkeeper-install-"))
            try:
                staged = self._stage(source, kind, scratch)
                if not self._confirmOverwrites(staged, plugins, installed):
                    self.status.info(f"Install of '{source.name}' cancelled")
                    return InstallOutcome(InstallStatus.CANCELLED, incoming=incoming, package=installed)

                stashedVersion = None
                if installed is not None and stashInstalled:
                    self.store.stash(installed.stableId, installed.version, installed.activePath)
                    stashedVersion = installed.version
                elif installed is not None:
                    self._retireUnlessReplaced(installed, staged, plugins)

                placed = self._place(staged, plugins)
            finally:
                removeTree(scratch)

            return self._confirmInstall(source, incoming, placed, staged, stashedVersion)

    def _keepBoth(
        self,
        source: Path,
        kind: SourceKind,
        incoming: PackageIdentity,
        installed: InstalledPackage,
    ) -> InstallOutcome:
        """Store the incoming payload as an alternate; the active one stays."""
        scratch = Path(tempfile.mkdtemp(prefix="modkeeper-keep-"))
        try:
            staged = self._stage(source, kind, scratch)
            entry = self.store.stashMany(incoming.stableId, incoming.version, staged.items)
        finally:
            removeTree(scratch)
        self.status.info(
            f"Kept {incoming.displayName} {incoming.version} as a stored version; "
            f"{installed.version} stays active"
        )
        return InstallOutcome(
            InstallStatus.KEPT_BOTH,
            incoming=incoming,
            package=installed,
            stashedVersion=entry.version,
            warnings=tuple(staged.warnings),
        )

    def _stage(self, source: Path, kind: SourceKind, scratch: Path) -> _StagedPayload:
        """
        Copy (or extract) the incoming payload into scratch, shaped exactly
        as it will land in plugins/.
        """
        staged = _StagedPayload()
        outDir = scratch / "payload"
        outDir.mkdir(parents=True)

        if kind is SourceKind.FOLDER:
            staged.items.append(copyTree(source, outDir / source.name))
            return staged
        if kind is SourceKind.MODULE:
            staged.items.append(copyFile(source, outDir / source.name))
            return staged

        extractRoot = scratch / "extract"
        extractArchive(source, extractRoot, extensions=self.layout.archiveExtensions)
        resolution = resolveContentRoot(extractRoot, self.naming)
        staged.rootKind = resolution.kind
        if resolution.warning:
            staged.warnings.append(resolution.warning)

        placement = planPlacement(resolution.contentRoot, source.stem, extractionRoot=extractRoot, naming=self.naming)
        if placement.flat:
            for child in sorted(placement.source.iterdir(), key=lambda p: p.name.casefold()):
                staged.items.append(movePath(child, outDir / child.name))
        else:
            staged.items.append(movePath(placement.source, outDir / (placement.folderName or source.stem)))
        return staged

    def _occupants(self, dest: Path) -> list[Path]:
        """What currently sits at a destination: the path and, for modules, its other marker form."""
        candidates = [dest]
        if self.naming.isModule(dest):
            candidates = [self.naming.enabledPath(dest), self.naming.disabledPath(dest)]
        return [path for path in candidates if path.exists()]

    def _ownedBy(self, path: Path, installed: InstalledPackage | None) -> bool:
        if installed is None:
            return False
        active = installed.activePath
        if installed.isFolder:
            return path == active
        return path in (self.naming.enabledPath(active), self.naming.disabledPath(active))

    def _confirmOverwrites(self, staged: _StagedPayload, plugins: Path, installed: InstalledPackage | None) -> bool:
        """Ask before replacing anything that is not the package being replaced."""
        for item in staged.items:
            for occupant in self._occupants(plugins / item.name):
                if self._ownedBy(occupant, installed):
                    continue
                choice = self.prompts.askChoice(PromptKind.OVERWRITE_FILE, PromptContext(
                    displayName=installed.displayName if installed else item.name,
                    targetName=occupant.name,
                ))
                if choice not in (Choice.PRIMARY, Choice.DESTRUCTIVE):
                    return False
        return True

    def _retireUnlessReplaced(self, installed: InstalledPackage, staged: _StagedPayload, plugins: Path) -> None:
        """
        Same-version overwrite landing under a different name: drop the old
        payload so only one copy stays active.
        """
        targets = {plugins / item.name for item in staged.items}
        for item in list(targets):
            if self.naming.isModule(item):
                targets.update((self.naming.enabledPath(item), self.naming.disabledPath(item)))
        if installed.activePath in targets:
            return
        logger.info("Replacing %s at '%s'", installed.stableId, installed.locationName)
        self._removeActive(installed)

    def _place(self, staged: _StagedPayload, plugins: Path) -> list[Path]:
        placed: list[Path] = []
        for item in staged.items:
            dest = plugins / item.name
            for occupant in self._occupants(dest):
                removePath(occupant)
            placed.append(movePath(item, dest))
        return placed

    def _confirmInstall(
        self,
        source: Path,
        incoming: PackageIdentity | None,
        placed: list[Path],
        staged: _StagedPayload,
        stashedVersion: str | None,
    ) -> InstallOutcome:
        package = findInstalled(self.listInstalled(), incoming.stableId) if incoming else None
        if package is None:
            package = self._packageFromPlaced(placed)

        if package is not None:
            self.catalog.upsert(package.identity)
            self.store.pruneRedundant(package.stableId, package.version)
            self.status.info(f"Installed {package.displayName} {package.version}")
        else:
            self.status.warn(f"Installed '{source.name}' but found no plugin identity in it")

        for warning in staged.warnings:
            if staged.rootKind is RootKind.NO_MODULE:
                self.status.warn(warning)
            else:
                self.status.info(warning)
        if stashedVersion is not None and package is not None:
            self.status.info(f"Stored previous version {stashedVersion} of {package.displayName}")

        return InstallOutcome(
            InstallStatus.INSTALLED,
            incoming=incoming,
            package=package,
            stashedVersion=stashedVersion,
            placed=tuple(placed),
            warnings=tuple(staged.warnings),
        )

    def _packageFromPlaced(self, placed: list[Path]) -> InstalledPackage | None:
        installed = self.listInstalled()
        for path in placed:
            for package in installed:
                if package.activePath == path:
                    return package
        return None

    # ------------------------------------------------------------------ #
    # Enable / disable
    # ------------------------------------------------------------------ #

    def setEnabled(self, package: InstalledPackage, enabled: bool) -> InstalledPackage:
        with logContext(operation="enable" if enabled else "disable", packageId=package.stableId):
            updated = setPackageEnabled(package, enabled, self.naming)
            state = "Enabled" if updated.enabled else "Disabled"
            self.status.info(f"{state} {package.displayName}")
            return updated

    def enable(self, package: InstalledPackage) -> InstalledPackage:
        return self.setEnabled(package, True)

    def disable(self, package: InstalledPackage) -> InstalledPackage:
        return self.setEnabled(package, False)

    def toggle(self, package: InstalledPackage) -> InstalledPackage:
        return self.setEnabled(package, not package.enabled)

    # ------------------------------------------------------------------ #
    # Uninstall
    # ------------------------------------------------------------------ #

    def _removeActive(self, package: InstalledPackage) -> None:
        if package.isFolder:
            removeTree(package.activePath)
            return
        for path in (self.naming.enabledPath(package.activePath), self.naming.disabledPath(package.activePath)):
            try:
                removePath(path)
            except OSError as err:
                logger.warning("Could not delete '%s': %s", path, err)

    def _removeEverything(self, package: InstalledPackage) -> None:
        self._removeActive(package)
        self.store.removePackage(package.stableId)
        self.catalog.rebuildFromDisk()
        self.status.info(f"Uninstalled {package.displayName}")

    def uninstall(self, package: InstalledPackage) -> bool:
        """
        True when something was removed or switched; False when the user
        backed out.
        """
        self.layout.requirePluginsDir()
        with logContext(operation="uninstall", packageId=package.stableId):
            alternates = self.store.listAlternates(package.stableId, excludingVersion=package.version)

            if not alternates:
                choice = self.prompts.askChoice(PromptKind.UNINSTALL_SINGLE, PromptContext(
                    displayName=package.displayName,
                    installedVersion=package.version,
                ))
                if choice not in (Choice.PRIMARY, Choice.DESTRUCTIVE):
                    return False
                self._removeEverything(package)
                return True

            choice = self.prompts.askChoice(PromptKind.UNINSTALL_MULTI, PromptContext(
                displayName=package.displayName,
                installedVersion=package.version,
                storedVersions=tuple(alternates),
            ))
            if choice in (Choice.PRIMARY, Choice.DESTRUCTIVE):
                self._removeEverything(package)
                return True
            if choice is not Choice.SECONDARY or self.picker is None:
                return False

            pick = self.picker.pickVersions(package.displayName, package.version, alternates)
            if pick is None:
                return False
            return self._applyPick(package, alternates, pick.removeVersions, pick.keepVersion)

    def _applyPick(
        self,
        package: InstalledPackage,
        alternates: list[str],
        removeVersions: tuple[str, ...],
        keepVersion: str | None,
    ) -> bool:
        if keepVersion is not None and not any(versionsEqual(keepVersion, v) for v in alternates):
            raise PackageNotFoundError(f"No stored version {keepVersion} for '{package.stableId}'")

        # The kept version is never deleted
        toRemove = [
            version for version in removeVersions
            if keepVersion is None or not versionsEqual(version, keepVersion)
        ]

        changed = False
        active = package
        if keepVersion is not None and not versionsEqual(keepVersion, package.version):
            active = self.switchVersion(package, keepVersion)
            changed = True

        for version in toRemove:
            if self.store.prune(package.stableId, version):
                self.status.info(f"Removed stored {package.displayName} {version}")
                changed = True

        self.store.pruneRedundant(active.stableId, active.version)
        return changed

    # ------------------------------------------------------------------ #
    # Switch version
    # ------------------------------------------------------------------ #

    def switchVersion(self, package: InstalledPackage, version: str) -> InstalledPackage:
        """
        Stash the active payload and bring a stored version into its place,
        with every module re-enabled.
        """
        if versionsEqual(version, package.version):
            return package
        plugins = self.layout.requirePluginsDir()
        store = self.store

        with logContext(operation="switch", packageId=package.stableId):
            entryDir = store.restore(package.stableId, version)
            payloads = sorted(entryDir.iterdir(), key=lambda p: p.name.casefold())

            # Refuse before touching anything if a restore target is taken
            for payload in payloads:
                dest = plugins / payload.name
                for occupant in self._occupants(dest):
                    if not self._ownedBy(occupant, package):
                        raise StoreInvariantError(
                            f"Cannot restore {package.stableId} {version}: '{occupant.name}' is in the way"
                        )

            store.stash(package.stableId, package.version, package.activePath)

            placed: list[Path] = []
            for payload in payloads:
                dest = movePath(payload, plugins / payload.name)
                if dest.is_dir():
                    setFolderEnabled(dest, True, self.naming)
                elif self.naming.isModule(dest):
                    try:
                        dest = setModuleEnabled(dest, True, self.naming)
                    except OSError as err:
                        logger.warning("Could not enable '%s': %s", dest, err)
                placed.append(dest)
            store.prune(package.stableId, entryDir.name)

            switched = findInstalled(self.listInstalled(), package.stableId) or self._packageFromPlaced(placed)
            if switched is None:
                raise StoreInvariantError(f"Restored {package.stableId} {version} has no plugin identity")

            self.catalog.upsert(switched.identity)
            store.pruneRedundant(switched.stableId, switched.version)
            self.status.info(f"Switched {switched.displayName} from {package.version} to {switched.version}")
            return switched
