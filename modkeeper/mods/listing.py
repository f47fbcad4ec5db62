# modkeeper/mods/listing.py
from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import replace
from pathlib import Path

from modkeeper.app.paths import HostLayout
from modkeeper.mods.naming import ModuleNaming
from modkeeper.mods.types import InstalledPackage, PackageKind
from modkeeper.scanner.identity import IdentityScanner

logger = logging.getLogger(__name__)

__all__ = [
    "iterPackageFolders",
    "iterTopLevelModules",
    "folderEnabled",
    "listInstalled",
    "findInstalled",
    "setModuleEnabled",
    "setFolderEnabled",
    "setPackageEnabled",
]



def _isListable(layout: HostLayout, path: Path) -> bool:
    name = path.name
    if layout.isStorePath(path) or name.startswith("."):
        return False
    # Trees renamed aside by a failed delete
    return ".trash-" not in name



def iterPackageFolders(layout: HostLayout) -> Iterator[Path]:
    """Candidate folder packages directly under plugins/, by name."""
    plugins = layout.pluginsDir
    if not plugins.is_dir():
        return
    dirs = [p for p in plugins.iterdir() if p.is_dir() and _isListable(layout, p)]
    yield from sorted(dirs, key=lambda p: p.name.casefold())



def iterTopLevelModules(layout: HostLayout) -> Iterator[Path]:
    """
    One path per top-level module base name, preferring the enabled form
    when both 'X.dll' and 'X.dll.disabled' exist.
    """
    naming = layout.naming
    chosen: dict[str, Path] = {}
    for path in naming.iterModules(layout.pluginsDir, recursive=False):
        key = naming.baseName(path).casefold()
        current = chosen.get(key)
        if current is None or (naming.isDisabledModule(current) and not naming.isDisabledModule(path)):
            chosen[key] = path
    for key in sorted(chosen):
        yield chosen[key]



def folderEnabled(folder: Path, naming: ModuleNaming) -> bool:
    """A folder counts as enabled when at least one module inside is enabled."""
    return any(not naming.isDisabledModule(path) for path in naming.iterModules(folder))



def listInstalled(layout: HostLayout, scanner: IdentityScanner) -> list[InstalledPackage]:
    """
    Project the plugin directory into package records: identified folders
    first, then identified top-level modules. Dependency-only folders and
    modules without an identity are left out.
    """
    packages: list[InstalledPackage] = []
    naming = layout.naming

    for folder in iterPackageFolders(layout):
        identity = scanner.scanFolder(folder)
        if identity is None:
            logger.debug("Skipping dependency folder '%s'", folder.name)
            continue
        packages.append(InstalledPackage(
            identity=identity,
            kind=PackageKind.FOLDER,
            locationName=folder.name,
            activePath=folder,
            enabled=folderEnabled(folder, naming),
        ))

    for module in iterTopLevelModules(layout):
        identity = scanner.scanModule(module)
        if identity is None:
            continue
        packages.append(InstalledPackage(
            identity=identity,
            kind=PackageKind.SINGLE_FILE,
            locationName=naming.baseName(module),
            activePath=module,
            enabled=not naming.isDisabledModule(module),
        ))

    return packages



def findInstalled(packages: list[InstalledPackage], stableId: str) -> InstalledPackage | None:
    key = stableId.casefold()
    for package in packages:
        if package.identity.key == key:
            return package
    return None



# ----------------------------------------------
#       Disabled marker renames (best effort)
# ----------------------------------------------

def setModuleEnabled(path: Path, enabled: bool, naming: ModuleNaming) -> Path:
    """
    Rename one module to its plain or marker form and return the new path.
    A stale file at the target name is replaced. Raises OSError.
    """
    target = naming.enabledPath(path) if enabled else naming.disabledPath(path)
    if target == path:
        return path
    path.replace(target)
    return target



def setFolderEnabled(folder: Path, enabled: bool, naming: ModuleNaming) -> int:
    """
    Rename every module under folder. A file that cannot be renamed (locked,
    permissions) is logged and skipped. Returns how many files changed.
    """
    changed = 0
    for module in sorted(naming.iterModules(folder)):
        wanted = naming.isDisabledModule(module) == enabled
        if not wanted:
            continue
        try:
            setModuleEnabled(module, enabled, naming)
            changed += 1
        except OSError as err:
            logger.warning("Could not %s '%s': %s", "enable" if enabled else "disable", module, err)
    return changed



def setPackageEnabled(package: InstalledPackage, enabled: bool, naming: ModuleNaming) -> InstalledPackage:
    """Apply the marker to a package and return the refreshed record."""
    if package.isFolder:
        setFolderEnabled(package.activePath, enabled, naming)
        return replace(package, enabled=folderEnabled(package.activePath, naming))

    current = package.activePath
    if not current.exists():
        # Record is stale: pick whichever form is on disk
        for candidate in (naming.enabledPath(current), naming.disabledPath(current)):
            if candidate.exists():
                current = candidate
                break
        else:
            logger.warning("Module '%s' is gone; nothing to toggle", naming.baseName(current))
            return package
    try:
        newPath = setModuleEnabled(current, enabled, naming)
    except OSError as err:
        logger.warning("Could not %s '%s': %s", "enable" if enabled else "disable", current, err)
        return replace(package, activePath=current, enabled=not naming.isDisabledModule(current))
    return replace(package, activePath=newPath, enabled=enabled)
