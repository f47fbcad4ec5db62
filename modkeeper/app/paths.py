# modkeeper/app/paths.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from modkeeper.config.settings import ModKeeperSettings
from modkeeper.core.errors import NotConfiguredError, PackageNotFoundError
from modkeeper.mods.naming import ModuleNaming

logger = logging.getLogger(__name__)

__all__ = ["HostLayout"]



@dataclass(frozen=True)
class HostLayout:
    """
    On-disk layout of one target application:

        <hostRoot>/<pluginHostRoot>/<pluginsDirName>/             active payloads
        <hostRoot>/<pluginHostRoot>/<pluginsDirName>/<storeDir>/  version store
        <hostRoot>/<pluginHostRoot>/<toolDirName>/<catalog>       catalog
    """
    hostRoot: Path | None
    pluginHostRoot: str = "BepInEx"
    pluginsDirName: str = "plugins"
    toolDirName: str = "ModKeeper"
    catalogFileName: str = "index.json5"
    storeDirName: str = ".versions"
    naming: ModuleNaming = field(default_factory=ModuleNaming)
    archiveExtensions: tuple[str, ...] = (".zip", ".7z", ".rar")

    @classmethod
    def fromSettings(cls, settings: ModKeeperSettings, *, hostRoot: Path | str | None = None) -> "HostLayout":
        root = hostRoot if hostRoot is not None else settings.hostRoot
        return cls(
            hostRoot=Path(root).expanduser() if root else None,
            pluginHostRoot=settings.pluginHostRoot,
            pluginsDirName=settings.pluginsDirName,
            toolDirName=settings.toolDirName,
            catalogFileName=settings.catalogFileName,
            storeDirName=settings.storeDirName,
            naming=ModuleNaming(settings.moduleExtension, settings.disabledSuffix),
            archiveExtensions=tuple(settings.archiveExtensions),
        )

    # ----- Derived paths -----

    def _root(self) -> Path:
        if self.hostRoot is None or not str(self.hostRoot).strip():
            raise NotConfiguredError("No host directory is configured")
        return self.hostRoot

    @property
    def pluginHostDir(self) -> Path:
        return self._root() / self.pluginHostRoot

    @property
    def pluginsDir(self) -> Path:
        return self.pluginHostDir / self.pluginsDirName

    @property
    def storeDir(self) -> Path:
        return self.pluginsDir / self.storeDirName

    @property
    def catalogPath(self) -> Path:
        return self.pluginHostDir / self.toolDirName / self.catalogFileName

    def isStorePath(self, path: Path) -> bool:
        return path.name.casefold() == self.storeDirName.casefold()

    # ----- Validation -----

    def requireHostRoot(self) -> Path:
        root = self._root()
        if not root.is_dir():
            raise NotConfiguredError(f"Host directory does not exist: '{root}'")
        return root

    def requirePluginsDir(self) -> Path:
        """
        Plugins directory of a configured host. The plugin host (BepInEx)
        creates it on first run; its absence means the host is not ready.
        """
        self.requireHostRoot()
        plugins = self.pluginsDir
        if not plugins.is_dir():
            raise PackageNotFoundError(f"Plugins directory not found: '{plugins}'", path=plugins)
        return plugins
