# modkeeper/host/interfaces.py
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Protocol, runtime_checkable

from modkeeper.app.paths import HostLayout

logger = logging.getLogger(__name__)

__all__ = [
    "HOST_ROOT_ENV",
    "HostLocator",
    "EnvironmentHostLocator",
    "RuntimeProvisioner",
    "PluginHostReadiness",
    "UpdateFeed",
]

HOST_ROOT_ENV = "MODKEEPER_HOST"

# ------------------------------------------------------------------ #
# Collaborators living outside the mod engine. Real implementations
# (launcher registry lookup, runtime download, release feed) belong to
# the front end; only thin defaults are shipped here.
# ------------------------------------------------------------------ #

@runtime_checkable
class HostLocator(Protocol):
    def findHostRoot(self) -> Path | None: ...



@runtime_checkable
class RuntimeProvisioner(Protocol):
    def isReady(self, hostRoot: Path) -> bool: ...
    def ensureRuntime(self, hostRoot: Path) -> bool:
        """Install or finish setting up the plugin host; True when ready afterwards."""
        ...



@runtime_checkable
class UpdateFeed(Protocol):
    def latestVersion(self) -> str | None: ...



class EnvironmentHostLocator:
    """Host root from $MODKEEPER_HOST, when it names an existing directory."""

    def __init__(self, envVar: str = HOST_ROOT_ENV) -> None:
        self.envVar = envVar

    def findHostRoot(self) -> Path | None:
        value = os.environ.get(self.envVar, "").strip()
        if not value:
            return None
        root = Path(value).expanduser()
        if not root.is_dir():
            logger.warning("$%s points at a missing directory: '%s'", self.envVar, root)
            return None
        return root



class PluginHostReadiness:
    """
    Read-only readiness check: the plugin host has completed its first-run
    setup once its plugins directory and its own config file exist.
    Never provisions anything.
    """

    def __init__(self, layout: HostLayout, configRelPath: str = "config/BepInEx.cfg") -> None:
        self.layout = layout
        self.configRelPath = configRelPath

    def isReady(self, hostRoot: Path) -> bool:
        pluginHostDir = hostRoot / self.layout.pluginHostRoot
        plugins = pluginHostDir / self.layout.pluginsDirName
        return plugins.is_dir() and (pluginHostDir / self.configRelPath).is_file()

    def ensureRuntime(self, hostRoot: Path) -> bool:
        ready = self.isReady(hostRoot)
        if not ready:
            logger.info("Plugin host in '%s' is not set up yet; run the application once", hostRoot)
        return ready
