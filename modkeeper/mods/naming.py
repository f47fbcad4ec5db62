# modkeeper/mods/naming.py
from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

__all__ = ["DEFAULT_MODULE_EXTENSION", "DEFAULT_DISABLED_SUFFIX", "ModuleNaming"]



DEFAULT_MODULE_EXTENSION = ".dll"
DEFAULT_DISABLED_SUFFIX = ".disabled"



@dataclass(frozen=True, slots=True)
class ModuleNaming:
    """
    File name conventions for modules and the disabled marker.

    The marker is the only enable/disable signal:
        Mod.dll           -> enabled
        Mod.dll.disabled  -> disabled
    Comparisons are case-insensitive.
    """
    moduleExtension: str = DEFAULT_MODULE_EXTENSION
    disabledSuffix: str = DEFAULT_DISABLED_SUFFIX

    @property
    def disabledExtension(self) -> str:
        return self.moduleExtension + self.disabledSuffix

    def isEnabledModule(self, path: Path | str) -> bool:
        return Path(path).name.lower().endswith(self.moduleExtension.lower())

    def isDisabledModule(self, path: Path | str) -> bool:
        return Path(path).name.lower().endswith(self.disabledExtension.lower())

    def isModule(self, path: Path | str) -> bool:
        """Matches both the plain and the disabled form."""
        return self.isEnabledModule(path) or self.isDisabledModule(path)

    def enabledPath(self, path: Path) -> Path:
        if self.isDisabledModule(path):
            return path.with_name(path.name[: -len(self.disabledSuffix)])
        return path

    def disabledPath(self, path: Path) -> Path:
        if self.isDisabledModule(path):
            return path
        return path.with_name(path.name + self.disabledSuffix)

    def baseName(self, path: Path | str) -> str:
        """'Mod.dll.disabled' -> 'Mod.dll'"""
        return self.enabledPath(Path(path)).name

    def iterModules(self, root: Path, *, recursive: bool = True) -> Iterator[Path]:
        """
        Yield module files (both forms) under root. Unordered; callers sort.
        """
        if not root.is_dir():
            return
        candidates = root.rglob("*") if recursive else root.iterdir()
        for path in candidates:
            if self.isModule(path) and path.is_file():
                yield path
