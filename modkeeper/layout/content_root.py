# modkeeper/layout/content_root.py
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from modkeeper.mods.naming import ModuleNaming

logger = logging.getLogger(__name__)

__all__ = [
    "RootKind",
    "ContentRootResolution",
    "Placement",
    "hasDirectModules",
    "resolveContentRoot",
    "planPlacement",
]



class RootKind(str, Enum):
    FLAT = "flat"                   # Root itself holds modules
    WRAPPER = "wrapper"             # Sole subdirectory of an otherwise empty root
    NESTED = "nested"               # Shallowest subdirectory holding a module
    NO_MODULE = "noModule"          # Fallback, nothing recognizable found



@dataclass(frozen=True, slots=True)
class ContentRootResolution:
    contentRoot: Path
    warning: str | None
    kind: RootKind



@dataclass(frozen=True, slots=True)
class Placement:
    """
    Where a resolved content root goes inside the plugin directory.
    flat=True: every child of source lands directly in plugins/.
    flat=False: source is copied to plugins/<folderName>.
    """
    source: Path
    flat: bool
    folderName: str | None = None



def hasDirectModules(folder: Path, naming: ModuleNaming | None = None) -> bool:
    naming = naming or ModuleNaming()
    return any(True for _ in naming.iterModules(folder, recursive=False))



def _shallowestModuleDir(root: Path, naming: ModuleNaming) -> Path | None:
    """
    Breadth first over subdirectories; ties inside one depth level are broken
    by case-insensitive path.
    """
    level = sorted((p for p in root.iterdir() if p.is_dir()), key=lambda p: str(p).casefold())
    queue: deque[list[Path]] = deque([level])
    while queue:
        current = queue.popleft()
        for folder in current:
            if hasDirectModules(folder, naming):
                return folder
        nextLevel: list[Path] = []
        for folder in current:
            nextLevel.extend(p for p in folder.iterdir() if p.is_dir())
        if nextLevel:
            queue.append(sorted(nextLevel, key=lambda p: str(p).casefold()))
    return None



def _collapseWrappers(folder: Path, naming: ModuleNaming) -> Path:
    """Descend through file-free levels that hold nothing but one subdirectory."""
    while not hasDirectModules(folder, naming):
        children = list(folder.iterdir())
        if len(children) != 1 or not children[0].is_dir():
            break
        folder = children[0]
    return folder



def resolveContentRoot(extractedRoot: Path, naming: ModuleNaming | None = None) -> ContentRootResolution:
    """
    Decide which subtree of an extracted archive (or dropped folder) is the
    actual package payload.

    Priority:
        1. root directly holds module files       -> root, no warning
        2. no files and exactly one subdirectory  -> that subdirectory,
                                                     stacked wrappers collapsed
        3. shallowest subdirectory with a module  -> that subdirectory
        4. nothing found                          -> root, warning
    """
    naming = naming or ModuleNaming()
    root = Path(extractedRoot)

    if hasDirectModules(root, naming):
        return ContentRootResolution(root, None, RootKind.FLAT)

    children = list(root.iterdir()) if root.is_dir() else []
    files = [p for p in children if p.is_file()]
    dirs = [p for p in children if p.is_dir()]

    if not files and len(dirs) == 1:
        wrapper = _collapseWrappers(dirs[0], naming)
        rel = wrapper.relative_to(root).as_posix()
        logger.debug("Detected wrapper folder '%s' in '%s'", rel, root)
        return ContentRootResolution(
            wrapper,
            f"Archive is wrapped in a single folder '{rel}'; using its contents.",
            RootKind.WRAPPER,
        )

    if dirs:
        found = _shallowestModuleDir(root, naming)
        if found is not None:
            rel = found.relative_to(root).as_posix()
            return ContentRootResolution(
                found,
                f"Modules found in subfolder '{rel}'; using it as the package root.",
                RootKind.NESTED,
            )

    return ContentRootResolution(
        root,
        "No module found, structure may be non-standard.",
        RootKind.NO_MODULE,
    )



def planPlacement(
    contentRoot: Path,
    archiveStem: str,
    *,
    extractionRoot: Path | None = None,
    naming: ModuleNaming | None = None,
) -> Placement:
    """
    Flat when the content root directly holds modules (its children go
    straight into plugins/). Otherwise the tree goes under a folder named
    after the content root, or after the archive when the content root is
    the extraction root itself.
    """
    if hasDirectModules(contentRoot, naming):
        return Placement(source=contentRoot, flat=True)
    if extractionRoot is not None and contentRoot == extractionRoot:
        return Placement(source=contentRoot, flat=False, folderName=archiveStem)
    return Placement(source=contentRoot, flat=False, folderName=contentRoot.name or archiveStem)
