# modkeeper/core/fsops.py
from __future__ import annotations

import logging
import os
import re
import shutil
import stat
import sys
import uuid
from pathlib import Path
from typing import Callable

logger = logging.getLogger(__name__)

__all__ = [
    "sanitizeName",
    "ensureDir",
    "copyTree",
    "copyFile",
    "movePath",
    "removePath",
    "removeTree",
    "markHidden",
    "depthFrom",
]

# Characters Windows refuses in a single path component, plus control chars.
_INVALID_NAME_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_FILE_ATTRIBUTE_HIDDEN = 0x02



def sanitizeName(name: str, *, fallback: str = "_") -> str:
    """
    Make a single path component out of arbitrary text (stable ids, versions).
    """
    cleaned = _INVALID_NAME_RE.sub("_", str(name)).strip().rstrip(".")
    if cleaned in ("", ".", ".."):
        return fallback
    return cleaned



def ensureDir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path



def depthFrom(root: Path, path: Path) -> int:
    """Number of separators between root and path ("a.dll" -> 0, "x/a.dll" -> 1)."""
    return len(path.relative_to(root).parts) - 1



def copyFile(src: Path, dst: Path) -> Path:
    dst.parent.mkdir(parents=True, exist_ok=True)
    if dst.exists():
        _makeWritable(dst)
    shutil.copy2(src, dst)
    return dst



def copyTree(src: Path, dst: Path) -> Path:
    """Copy a directory into dst, merging over existing content."""
    dst.parent.mkdir(parents=True, exist_ok=True)
    shutil.copytree(src, dst, dirs_exist_ok=True)
    return dst



def movePath(src: Path, dst: Path) -> Path:
    """
    Move a file or directory to dst (which must not exist).

    Tries an atomic rename first; on failure (other volume, locked handle,
    ...) copies and then deletes the source. Raises OSError only when the
    copy itself fails, in which case the source is left untouched.
    """
    if dst.exists():
        raise FileExistsError(f"Move target already exists: '{dst}'")
    dst.parent.mkdir(parents=True, exist_ok=True)
    try:
        os.replace(src, dst)
        return dst
    except OSError as err:
        logger.debug("Rename '%s' -> '%s' failed (%s), falling back to copy+delete", src, dst, err)

    try:
        if src.is_dir():
            shutil.copytree(src, dst)
        else:
            shutil.copy2(src, dst)
    except OSError:
        # Do not leave half a copy behind
        if dst.exists():
            removePath(dst)
        raise

    removePath(src)
    return dst



def _makeWritable(path: Path) -> None:
    try:
        os.chmod(path, stat.S_IWRITE | stat.S_IREAD)
    except OSError:
        pass



def _retryWritable(func: Callable, path: str, exc: BaseException) -> None:
    if isinstance(exc, PermissionError) or getattr(exc, "winerror", None) == 5:
        _makeWritable(Path(path))
        _makeWritable(Path(path).parent)
        func(path)
        return
    raise exc



def _rmtree(path: Path) -> None:
    if sys.version_info >= (3, 12):
        shutil.rmtree(path, onexc=_retryWritable)
    else:
        shutil.rmtree(path, onerror=lambda func, p, info: _retryWritable(func, p, info[1]))



def removeTree(path: Path) -> bool:
    """
    Delete a directory tree, clearing read-only bits on the way.

    If the tree still cannot be removed, it is renamed aside to
    '<name>.trash-<hex>' so it no longer blocks the slot. Returns True when
    the original path is gone (deleted or renamed aside).
    """
    if not path.exists():
        return True
    try:
        _rmtree(path)
        return True
    except OSError as err:
        logger.warning("Could not delete '%s' (%s); renaming it aside", path, err)

    aside = path.with_name(f"{path.name}.trash-{uuid.uuid4().hex[:8]}")
    try:
        os.replace(path, aside)
        return True
    except OSError as err:
        logger.error("Could not delete or rename '%s': %s", path, err)
        return False



def removePath(path: Path) -> bool:
    """Delete a file or a directory; True when nothing is left at path."""
    if path.is_dir() and not path.is_symlink():
        return removeTree(path)
    if not path.exists() and not path.is_symlink():
        return True
    try:
        path.unlink()
    except PermissionError:
        _makeWritable(path)
        path.unlink()
    return True



def markHidden(path: Path) -> None:
    """
    Hide a directory from casual browsing. POSIX hides dot-names already;
    on Windows the hidden attribute is set. Failures are ignored.
    """
    if os.name != "nt" or not path.exists():
        return
    try:
        import ctypes

        attrs = ctypes.windll.kernel32.GetFileAttributesW(str(path))
        if attrs != -1 and not attrs & _FILE_ATTRIBUTE_HIDDEN:
            ctypes.windll.kernel32.SetFileAttributesW(str(path), attrs | _FILE_ATTRIBUTE_HIDDEN)
    except (AttributeError, OSError) as err:
        logger.debug("Could not mark '%s' hidden: %s", path, err)
