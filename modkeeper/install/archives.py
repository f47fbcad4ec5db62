# modkeeper/install/archives.py
from __future__ import annotations

import logging
import shutil
import zipfile
from collections.abc import Callable, Iterable
from pathlib import Path, PurePosixPath

import py7zr
import rarfile

from modkeeper.core.errors import PackageNotFoundError, UnsupportedFormatError

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_ARCHIVE_EXTENSIONS",
    "isArchive",
    "safeMemberPath",
    "extractArchive",
    "extractMatching",
]

DEFAULT_ARCHIVE_EXTENSIONS: tuple[str, ...] = (".zip", ".7z", ".rar")



def isArchive(path: Path, extensions: Iterable[str] = DEFAULT_ARCHIVE_EXTENSIONS) -> bool:
    return path.suffix.lower() in {ext.lower() for ext in extensions}



def safeMemberPath(name: str) -> PurePosixPath | None:
    """
    Normalize an archive member name to a relative POSIX path.
    Returns None for directory entries and for names escaping the archive
    root ("../x", absolute paths, drive letters).
    """
    text = name.replace("\\", "/").lstrip("/")
    if not text or text.endswith("/"):
        return None
    parts = [part for part in text.split("/") if part not in ("", ".")]
    if not parts or any(part == ".." for part in parts) or ":" in parts[0]:
        return None
    return PurePosixPath(*parts)



def _checkSource(archivePath: Path, extensions: Iterable[str]) -> str:
    if not archivePath.is_file():
        raise PackageNotFoundError(f"Archive not found: '{archivePath}'", path=archivePath)
    ext = archivePath.suffix.lower()
    if ext not in DEFAULT_ARCHIVE_EXTENSIONS or not isArchive(archivePath, extensions):
        raise UnsupportedFormatError(f"Unsupported archive format: '{ext}'", path=archivePath)
    return ext



def _extractZipLike(
    archivePath: Path,
    dest: Path,
    opener: Callable,
    accept: Callable[[PurePosixPath], bool],
    flatten: bool,
) -> list[Path]:
    """zipfile and rarfile share the infolist()/open() API."""
    extracted: list[Path] = []
    with opener(archivePath, "r") as zf:
        for info in zf.infolist():
            if info.is_dir():
                continue
            rel = safeMemberPath(info.filename)
            if rel is None:
                logger.warning("Skipping unsafe archive member '%s' in '%s'", info.filename, archivePath.name)
                continue
            if not accept(rel):
                continue
            outPath = _uniqueTarget(dest / rel.name) if flatten else dest.joinpath(*rel.parts)
            outPath.parent.mkdir(parents=True, exist_ok=True)
            with zf.open(info) as src, open(outPath, "wb") as out:
                shutil.copyfileobj(src, out)
            extracted.append(outPath)
    return extracted



def _extract7z(
    archivePath: Path,
    dest: Path,
    accept: Callable[[PurePosixPath], bool],
    flatten: bool,
) -> list[Path]:
    staging = dest / ".7z-staging" if flatten else dest
    with py7zr.SevenZipFile(archivePath, "r") as sz:
        members: list[tuple[str, PurePosixPath]] = []
        for name in sz.getnames():
            rel = safeMemberPath(name)
            if rel is None or not accept(rel):
                continue
            members.append((name, rel))
        if not members:
            return []
        sz.extract(path=staging, targets=[name for name, _rel in members])

    extracted: list[Path] = []
    for _name, rel in members:
        landed = staging.joinpath(*rel.parts)
        if not landed.is_file():
            continue
        if flatten:
            target = _uniqueTarget(dest / rel.name)
            shutil.move(str(landed), target)
            extracted.append(target)
        else:
            extracted.append(landed)
    if flatten:
        shutil.rmtree(staging, ignore_errors=True)
    return extracted



def _uniqueTarget(path: Path) -> Path:
    """'Mod.dll' -> 'Mod (2).dll' when flattening collides."""
    if not path.exists():
        return path
    counter = 2
    while True:
        candidate = path.with_name(f"{path.stem} ({counter}){path.suffix}")
        if not candidate.exists():
            return candidate
        counter += 1



def extractMatching(
    archivePath: Path,
    dest: Path,
    accept: Callable[[PurePosixPath], bool],
    *,
    flatten: bool = False,
    extensions: Iterable[str] = DEFAULT_ARCHIVE_EXTENSIONS,
) -> list[Path]:
    """
    Extract members for which accept(relativePath) is True into dest.
    With flatten=True every file lands directly in dest (name collisions get
    a counter). Only extensions listed in extensions are opened. Returns
    extracted paths in archive order.
    """
    ext = _checkSource(archivePath, extensions)
    dest.mkdir(parents=True, exist_ok=True)
    if ext == ".7z":
        return _extract7z(archivePath, dest, accept, flatten)
    opener = zipfile.ZipFile if ext == ".zip" else rarfile.RarFile
    return _extractZipLike(archivePath, dest, opener, accept, flatten)



def extractArchive(archivePath: Path, dest: Path, extensions: Iterable[str] = DEFAULT_ARCHIVE_EXTENSIONS) -> list[Path]:
    """Extract every (safe) member preserving relative paths."""
    files = extractMatching(archivePath, dest, lambda _rel: True, extensions=extensions)
    logger.debug("Extracted %d files from '%s' into '%s'", len(files), archivePath.name, dest)
    return files
