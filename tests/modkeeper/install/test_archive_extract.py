import zipfile
from pathlib import Path, PurePosixPath

import py7zr
import pytest

from modkeeper.core.errors import PackageNotFoundError, UnsupportedFormatError
from modkeeper.install.archives import (
    extractArchive,
    extractMatching,
    isArchive,
    safeMemberPath,
)


def make_zip(path: Path, members: dict[str, str]) -> Path:
    with zipfile.ZipFile(path, "w") as zf:
        for name, text in members.items():
            zf.writestr(name, text)
    return path


@pytest.mark.parametrize(
    "name,expected",
    [
        ("Mod/Mod.dll", PurePosixPath("Mod/Mod.dll")),
        ("Mod\\sub\\Mod.dll", PurePosixPath("Mod/sub/Mod.dll")),
        ("./a/./b.txt", PurePosixPath("a/b.txt")),
        ("/abs/file.dll", PurePosixPath("abs/file.dll")),
        ("Mod/", None),
        ("../escape.dll", None),
        ("a/../../escape.dll", None),
        ("C:/Windows/evil.dll", None),
        ("", None),
    ],
)
def test_safeMemberPath(name, expected):
    assert safeMemberPath(name) == expected


def test_isArchive_caseInsensitive():
    assert isArchive(Path("Pack.ZIP"))
    assert isArchive(Path("pack.7z"))
    assert not isArchive(Path("pack.tar.gz"))
    assert isArchive(Path("pack.tar"), extensions=[".TAR"])


def test_extractArchive_keepsRelativePathsAndSkipsUnsafe(tmp_path: Path):
    archive = make_zip(tmp_path / "pack.zip", {
        "Pack/Mod.dll": "mod",
        "Pack/docs/readme.md": "docs",
        "../outside.txt": "nope",
    })
    dest = tmp_path / "out"
    files = extractArchive(archive, dest)
    assert sorted(p.relative_to(dest).as_posix() for p in files) == ["Pack/Mod.dll", "Pack/docs/readme.md"]
    assert not (tmp_path / "outside.txt").exists()


def test_extractMatching_flattenAvoidsCollisions(tmp_path: Path):
    archive = make_zip(tmp_path / "pack.zip", {
        "a/Mod.dll": "first",
        "b/Mod.dll": "second",
        "b/notes.txt": "skip",
    })
    dest = tmp_path / "flat"
    files = extractMatching(archive, dest, lambda rel: rel.suffix == ".dll", flatten=True)
    assert [p.name for p in files] == ["Mod.dll", "Mod (2).dll"]
    assert (dest / "Mod (2).dll").read_text(encoding="utf-8") == "second"
    assert not (dest / "notes.txt").exists()


def test_extractMatching_sevenZip(tmp_path: Path):
    source = tmp_path / "src"
    (source / "Pack").mkdir(parents=True)
    (source / "Pack" / "Mod.dll").write_text("mod", encoding="utf-8")
    (source / "Pack" / "cfg.txt").write_text("cfg", encoding="utf-8")
    archive = tmp_path / "pack.7z"
    with py7zr.SevenZipFile(archive, "w") as sz:
        sz.writeall(source / "Pack", "Pack")

    full = extractArchive(archive, tmp_path / "full")
    assert sorted(p.relative_to(tmp_path / "full").as_posix() for p in full) == ["Pack/Mod.dll", "Pack/cfg.txt"]
    dest = tmp_path / "out"
    files = extractMatching(archive, dest, lambda rel: rel.name.endswith(".dll"), flatten=True)
    assert files == [dest / "Mod.dll"]
    assert not (dest / ".7z-staging").exists()


def test_extract_unsupportedAndMissing(tmp_path: Path):
    tarball = tmp_path / "pack.tar"
    tarball.write_bytes(b"")
    with pytest.raises(UnsupportedFormatError):
        extractArchive(tarball, tmp_path / "out")
    with pytest.raises(PackageNotFoundError):
        extractArchive(tmp_path / "missing.zip", tmp_path / "out")


def test_extract_honorsConfiguredExtensions(tmp_path: Path):
    archive = make_zip(tmp_path / "pack.zip", {"Mod.dll": "mod"})
    with pytest.raises(UnsupportedFormatError):
        extractArchive(archive, tmp_path / "out", extensions=(".7z",))
    assert extractArchive(archive, tmp_path / "out", extensions=(".ZIP",)) == [tmp_path / "out" / "Mod.dll"]
