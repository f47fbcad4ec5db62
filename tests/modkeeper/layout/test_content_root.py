from pathlib import Path

import pytest

from conftest import write_dependency
from modkeeper.layout.content_root import RootKind, planPlacement, resolveContentRoot


def touch(path: Path, text: str = "x") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_resolveContentRoot_flatRootWinsOverSubfolders(tmp_path: Path):
    touch(tmp_path / "Mod.dll")
    touch(tmp_path / "sub" / "Other.dll")
    res = resolveContentRoot(tmp_path)
    assert res.contentRoot == tmp_path
    assert res.kind is RootKind.FLAT
    assert res.warning is None


def test_resolveContentRoot_disabledModuleCountsAsModule(tmp_path: Path):
    touch(tmp_path / "Mod.dll.disabled")
    assert resolveContentRoot(tmp_path).kind is RootKind.FLAT


def test_resolveContentRoot_singleWrapperFolder(tmp_path: Path):
    # Wrapper wins even when the module lives deeper inside it
    touch(tmp_path / "CoolMod" / "plugins" / "Cool.dll")
    touch(tmp_path / "CoolMod" / "config" / "cool.cfg")
    res = resolveContentRoot(tmp_path)
    assert res.contentRoot == tmp_path / "CoolMod"
    assert res.kind is RootKind.WRAPPER
    assert "CoolMod" in res.warning


def test_resolveContentRoot_stackedWrappersCollapse(tmp_path: Path):
    touch(tmp_path / "Outer" / "Inner" / "Mod.dll")
    res = resolveContentRoot(tmp_path)
    assert res.contentRoot == tmp_path / "Outer" / "Inner"
    assert res.kind is RootKind.WRAPPER
    assert "'Outer/Inner'" in res.warning


def test_resolveContentRoot_shallowestModuleFolder(tmp_path: Path):
    touch(tmp_path / "README.txt")
    touch(tmp_path / "b" / "deeper" / "Deep.dll")
    touch(tmp_path / "a" / "Shallow.dll")
    touch(tmp_path / "c" / "notes.txt")
    res = resolveContentRoot(tmp_path)
    assert res.contentRoot == tmp_path / "a"
    assert res.kind is RootKind.NESTED
    assert "'a'" in res.warning


def test_resolveContentRoot_depthBeatsName(tmp_path: Path):
    touch(tmp_path / "README.txt")
    touch(tmp_path / "a" / "x" / "Deep.dll")
    touch(tmp_path / "z" / "Shallow.dll")
    assert resolveContentRoot(tmp_path).contentRoot == tmp_path / "z"


def test_resolveContentRoot_tieBrokenCaseInsensitively(tmp_path: Path):
    touch(tmp_path / "README.txt")
    touch(tmp_path / "beta" / "B.dll")
    touch(tmp_path / "Alpha" / "A.dll")
    assert resolveContentRoot(tmp_path).contentRoot == tmp_path / "Alpha"


def test_resolveContentRoot_nothingFound(tmp_path: Path):
    touch(tmp_path / "README.txt")
    touch(tmp_path / "docs" / "guide.md")
    res = resolveContentRoot(tmp_path)
    assert res.contentRoot == tmp_path
    assert res.kind is RootKind.NO_MODULE
    assert res.warning == "No module found, structure may be non-standard."


@pytest.mark.parametrize(
    "layoutFiles",
    [
        ["notes.txt", "pack/inner/Mod.dll"],
        ["Outer/Inner/Mod.dll"],
        ["Outer/Inner/Deeper/Mod.dll", "Outer/Inner/Deeper/Mod.cfg"],
        ["Wrapper/Mod.dll"],
    ],
)
def test_resolveContentRoot_isIdempotent(tmp_path: Path, layoutFiles: list[str]):
    for rel in layoutFiles:
        touch(tmp_path / rel)
    first = resolveContentRoot(tmp_path)
    second = resolveContentRoot(first.contentRoot)
    assert second.contentRoot == first.contentRoot
    assert second.kind is RootKind.FLAT
    assert second.warning is None


def test_planPlacement_flatWhenRootHoldsModules(tmp_path: Path):
    touch(tmp_path / "Mod.dll")
    placement = planPlacement(tmp_path, "CoolMod-1.0", extractionRoot=tmp_path)
    assert placement.flat
    assert placement.folderName is None


def test_planPlacement_folderNamedAfterArchiveAtExtractionRoot(tmp_path: Path):
    write_dependency(tmp_path / "docs" / "readme.md")
    placement = planPlacement(tmp_path, "CoolMod-1.0", extractionRoot=tmp_path)
    assert not placement.flat
    assert placement.folderName == "CoolMod-1.0"


def test_planPlacement_folderNamedAfterContentRoot(tmp_path: Path):
    content = tmp_path / "CoolMod"
    touch(content / "plugins" / "Cool.dll")
    placement = planPlacement(content, "archive", extractionRoot=tmp_path)
    assert not placement.flat
    assert placement.folderName == "CoolMod"
    assert placement.source == content
