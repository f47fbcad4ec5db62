import logging
from pathlib import Path

import json5
import pytest

from conftest import FakeScanner, write_module
from modkeeper import cli
from modkeeper.app.prompts import Choice, PromptContext, PromptKind
from modkeeper.config.settings import USER_CONFIG_ENV
from modkeeper.host.interfaces import HOST_ROOT_ENV


@pytest.fixture(autouse=True)
def isolatedCli(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv(USER_CONFIG_ENV, raising=False)
    monkeypatch.delenv(HOST_ROOT_ENV, raising=False)
    monkeypatch.setattr(cli, "IdentityScanner", FakeScanner)
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def host(tmp_path: Path) -> Path:
    """Host with a set-up plugin host (plugins dir and its config file)."""
    root = tmp_path / "game"
    (root / "BepInEx" / "plugins").mkdir(parents=True)
    (root / "BepInEx" / "config").mkdir()
    (root / "BepInEx" / "config" / "BepInEx.cfg").write_text("[Logging]\n", encoding="utf-8")
    return root


def test_main_installThenList(host: Path, tmp_path: Path, capsys: pytest.CaptureFixture):
    source = write_module(tmp_path / "drop" / "Mod.dll", "com.x.mod", "Mod", "1.2")

    assert cli.main(["--host", str(host), "--yes", "install", str(source)]) == 0
    assert (host / "BepInEx" / "plugins" / "Mod.dll").is_file()

    assert cli.main(["--host", str(host), "list"]) == 0
    out = capsys.readouterr().out
    assert "Installed Mod 1.2" in out
    assert "com.x.mod  Mod 1.2  [Mod.dll]" in out


def test_main_disableAndVersions(host: Path, tmp_path: Path, capsys: pytest.CaptureFixture):
    for version in ("1.0", "2.0"):
        source = write_module(tmp_path / version / "Mod.dll", "com.x.mod", "Mod", version)
        assert cli.main(["--host", str(host), "--yes", "install", str(source)]) == 0

    assert cli.main(["--host", str(host), "disable", "COM.X.MOD"]) == 0
    assert (host / "BepInEx" / "plugins" / "Mod.dll.disabled").is_file()

    capsys.readouterr()
    assert cli.main(["--host", str(host), "versions", "com.x.mod"]) == 0
    assert capsys.readouterr().out.splitlines() == ["Mod: active 2.0", "  stored 1.0"]

    assert cli.main(["--host", str(host), "switch", "com.x.mod", "1.0"]) == 0
    assert (host / "BepInEx" / "plugins" / "Mod.dll").is_file()


def test_main_installRequiresReadyPluginHost(tmp_path: Path, capsys: pytest.CaptureFixture):
    host = tmp_path / "fresh"
    (host / "BepInEx" / "plugins").mkdir(parents=True)
    source = write_module(tmp_path / "Mod.dll", "com.x.mod")
    assert cli.main(["--host", str(host), "--yes", "install", str(source)]) == 2
    assert "not set up yet" in capsys.readouterr().err


def test_main_withoutHostIsNotConfigured(capsys: pytest.CaptureFixture):
    assert cli.main(["list"]) == 2
    assert "No host directory is configured" in capsys.readouterr().err


def test_main_unknownPackageAndBadConfig(host: Path, tmp_path: Path, capsys: pytest.CaptureFixture):
    assert cli.main(["--host", str(host), "enable", "com.none"]) == 1
    assert "'com.none' is not installed" in capsys.readouterr().err

    badConfig = tmp_path / "bad.json5"
    badConfig.write_text('{ "moduleExtension": "dll" }', encoding="utf-8")
    assert cli.main(["--config", str(badConfig), "list"]) == 2
    assert "Invalid configuration" in capsys.readouterr().err


def test_consolePrompts_mapsAnswers():
    answers = iter(["k", "", "Yes", "1.0, 2.0", "1.0"])
    prompts = cli.ConsolePrompts(ask=lambda text: next(answers))
    context = PromptContext(displayName="Mod", installedVersion="2.0", incomingVersion="1.0")

    assert prompts.askChoice(PromptKind.DOWNGRADE, context) is Choice.SECONDARY
    assert prompts.askChoice(PromptKind.DOWNGRADE, context) is Choice.CANCEL
    assert prompts.askChoice(PromptKind.OVERWRITE_FILE, context) is Choice.PRIMARY

    pick = prompts.pickVersions("Mod", "3.0", ["1.0", "2.0"])
    assert pick.removeVersions == ("1.0", "2.0")
    assert pick.keepVersion == "1.0"


def test_main_configSetGetUnset(tmp_path: Path, capsys: pytest.CaptureFixture):
    userConfig = tmp_path / "user.json5"
    base = ["--config", str(userConfig), "config"]

    assert cli.main(base + ["set", "logging.level", "DEBUG"]) == 0
    assert cli.main(base + ["set", "archiveExtensions", '["zip"]']) == 0
    assert json5.loads(userConfig.read_text(encoding="utf-8")) == {
        "logging": {"level": "DEBUG"},
        "archiveExtensions": ["zip"],
    }
    capsys.readouterr()

    assert cli.main(base + ["get", "logging.level"]) == 0
    assert capsys.readouterr().out.strip() == '"DEBUG"'

    assert cli.main(base + ["unset", "logging.level"]) == 0
    assert json5.loads(userConfig.read_text(encoding="utf-8")) == {"archiveExtensions": ["zip"]}

    assert cli.main(base + ["get", "noSuchKey"]) == 1
    assert "Unknown setting 'noSuchKey'" in capsys.readouterr().err


def test_main_configRejectsInvalidValueAndMissingFile(tmp_path: Path, capsys: pytest.CaptureFixture):
    userConfig = tmp_path / "user.json5"
    userConfig.write_text('{ "toolDirName": "Tool" }', encoding="utf-8")

    assert cli.main(["--config", str(userConfig), "config", "set", "storeDirName", "a/b"]) == 1
    assert "Rejected storeDirName" in capsys.readouterr().err
    assert json5.loads(userConfig.read_text(encoding="utf-8")) == {"toolDirName": "Tool"}

    assert cli.main(["config", "set", "toolDirName", "Other"]) == 2
    assert "No user config file" in capsys.readouterr().err


def test_main_setFlagOverridesConfigForOneRun(host: Path, tmp_path: Path, capsys: pytest.CaptureFixture):
    (host / "BepInEx" / "mods").mkdir()
    source = write_module(tmp_path / "drop" / "Mod.dll", "com.x.mod", "Mod", "1.2")

    assert cli.main(["--host", str(host), "--set", "pluginsDirName=mods", "--yes", "install", str(source)]) == 0
    assert (host / "BepInEx" / "mods" / "Mod.dll").is_file()
    assert not (host / "BepInEx" / "plugins" / "Mod.dll").exists()

    assert cli.main(["--host", str(host), "--set", "noEquals", "list"]) == 2
    assert "Expected KEY=VALUE" in capsys.readouterr().err


def test_main_hostFromUserConfig(host: Path, tmp_path: Path, capsys: pytest.CaptureFixture):
    userConfig = tmp_path / "user.json5"
    assert cli.main(["--config", str(userConfig), "config", "set", "hostRoot", str(host)]) == 0
    write_module(host / "BepInEx" / "plugins" / "Mod.dll", "com.x.mod", "Mod", "1.0")
    capsys.readouterr()

    assert cli.main(["--config", str(userConfig), "list"]) == 0
    assert "com.x.mod  Mod 1.0  [Mod.dll]" in capsys.readouterr().out
