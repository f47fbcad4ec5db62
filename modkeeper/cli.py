# modkeeper/cli.py
from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any, TextIO

import json5

from modkeeper.app.paths import HostLayout
from modkeeper.app.prompts import AutoPrompts, Choice, PromptContext, PromptKind, VersionPickResult
from modkeeper.config.settings import USER_CONFIG_ENV, buildConfigStore, loadSettings
from modkeeper.core.dictpath import hasPath
from modkeeper.core.errors import ModKeeperError, NotConfiguredError
from modkeeper.core.logging import configureLogging
from modkeeper.host.interfaces import EnvironmentHostLocator, PluginHostReadiness
from modkeeper.install.orchestrator import InstallStatus, ModOrchestrator
from modkeeper.mods.types import InstalledPackage
from modkeeper.scanner.identity import IdentityScanner

logger = logging.getLogger(__name__)

__all__ = ["ConsolePrompts", "ConsoleStatus", "buildParser", "main"]

# (label, choice) per prompt kind; anything unrecognized cancels
_PROMPT_OPTIONS: dict[PromptKind, list[tuple[str, Choice]]] = {
    PromptKind.DOWNGRADE: [("o", Choice.PRIMARY), ("k", Choice.SECONDARY), ("c", Choice.CANCEL)],
    PromptKind.UNINSTALL_SINGLE: [("y", Choice.PRIMARY), ("n", Choice.CANCEL)],
    PromptKind.UNINSTALL_MULTI: [("a", Choice.PRIMARY), ("p", Choice.SECONDARY), ("c", Choice.CANCEL)],
    PromptKind.OVERWRITE_FILE: [("y", Choice.PRIMARY), ("n", Choice.CANCEL)],
}

_PROMPT_TEXT: dict[PromptKind, str] = {
    PromptKind.DOWNGRADE: "A newer version of {name} is installed ({installed}, incoming {incoming}). [o]verwrite, [k]eep both, [c]ancel?",
    PromptKind.UNINSTALL_SINGLE: "Uninstall {name} {installed}? [y/n]",
    PromptKind.UNINSTALL_MULTI: "{name} {installed} has stored versions: {stored}. Uninstall [a]ll, [p]ick versions, [c]ancel?",
    PromptKind.OVERWRITE_FILE: "'{target}' already exists and belongs to something else. Overwrite? [y/n]",
}



class ConsoleStatus:
    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream or sys.stdout

    def info(self, message: str) -> None:
        print(message, file=self.stream)

    def warn(self, message: str) -> None:
        print(f"warning: {message}", file=self.stream)

    def error(self, message: str) -> None:
        print(f"error: {message}", file=sys.stderr)



class ConsolePrompts:
    """Terminal prompts; reads answers with `ask` (input() by default)."""

    def __init__(self, ask: Callable[[str], str] = input) -> None:
        self._ask = ask

    def askChoice(self, kind: PromptKind, context: PromptContext) -> Choice:
        options = _PROMPT_OPTIONS[kind]
        text = _PROMPT_TEXT[kind].format(
            name=context.title,
            installed=context.installedVersion or "?",
            incoming=context.incomingVersion or "?",
            stored=", ".join(context.storedVersions) or "-",
            target=context.targetName or "",
        )
        answer = self._ask(text + " ").strip().lower()
        for label, choice in options:
            if answer == label or (answer and label.startswith(answer[0])):
                return choice
        return Choice.CANCEL

    def pickVersions(self, displayName: str, activeVersion: str, storedVersions: Sequence[str]) -> VersionPickResult | None:
        listed = ", ".join(storedVersions)
        removeText = self._ask(f"{displayName} (active {activeVersion}); stored: {listed}. Versions to remove (comma separated): ")
        keepText = self._ask("Stored version to make active (blank keeps the current one): ").strip()
        removeVersions = tuple(v.strip() for v in removeText.split(",") if v.strip())
        return VersionPickResult(removeVersions=removeVersions, keepVersion=keepText or None)



def buildParser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="modkeeper", description="Manage BepInEx plugin packages")
    parser.add_argument("--host", help="Target application directory (else config or $MODKEEPER_HOST)")
    parser.add_argument("--config", help="User json5 config file (else $MODKEEPER_CONFIG)")
    parser.add_argument("--yes", action="store_true", help="Answer every prompt with the primary choice")
    parser.add_argument(
        "-s", "--set", dest="overrides", action="append", default=[], metavar="KEY=VALUE",
        help="Override a setting for this run (dotted key, json5 value)",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="cmd", required=True)

    sub.add_parser("list", help="List installed packages")
    install = sub.add_parser("install", help="Install a module, folder or archive")
    install.add_argument("source")
    for name in ("enable", "disable", "toggle", "uninstall", "versions"):
        cmd = sub.add_parser(name)
        cmd.add_argument("stableId")
    switch = sub.add_parser("switch", help="Activate a stored version")
    switch.add_argument("stableId")
    switch.add_argument("version")
    sub.add_parser("rebuild-index", help="Rebuild the catalog from the plugins directory")

    config = sub.add_parser("config", help="Read or change the user config file")
    configSub = config.add_subparsers(dest="configCmd", required=True)
    configSub.add_parser("get").add_argument("key")
    setCmd = configSub.add_parser("set")
    setCmd.add_argument("key")
    setCmd.add_argument("value")
    configSub.add_parser("unset").add_argument("key")
    return parser



def _parseValue(text: str) -> Any:
    """json5 literal when it parses (numbers, booleans, lists, null), else the raw text."""
    try:
        return json5.loads(text)
    except ValueError:
        return text



def _flagOverrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for item in args.overrides:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Expected KEY=VALUE, got '{item}'")
        overrides[key.strip()] = _parseValue(value)
    if args.host:
        overrides["hostRoot"] = args.host
    return overrides



def _runConfig(args: argparse.Namespace, status: ConsoleStatus) -> int:
    store = buildConfigStore(userConfigPath=args.config)

    if args.configCmd == "get":
        if not hasPath(store.merged(), args.key):
            status.error(f"Unknown setting '{args.key}'")
            return 1
        status.info(json5.dumps(store.get(args.key)))
        return 0

    value = None if args.configCmd == "unset" else _parseValue(args.value)
    store.subscribe(lambda key, old, new, ctx: logger.info("Setting %s changed: %r -> %r", key, old, new))
    try:
        store.set(args.key, value, target="file", actor="cli")
    except KeyError:
        status.error(f"No user config file (use --config or set ${USER_CONFIG_ENV})")
        return 2
    except (TypeError, ValueError) as err:
        status.error(f"Rejected {args.key}: {err}")
        return 1
    store.save()
    status.info(f"{args.key} = {json5.dumps(store.get(args.key))}")
    return 0



def _formatPackage(package: InstalledPackage) -> str:
    where = f"{package.locationName}/" if package.isFolder else package.locationName
    return f"{package.stableId}  {package.displayName} {package.version}{package.statusSuffix}  [{where}]"



def _requirePackage(orchestrator: ModOrchestrator, stableId: str) -> InstalledPackage:
    package = orchestrator.findInstalled(stableId)
    if package is None:
        raise ModKeeperError(f"'{stableId}' is not installed")
    return package



def _run(args: argparse.Namespace, orchestrator: ModOrchestrator, status: ConsoleStatus) -> int:
    if args.cmd == "list":
        for package in orchestrator.refresh():
            status.info(_formatPackage(package))
        return 0

    if args.cmd == "install":
        outcome = orchestrator.install(Path(args.source))
        return 0 if outcome.status is not InstallStatus.CANCELLED else 1

    if args.cmd == "rebuild-index":
        orchestrator.layout.requirePluginsDir()
        entries = orchestrator.catalog.rebuildFromDisk()
        status.info(f"Catalog holds {len(entries)} package(s)")
        return 0

    package = _requirePackage(orchestrator, args.stableId)
    if args.cmd == "enable":
        orchestrator.enable(package)
    elif args.cmd == "disable":
        orchestrator.disable(package)
    elif args.cmd == "toggle":
        orchestrator.toggle(package)
    elif args.cmd == "uninstall":
        return 0 if orchestrator.uninstall(package) else 1
    elif args.cmd == "versions":
        status.info(f"{package.displayName}: active {package.version}")
        for version in orchestrator.store.listAlternates(package.stableId, excludingVersion=package.version):
            status.info(f"  stored {version}")
    elif args.cmd == "switch":
        orchestrator.switchVersion(package, args.version)
    return 0



def main(argv: Sequence[str] | None = None) -> int:
    args = buildParser().parse_args(argv)
    status = ConsoleStatus()

    if args.cmd == "config":
        return _runConfig(args, status)

    try:
        settings = loadSettings(userConfigPath=args.config, overrides=_flagOverrides(args))
    except ValueError as err:
        # pydantic ValidationError is a ValueError
        status.error(f"Invalid configuration: {err}")
        return 2
    configureLogging(settings.logging, verbose=args.verbose)

    hostRoot = settings.hostRoot or EnvironmentHostLocator().findHostRoot()
    layout = HostLayout.fromSettings(settings, hostRoot=hostRoot)
    prompts = AutoPrompts() if args.yes else ConsolePrompts()
    orchestrator = ModOrchestrator(
        layout,
        prompts,
        status,
        IdentityScanner(
            naming=layout.naming,
            attributeNames=settings.identityAttributeNames,
            archiveExtensions=layout.archiveExtensions,
        ),
        runtime=PluginHostReadiness(layout) if args.cmd == "install" else None,
    )

    try:
        return _run(args, orchestrator, status)
    except NotConfiguredError as err:
        status.error(f"{err} (use --host or set $MODKEEPER_HOST)")
        return 2
    except ModKeeperError as err:
        status.error(str(err))
        return 1



if __name__ == "__main__":
    sys.exit(main())
