# modkeeper/config/settings.py
from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from modkeeper.install.archives import DEFAULT_ARCHIVE_EXTENSIONS

from .providers import DefaultsProvider, FileProvider, OverrideProvider
from .store import ConfigStore

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULTS_PATH",
    "USER_CONFIG_ENV",
    "LoggingSettings",
    "ModKeeperSettings",
    "validateSettings",
    "buildConfigStore",
    "loadSettings",
]

DEFAULTS_PATH = Path(__file__).resolve().parent.parent / "defaults.json5"
USER_CONFIG_ENV = "MODKEEPER_CONFIG"



class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    file: str | None = None                 # JSON lines log file, rotated
    maxBytes: int = Field(default=2_000_000, ge=0)
    backupCount: int = Field(default=3, ge=0)
    suppressRecurring: bool = True          # Damp repeated warnings from bulk renames

    @field_validator("level", mode="before")
    @classmethod
    def upperLevel(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value



class ModKeeperSettings(BaseModel):
    """Validated, merged configuration."""
    model_config = ConfigDict(extra="forbid")

    hostRoot: str | None = None             # Target application install dir
    pluginHostRoot: str = "BepInEx"
    pluginsDirName: str = "plugins"
    toolDirName: str = "ModKeeper"
    catalogFileName: str = "index.json5"
    storeDirName: str = ".versions"
    moduleExtension: str = ".dll"
    disabledSuffix: str = ".disabled"
    archiveExtensions: list[str] = Field(default_factory=lambda: [".zip", ".7z", ".rar"])
    identityAttributeNames: list[str] = Field(default_factory=lambda: ["BepInPlugin", "BepInPluginAttribute"])
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("moduleExtension", "disabledSuffix")
    @classmethod
    def dotted(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(".") or len(value) < 2:
            raise ValueError(f"'{value}' must start with '.' and name an extension")
        return value.lower()

    @field_validator("archiveExtensions")
    @classmethod
    def dottedList(cls, values: list[str]) -> list[str]:
        dotted = [value if value.startswith(".") else f".{value}" for value in (v.strip().lower() for v in values)]
        unknown = [value for value in dotted if value not in DEFAULT_ARCHIVE_EXTENSIONS]
        if unknown:
            raise ValueError(f"No archive reader for {unknown}; supported: {list(DEFAULT_ARCHIVE_EXTENSIONS)}")
        return dotted

    @field_validator("storeDirName")
    @classmethod
    def hiddenStore(cls, value: str) -> str:
        if not value or "/" in value or "\\" in value:
            raise ValueError("storeDirName must be a single path component")
        return value



def validateSettings(data: Mapping[str, Any]) -> ModKeeperSettings:
    return ModKeeperSettings.model_validate(dict(data))



def buildConfigStore(
    *,
    userConfigPath: Path | str | None = None,
    overrides: Mapping[str, Any] | None = None,
    defaultsPath: Path | str = DEFAULTS_PATH,
) -> ConfigStore:
    """
    defaults.json5 < user json5 file < runtime overrides.
    The user file comes from the argument, else $MODKEEPER_CONFIG, else is skipped.
    """
    providers = [DefaultsProvider(path=defaultsPath, strict=False)]
    userPath = userConfigPath or os.environ.get(USER_CONFIG_ENV)
    if userPath:
        providers.append(FileProvider(userPath))
    providers.append(OverrideProvider(overrides))
    return ConfigStore(namespace="config:modkeeper", validator=validateSettings, providers=providers)



def loadSettings(
    *,
    userConfigPath: Path | str | None = None,
    overrides: Mapping[str, Any] | None = None,
    defaultsPath: Path | str = DEFAULTS_PATH,
) -> ModKeeperSettings:
    store = buildConfigStore(userConfigPath=userConfigPath, overrides=overrides, defaultsPath=defaultsPath)
    settings = store.validate()
    logger.debug("Loaded settings from layers %s", store.snapshot()["layers"])
    return settings
