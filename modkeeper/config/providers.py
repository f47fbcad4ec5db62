# modkeeper/config/providers.py
from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import json5

from modkeeper.core.dictpath import deleteByPath, getByPath, setByPath
from modkeeper.core.jsonutils import deepCopy, writeJson5Atomic
from .types import ConfigProvider

logger = logging.getLogger(__name__)

__all__ = ["OverrideProvider", "DefaultsProvider", "FileProvider"]

# ----------------------------------------------
#          OverrideProvider (in-memory)
# ----------------------------------------------

class OverrideProvider(ConfigProvider):
    """
    Volatile, writable, topmost layer (command line flags). Never saved.
    """
    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = {}
        for key, value in (data or {}).items():
            self.set(key, value)

    def get(self, key: str) -> Any | None:
        return getByPath(self._data, key, None)

    def set(self, key: str, value: Any) -> None:
        if value is None:
            deleteByPath(self._data, key, pruneEmptyParents=True)
            return
        setByPath(self._data, key, deepCopy(value), createIfMissing=True)

    def to_dict(self) -> dict[str, Any]:
        return deepCopy(self._data)

    def save(self) -> None:
        return # Nothing to do



# ----------------------------------------------
#       Read-only shipped defaults
# ----------------------------------------------

class DefaultsProvider(ConfigProvider):
    """
    Read-only provider for shipped defaults, from a json5 file (`path`) or
    an in-memory mapping (`data`).

    Raises:
        ValueError: neither or both of `data` and `path` given
        FileNotFoundError: file missing and strict=True
        TypeError: unparsable file or content that is not an object
    """
    def __init__(
        self,
        data: Mapping[str, Any] | None = None,
        *,
        path: Path | str | None = None,
        strict: bool = True,
    ) -> None:
        if data is not None and path is not None:
            raise ValueError(f"{type(self).__name__}: provide either 'data' or 'path', not both")
        if data is None and path is None:
            raise ValueError(f"{type(self).__name__}: either 'data' or 'path' must be provided")

        if data is not None:
            if not isinstance(data, Mapping):
                raise TypeError(f"{type(self).__name__}: 'data' must be a Mapping, not '{type(data).__name__}'")
            self.data: Mapping[str, Any] = data
            return

        path = Path(path)  # type: ignore[arg-type]
        if not path.is_file():
            if strict:
                raise FileNotFoundError(f"{type(self).__name__}: defaults file '{path}' not found")
            self.data = {}
            return

        try:
            parsed = json5.loads(path.read_text("utf-8"))
        except Exception as err:
            raise TypeError(f"{type(self).__name__}: failed to parse '{path}': {err}") from err
        if not isinstance(parsed, Mapping):
            raise TypeError(
                f"{type(self).__name__}: file content must be a JSON object, not '{type(parsed).__name__}'"
            )
        self.data = parsed

    def get(self, key: str) -> Any | None:
        return getByPath(self.data, key, None)

    def set(self, key: str, value: Any) -> None:
        raise RuntimeError(f"{type(self).__name__} is read-only")

    def to_dict(self) -> dict[str, Any]:
        return deepCopy(dict(self.data))

    def save(self) -> None:
        pass



# ----------------------------------------------
#        User file (json5, atomic save)
# ----------------------------------------------

class FileProvider(ConfigProvider):
    """
    Writable layer persisted to a json5 file.

        • Missing file → empty dict
        • Parse error → warning, empty dict
        • Non-object document → TypeError
    """
    def __init__(self, path: str | Path, *, readOnly: bool = False) -> None:
        self.path = Path(path)
        self.readOnly = readOnly
        self._data: dict[str, Any] = {}
        self._load()

    def _load(self) -> None:
        self._data.clear()
        if not self.path.exists():
            logger.debug("%s: '%s' is missing → starting as empty dict", type(self).__name__, self.path)
            return
        if not self.path.is_file():
            raise IsADirectoryError(f"{type(self).__name__}: '{self.path}' exists but is not a file")

        try:
            parsed = json5.loads(self.path.read_text(encoding="utf-8"))
        except Exception as err:
            logger.warning("%s: parse failed for '%s': %s", type(self).__name__, self.path, err)
            parsed = {}

        if parsed is None:
            parsed = {}
        if not isinstance(parsed, Mapping):
            raise TypeError(f"{type(self).__name__}: file content must be a JSON object, not '{type(parsed).__name__}'")
        self._data = dict(parsed)

    def get(self, key: str) -> Any | None:
        return getByPath(self._data, key, None)

    def set(self, key: str, value: Any) -> None:
        if self.readOnly:
            raise RuntimeError(f"{type(self).__name__}({self.path}) is read-only")
        if value is None:
            deleteByPath(self._data, key, pruneEmptyParents=True)
            return
        setByPath(self._data, key, deepCopy(value), createIfMissing=True)

    def to_dict(self) -> dict[str, Any]:
        return deepCopy(self._data)

    def save(self) -> None:
        if self.readOnly:
            raise RuntimeError(f"{type(self).__name__}({self.path}) is read-only")
        writeJson5Atomic(self.path, self._data)
        logger.debug("%s: saved %d keys to '%s'", type(self).__name__, len(self._data), self.path)
