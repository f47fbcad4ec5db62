# modkeeper/core/dictpath.py
from __future__ import annotations

from collections.abc import Mapping, MutableMapping
from typing import Any

__all__ = ["splitPath", "getByPath", "setByPath", "hasPath", "deleteByPath", "deepMerge"]



# ----------------------------------------------
#                  path parsing
# ----------------------------------------------

def splitPath(path: str) -> list[str]:
    """
    Split a dotted config key into segments. A backslash escapes the next
    character, so "archives.\\.7z" addresses the key ".7z".

        "logging.level"  -> ["logging", "level"]
    """
    if not isinstance(path, str) or not path:
        raise ValueError("Path must be a non-empty string")

    parts: list[str] = []
    curr: list[str] = []
    escaped = False
    for ch in path:
        if escaped:
            curr.append(ch)
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == ".":
            parts.append("".join(curr))
            curr = []
        else:
            curr.append(ch)
    if escaped:
        raise ValueError(f"Path '{path}' ends with a dangling escape")
    parts.append("".join(curr))

    if any(part == "" for part in parts):
        raise ValueError(f"Path '{path}' contains empty segment(s)")
    return parts



# ----------------------------------------------
#                   Public API
# ----------------------------------------------

def getByPath(data: Mapping[str, Any], path: str, default: Any = None) -> Any:
    """Value at path, or default when any hop is missing or not a mapping."""
    try:
        parts = splitPath(path)
    except ValueError:
        return default

    current: Any = data
    for part in parts:
        if not isinstance(current, Mapping) or part not in current:
            return default
        current = current[part]
    return current



def hasPath(data: Mapping[str, Any], path: str) -> bool:
    needle = object()
    return getByPath(data, path, needle) is not needle



def setByPath(data: MutableMapping[str, Any], path: str, value: Any, *, createIfMissing: bool = True) -> None:
    """
    Write value at path. Intermediate dicts are created when createIfMissing
    is set; otherwise a missing hop raises KeyError. A hop that exists but
    is not a mapping raises TypeError.
    """
    parts = splitPath(path)
    current: Any = data
    for part in parts[:-1]:
        if part not in current:
            if not createIfMissing:
                raise KeyError(f"Path segment '{part}' not found")
            current[part] = {}
        current = current[part]
        if not isinstance(current, MutableMapping):
            raise TypeError(f"Path segment '{part}' of '{path}' is not a mapping")
    current[parts[-1]] = value



def deleteByPath(data: MutableMapping[str, Any], path: str, *, pruneEmptyParents: bool = True) -> bool:
    """
    Remove the value at path. Returns True when something was removed.
    Parents left empty by the removal are dropped too (never the root).
    """
    parts = splitPath(path)
    stack: list[tuple[MutableMapping[str, Any], str]] = []
    current: Any = data
    for part in parts[:-1]:
        if not isinstance(current, MutableMapping) or part not in current:
            return False
        stack.append((current, part))
        current = current[part]

    last = parts[-1]
    if not isinstance(current, MutableMapping) or last not in current:
        return False
    del current[last]

    if pruneEmptyParents:
        for parent, key in reversed(stack):
            child = parent.get(key)
            if isinstance(child, MutableMapping) and not child:
                del parent[key]
            else:
                break
    return True



def deepMerge(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
    """
    New dict with overlay merged over base. Nested mappings merge key by
    key; every other value (lists included) is replaced wholesale.
    """
    out: dict[str, Any] = dict(base)
    for key, value in overlay.items():
        existing = out.get(key)
        if isinstance(existing, Mapping) and isinstance(value, Mapping):
            out[key] = deepMerge(existing, value)
        else:
            out[key] = value
    return out
