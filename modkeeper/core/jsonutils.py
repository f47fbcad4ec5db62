# modkeeper/core/jsonutils.py
from __future__ import annotations

import copy
import json
import os
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar

import json5

__all__ = ["deepCopy", "toJsonSafe", "safeJsonDumps", "readJson5File", "writeJson5Atomic"]

T = TypeVar("T")



def deepCopy(value: T) -> T:
    """Deep copy of JSON-like config data; raises RuntimeError when it cannot be copied."""
    try:
        return copy.deepcopy(value)
    except Exception as err:
        raise RuntimeError(f"deepCopy failed - {err.__class__.__name__} {err}") from err



def toJsonSafe(value: Any, *, _depth: int = 0, _maxDepth: int = 32) -> Any:
    """
    Best-effort coercion into JSON-serializable data for log records:
    paths and enums become strings, sets and tuples become lists, anything
    unknown falls back to repr().
    """
    if _depth > _maxDepth:
        return "<max depth>"
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Enum):
        return toJsonSafe(value.value, _depth=_depth + 1, _maxDepth=_maxDepth)
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, Mapping):
        return {str(k): toJsonSafe(v, _depth=_depth + 1, _maxDepth=_maxDepth) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [toJsonSafe(v, _depth=_depth + 1, _maxDepth=_maxDepth) for v in value]
    return repr(value)



def safeJsonDumps(value: Any) -> str:
    """Compact single-line JSON; never raises for odd values."""
    return json.dumps(toJsonSafe(value), ensure_ascii=False, separators=(",", ":"), allow_nan=False)



def readJson5File(path: Path) -> Any:
    """Parse a json5 document; lets OSError and ValueError through."""
    return json5.loads(path.read_text(encoding="utf-8"))



def writeJson5Atomic(path: Path, data: Any) -> None:
    """
    Serialize data as json5 next to path and swap it in with os.replace,
    so readers never see a half-written file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    out = json5.dumps(data, indent=2, quote_keys=True, ensure_ascii=False)
    tmpPath = path.with_suffix(path.suffix + ".tmp")
    with open(tmpPath, "w", encoding="utf-8") as fl:
        fl.write(out)
        if not out.endswith("\n"):
            fl.write("\n")
    os.replace(tmpPath, path)
