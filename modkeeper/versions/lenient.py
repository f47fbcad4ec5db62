# modkeeper/versions/lenient.py
from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering

__all__ = [
    "ZERO_VERSION",
    "LenientVersion",
    "parseLenientVersion",
    "normalizeVersion",
    "compareVersions",
    "versionsEqual",
    "sortVersions",
]



ZERO_VERSION = "0.0.0"

# Leading "v"/"V" only when a digit follows: "v1.2" -> "1.2", "vanilla" stays.
_PREFIX_RE = re.compile(r"^[vV](?=\d)")
_SEGMENT_RE = re.compile(r"^(?P<number>\d*)(?P<rest>.*)$", re.DOTALL)

# Placeholder versions the host toolchain emits when nothing was declared.
_PLACEHOLDERS = {"", "0.0.0.0"}



@total_ordering
@dataclass(frozen=True)
class LenientVersion:
    """
    Forgiving numeric-dot version.

    Each dot separated segment is split into a leading integer and whatever
    text follows it ("0-rc1" -> (0, "-rc1")). Missing segments count as
    (0, ""), so "2" == "2.0" == "2.0.0". Text tails compare lexically, which
    makes "1.0.0-rc" sort *after* "1.0.0" (no semver pre-release rules).
    """
    raw: str
    segments: tuple[tuple[int, str], ...]

    def __str__(self) -> str:
        return self.raw

    def _padded(self, length: int) -> tuple[tuple[int, str], ...]:
        return self.segments + ((0, ""),) * (length - len(self.segments))

    def _cmpPair(self, other: LenientVersion) -> tuple[tuple, tuple]:
        length = max(len(self.segments), len(other.segments))
        return self._padded(length), other._padded(length)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LenientVersion):
            return NotImplemented
        first, second = self._cmpPair(other)
        return first == second

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, LenientVersion):
            return NotImplemented
        first, second = self._cmpPair(other)
        return first < second

    def __hash__(self) -> int:
        # Trailing zero segments must not change the hash ("2" == "2.0.0").
        trimmed = list(self.segments)
        while trimmed and trimmed[-1] == (0, ""):
            trimmed.pop()
        return hash(tuple(trimmed))



def normalizeVersion(raw: str | None) -> str:
    """
    Blank and placeholder versions become "0.0.0"; everything else is trimmed
    and kept as written.
    """
    if raw is None:
        return ZERO_VERSION
    text = str(raw).strip()
    if text in _PLACEHOLDERS:
        return ZERO_VERSION
    return text



def parseLenientVersion(raw: str | None) -> LenientVersion:
    """
    Parse any version string without raising.

        "1.2.3"      -> ((1,""), (2,""), (3,""))
        "v2.0"       -> ((2,""), (0,""))
        "1.0.0-rc1"  -> ((1,""), (0,""), (0,"-rc1"))
        "13.0.4+abc" -> ((13,""), (0,""), (4,"+abc"))
        "beta"       -> ((0,"beta"),)
        "" / None    -> "0.0.0"
    """
    text = normalizeVersion(raw)
    body = _PREFIX_RE.sub("", text)

    segments: list[tuple[int, str]] = []
    for part in body.split("."):
        mtch = _SEGMENT_RE.match(part)
        # The pattern accepts every string; the guard keeps type checkers calm.
        number = mtch.group("number") if mtch else ""
        rest = mtch.group("rest") if mtch else part
        segments.append((int(number) if number else 0, rest))

    return LenientVersion(raw=text, segments=tuple(segments))



def compareVersions(first: str | None, second: str | None) -> int:
    """
    Returns -1 if first < second, 0 if equal, 1 if first > second.
    """
    left = parseLenientVersion(first)
    right = parseLenientVersion(second)
    if left < right:
        return -1
    if left > right:
        return 1
    return 0



def versionsEqual(first: str | None, second: str | None) -> bool:
    return compareVersions(first, second) == 0



def sortVersions(versions: list[str], *, reverse: bool = False) -> list[str]:
    """
    Sort version strings by lenient order, raw text as a stable tie-break.
    """
    return sorted(versions, key=lambda value: (parseLenientVersion(value), value), reverse=reverse)
