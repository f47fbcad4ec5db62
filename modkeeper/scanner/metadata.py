# modkeeper/scanner/metadata.py
from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

import dnfile

logger = logging.getLogger(__name__)

__all__ = [
    "MetadataFormatError",
    "readCompressedUInt",
    "decodeFixedStringArgs",
    "findIdentityAttribute",
    "readIdentityAttribute",
]

# ------------------------------------------------------------------ #
# Static reading of CLI metadata (ECMA-335 partition II).
#
# Nothing here loads or runs the module: dnfile parses the PE image and
# the #~ table stream, we walk TypeDef -> CustomAttribute rows and decode
# the attribute value blob by hand.
# ------------------------------------------------------------------ #

_BLOB_PROLOG = b"\x01\x00"
_NULL_STRING = 0xFF



class MetadataFormatError(ValueError):
    """A metadata structure (blob, coded index) is not what we expect."""
    pass



# ------------------------------------------------------------------ #
# Blob decoding
# ------------------------------------------------------------------ #

def readCompressedUInt(data: bytes, pos: int) -> tuple[int, int]:
    """
    Read an ECMA-335 compressed unsigned integer (II.23.2).
    Returns (value, newPosition).
    """
    if pos >= len(data):
        raise MetadataFormatError("Compressed integer runs past end of blob")
    first = data[pos]
    if first & 0x80 == 0:
        return first, pos + 1
    if first & 0xC0 == 0x80:
        if pos + 2 > len(data):
            raise MetadataFormatError("Truncated 2-byte compressed integer")
        return ((first & 0x3F) << 8) | data[pos + 1], pos + 2
    if first & 0xE0 == 0xC0:
        if pos + 4 > len(data):
            raise MetadataFormatError("Truncated 4-byte compressed integer")
        value = ((first & 0x1F) << 24) | (data[pos + 1] << 16) | (data[pos + 2] << 8) | data[pos + 3]
        return value, pos + 4
    raise MetadataFormatError(f"Invalid compressed integer lead byte 0x{first:02x}")



def decodeFixedStringArgs(blob: bytes, count: int) -> tuple[str | None, ...]:
    """
    Decode the first `count` fixed arguments of a custom attribute value blob,
    assuming they are all SerStrings (II.23.3):

        prolog 0x0001
        SerString := 0xFF (null) | compressedLength utf8Bytes
    """
    if len(blob) < 2 or blob[:2] != _BLOB_PROLOG:
        raise MetadataFormatError("Custom attribute blob has no 0x0001 prolog")

    pos = 2
    out: list[str | None] = []
    for _ in range(count):
        if pos >= len(blob):
            raise MetadataFormatError(f"Blob ended after {len(out)} of {count} string arguments")
        if blob[pos] == _NULL_STRING:
            out.append(None)
            pos += 1
            continue
        length, pos = readCompressedUInt(blob, pos)
        end = pos + length
        if end > len(blob):
            raise MetadataFormatError("SerString runs past end of blob")
        try:
            out.append(blob[pos:end].decode("utf-8"))
        except UnicodeDecodeError as err:
            raise MetadataFormatError(f"SerString is not UTF-8: {err}") from err
        pos = end
    return tuple(out)



# ------------------------------------------------------------------ #
# dnfile value adapters (heap items differ between dnfile releases)
# ------------------------------------------------------------------ #

def _text(item: Any) -> str:
    if item is None:
        return ""
    if isinstance(item, str):
        return item
    value = getattr(item, "value", None)
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(item)



def _blob(item: Any) -> bytes:
    if isinstance(item, (bytes, bytearray)):
        return bytes(item)
    value = getattr(item, "value", None)
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    raise MetadataFormatError(f"Unsupported blob value of type {type(item).__name__}")



def _target(index: Any) -> tuple[str | None, int, Any]:
    """
    Resolve a (coded) table index into (tableName, 1-based rowIndex, row).
    """
    if index is None:
        return None, 0, None
    table = getattr(index, "table", None)
    tableName = getattr(table, "name", None)
    rowIndex = int(getattr(index, "row_index", 0) or 0)
    return tableName, rowIndex, getattr(index, "row", None)



def _rows(mdtables: Any, name: str) -> list[Any]:
    table = getattr(mdtables, name, None)
    if table is None:
        return []
    return list(getattr(table, "rows", None) or [])



# ------------------------------------------------------------------ #
# Table walk
# ------------------------------------------------------------------ #

def _methodOwners(typeRows: list[Any]) -> dict[int, Any]:
    """MethodDef row index -> owning TypeDef row."""
    owners: dict[int, Any] = {}
    for typeRow in typeRows:
        for methodIndex in getattr(typeRow, "MethodList", None) or []:
            _tableName, rowIndex, _row = _target(methodIndex)
            if rowIndex:
                owners.setdefault(rowIndex, typeRow)
    return owners



def _attributeTypeName(attributeRow: Any, methodOwners: dict[int, Any]) -> str | None:
    """
    Name of the attribute class whose constructor the CustomAttribute row points at.
    """
    tableName, rowIndex, ctorRow = _target(getattr(attributeRow, "Type", None))
    if tableName == "MemberRef" and ctorRow is not None:
        classTable, _classIndex, classRow = _target(getattr(ctorRow, "Class", None))
        if classTable in ("TypeRef", "TypeDef") and classRow is not None:
            return _text(getattr(classRow, "TypeName", None))
        return None
    if tableName == "MethodDef":
        owner = methodOwners.get(rowIndex)
        if owner is not None:
            return _text(getattr(owner, "TypeName", None))
    return None



def _walkTypes(typeCount: int, nestedRows: list[Any]) -> Iterator[int]:
    """
    Yield TypeDef row indices: top-level types in table order, each followed
    depth-first by its nested types.
    """
    children: dict[int, list[int]] = defaultdict(list)
    nested: set[int] = set()
    for row in nestedRows:
        _t, nestedIndex, _r = _target(getattr(row, "NestedClass", None))
        _t, enclosingIndex, _r = _target(getattr(row, "EnclosingClass", None))
        if nestedIndex and enclosingIndex:
            children[enclosingIndex].append(nestedIndex)
            nested.add(nestedIndex)

    seen: set[int] = set()

    def visit(index: int) -> Iterator[int]:
        if index in seen:
            return
        seen.add(index)
        yield index
        for child in children.get(index, ()):
            yield from visit(child)

    for index in range(1, typeCount + 1):
        if index not in nested:
            yield from visit(index)



def findIdentityAttribute(
    mdtables: Any,
    attributeNames: Iterable[str],
    *,
    argCount: int = 3,
) -> tuple[str | None, ...] | None:
    """
    Return the string arguments of the first identity attribute found on any
    type, or None. Attributes whose blob cannot be decoded as `argCount`
    strings are skipped.
    """
    names = set(attributeNames)
    typeRows = _rows(mdtables, "TypeDef")
    if not typeRows:
        return None

    attributesByType: dict[int, list[Any]] = defaultdict(list)
    for attributeRow in _rows(mdtables, "CustomAttribute"):
        parentTable, parentIndex, _parentRow = _target(getattr(attributeRow, "Parent", None))
        if parentTable == "TypeDef" and parentIndex:
            attributesByType[parentIndex].append(attributeRow)
    if not attributesByType:
        return None

    owners = _methodOwners(typeRows)
    for typeIndex in _walkTypes(len(typeRows), _rows(mdtables, "NestedClass")):
        for attributeRow in attributesByType.get(typeIndex, ()):
            if _attributeTypeName(attributeRow, owners) not in names:
                continue
            try:
                return decodeFixedStringArgs(_blob(getattr(attributeRow, "Value", None)), argCount)
            except MetadataFormatError as err:
                logger.debug("Identity attribute on type #%d has unreadable arguments: %s", typeIndex, err)
    return None



def readIdentityAttribute(path: Path, attributeNames: Iterable[str]) -> tuple[str | None, ...] | None:
    """
    Open `path` with dnfile (metadata only) and look for the identity attribute.
    Raises whatever dnfile/pefile raise for unreadable input; callers treat that
    as "not a package".
    """
    pe = dnfile.dnPE(str(path))
    try:
        net = getattr(pe, "net", None)
        mdtables = getattr(net, "mdtables", None) if net is not None else None
        if mdtables is None:
            # Native image or no metadata stream
            return None
        return findIdentityAttribute(mdtables, attributeNames)
    finally:
        pe.close()
