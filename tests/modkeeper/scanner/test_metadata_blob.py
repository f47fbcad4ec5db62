from types import SimpleNamespace

import pytest

from modkeeper.scanner.metadata import (
    MetadataFormatError,
    decodeFixedStringArgs,
    findIdentityAttribute,
    readCompressedUInt,
)

PLUGIN_NAMES = ("BepInPlugin", "BepInPluginAttribute")


# ----------------------------
# Helpers
# ----------------------------

def ser_string(value: str | None) -> bytes:
    if value is None:
        return b"\xff"
    raw = value.encode("utf-8")
    assert len(raw) < 0x80
    return bytes([len(raw)]) + raw


def attribute_blob(*values: str | None) -> bytes:
    # prolog, fixed args, zero named args
    return b"\x01\x00" + b"".join(ser_string(v) for v in values) + b"\x00\x00"


def index(tableName: str, rowIndex: int, row=None):
    return SimpleNamespace(table=SimpleNamespace(name=tableName), row_index=rowIndex, row=row)


def type_def(name: str, methods=()):
    return SimpleNamespace(TypeName=SimpleNamespace(value=name), MethodList=list(methods))


def member_ref_ctor(className: str):
    typeRef = SimpleNamespace(TypeName=className)
    return SimpleNamespace(Class=index("TypeRef", 1, typeRef))


def custom_attribute(parentType: int, ctorIndex, blob: bytes):
    return SimpleNamespace(Parent=index("TypeDef", parentType), Type=ctorIndex, Value=SimpleNamespace(value=blob))


def tables(typeDefs, attributes, nested=()):
    return SimpleNamespace(
        TypeDef=SimpleNamespace(name="TypeDef", rows=list(typeDefs)),
        CustomAttribute=SimpleNamespace(name="CustomAttribute", rows=list(attributes)),
        NestedClass=SimpleNamespace(name="NestedClass", rows=list(nested)),
    )


# ----------------------------
# Blob decoding
# ----------------------------

def test_readCompressedUInt_allWidths():
    assert readCompressedUInt(b"\x03", 0) == (3, 1)
    assert readCompressedUInt(b"\x7f", 0) == (0x7F, 1)
    assert readCompressedUInt(b"\x80\x80", 0) == (0x80, 2)
    assert readCompressedUInt(b"\xbf\xff", 0) == (0x3FFF, 2)
    assert readCompressedUInt(b"\xc0\x00\x40\x00", 0) == (0x4000, 4)


def test_readCompressedUInt_truncatedRaises():
    with pytest.raises(MetadataFormatError):
        readCompressedUInt(b"\x80", 0)
    with pytest.raises(MetadataFormatError):
        readCompressedUInt(b"", 0)


def test_decodeFixedStringArgs_readsThreeStrings():
    blob = attribute_blob("com.example.cool", "Cool Mod", "1.2.3")
    assert decodeFixedStringArgs(blob, 3) == ("com.example.cool", "Cool Mod", "1.2.3")


def test_decodeFixedStringArgs_nullAndUnicode():
    blob = attribute_blob("id", None, "1.0 ñ")
    assert decodeFixedStringArgs(blob, 3) == ("id", None, "1.0 ñ")


def test_decodeFixedStringArgs_rejectsBadBlobs():
    with pytest.raises(MetadataFormatError):
        decodeFixedStringArgs(b"\x02\x00\x01a", 1)
    with pytest.raises(MetadataFormatError):
        decodeFixedStringArgs(attribute_blob("only-one")[:-2], 3)
    with pytest.raises(MetadataFormatError):
        decodeFixedStringArgs(b"\x01\x00\x05ab", 1)


# ----------------------------
# Table walk
# ----------------------------

def test_findIdentityAttribute_viaMemberRef():
    typeDefs = [type_def("<Module>"), type_def("Plugin")]
    attributes = [
        custom_attribute(2, index("MemberRef", 1, member_ref_ctor("CompilerGeneratedAttribute")), b"\x01\x00\x00\x00"),
        custom_attribute(2, index("MemberRef", 2, member_ref_ctor("BepInPlugin")), attribute_blob("com.x.a", "A", "1.0.0")),
    ]
    assert findIdentityAttribute(tables(typeDefs, attributes), PLUGIN_NAMES) == ("com.x.a", "A", "1.0.0")


def test_findIdentityAttribute_viaMethodDefOwner():
    # Attribute class defined in the same module: ctor is MethodDef #3 owned by type #2
    typeDefs = [
        type_def("<Module>"),
        type_def("BepInPluginAttribute", methods=[index("MethodDef", 3)]),
        type_def("Plugin", methods=[index("MethodDef", 4)]),
    ]
    attributes = [custom_attribute(3, index("MethodDef", 3), attribute_blob("com.local", "Local", "2.0"))]
    assert findIdentityAttribute(tables(typeDefs, attributes), PLUGIN_NAMES) == ("com.local", "Local", "2.0")


def test_findIdentityAttribute_nestedTypeIsVisitedAfterItsParent():
    typeDefs = [type_def("Outer"), type_def("Other"), type_def("Inner")]
    nested = [SimpleNamespace(NestedClass=index("TypeDef", 3), EnclosingClass=index("TypeDef", 1))]
    attributes = [
        custom_attribute(2, index("MemberRef", 1, member_ref_ctor("BepInPlugin")), attribute_blob("other", "", "")),
        custom_attribute(3, index("MemberRef", 1, member_ref_ctor("BepInPlugin")), attribute_blob("inner", "", "")),
    ]
    # Walk order: Outer, Inner (nested under Outer), Other
    assert findIdentityAttribute(tables(typeDefs, attributes, nested), PLUGIN_NAMES)[0] == "inner"


def test_findIdentityAttribute_skipsUndecodableAndMissing():
    typeDefs = [type_def("A"), type_def("B")]
    attributes = [
        custom_attribute(1, index("MemberRef", 1, member_ref_ctor("BepInPlugin")), b"\x01\x00\x01x"),
        custom_attribute(2, index("MemberRef", 1, member_ref_ctor("BepInPlugin")), attribute_blob("b", "B", "3")),
    ]
    assert findIdentityAttribute(tables(typeDefs, attributes), PLUGIN_NAMES) == ("b", "B", "3")
    assert findIdentityAttribute(tables(typeDefs, []), PLUGIN_NAMES) is None
    assert findIdentityAttribute(SimpleNamespace(), PLUGIN_NAMES) is None
