"""Field type normalization.

Maps a field's declared type to one of the canonical storage column types,
plus the two normalized type strings the templates use: the field type
(internal storage representation) and the parameter type (accepted at the
accessor call boundary).
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..model import TypeRef
from .classifier import Schema


class ColumnType(str, Enum):
    """Canonical storage column types."""
    INTEGER64 = "Integer64"
    BOOLEAN = "Boolean"
    STRING = "String"
    DATE = "Date"
    BINARY = "Binary"
    LINK = "Link"
    VARIANT = "Variant"
    UNSUPPORTED = "Unsupported"


INTEGRAL_TYPES = frozenset({
    "int",
    "numpy.int8", "numpy.int16", "numpy.int32", "numpy.int64",
    "numpy.intc", "numpy.int_",
    "ctypes.c_byte", "ctypes.c_short", "ctypes.c_int", "ctypes.c_long", "ctypes.c_longlong",
    "ctypes.c_int8", "ctypes.c_int16", "ctypes.c_int32", "ctypes.c_int64",
})
# numpy 2 reports numpy.bool_ as numpy.bool
BOOLEAN_TYPES = frozenset({"bool", "numpy.bool", "numpy.bool_", "ctypes.c_bool"})
STRING_TYPES = frozenset({"str"})
DATE_TYPES = frozenset({"datetime.datetime"})
RAW_BYTES_TYPE = "bytes"
BUFFER_TYPE = "memoryview"
BINARY_TYPES = frozenset({RAW_BYTES_TYPE, BUFFER_TYPE})
VARIANT_TYPES = frozenset({"object", "typing.Any"})

WIDE_INTEGER_TYPE = "int"
VARIANT_WRAPPER_TYPE = "tablegen.mixed.Mixed"


@dataclass(frozen=True)
class NormalizedType:
    """Result of normalizing one field type."""
    column_type: ColumnType
    field_type: str
    param_type: str
    link_target: str | None = None
    link_entity: str | None = None  # qualified name of the linked entity

    @property
    def is_link(self) -> bool:
        return self.column_type is ColumnType.LINK


def capitalize(name: str) -> str:
    """Uppercase the first character only; the rest is left as is."""
    return name[:1].upper() + name[1:]


def column_type(type_ref: TypeRef, schema: Schema) -> ColumnType:
    """Canonical column type for a declared type. First matching rule wins."""
    declared = str(type_ref)

    if declared in INTEGRAL_TYPES:
        return ColumnType.INTEGER64
    if declared in BOOLEAN_TYPES:
        return ColumnType.BOOLEAN
    if declared in STRING_TYPES:
        return ColumnType.STRING
    if declared in DATE_TYPES:
        return ColumnType.DATE
    if declared in BINARY_TYPES:
        return ColumnType.BINARY
    if type_ref.is_declared and schema.is_nested(type_ref.identity):
        return ColumnType.LINK
    if declared in VARIANT_TYPES:
        return ColumnType.VARIANT
    return ColumnType.UNSUPPORTED


def adjusted_field_type(type_ref: TypeRef) -> str:
    declared = str(type_ref)

    if declared in INTEGRAL_TYPES:
        return WIDE_INTEGER_TYPE
    if declared == RAW_BYTES_TYPE:
        return BUFFER_TYPE
    if declared in VARIANT_TYPES:
        return VARIANT_WRAPPER_TYPE
    return declared


def param_type(type_ref: TypeRef) -> str:
    # Raw bytes stay raw here; only the stored field type becomes a buffer.
    declared = str(type_ref)

    if declared in INTEGRAL_TYPES:
        return WIDE_INTEGER_TYPE
    if declared in VARIANT_TYPES:
        return VARIANT_WRAPPER_TYPE
    return declared


def link_target(type_ref: TypeRef) -> str:
    """Capitalized simple name of the referenced entity."""
    return capitalize(type_ref.simple_name)


def normalize_field(type_ref: TypeRef, schema: Schema) -> NormalizedType:
    """Normalize one declared field type. Total: never raises for an unknown type."""
    canonical = column_type(type_ref, schema)
    return NormalizedType(
        column_type=canonical,
        field_type=adjusted_field_type(type_ref),
        param_type=param_type(type_ref),
        link_target=link_target(type_ref) if canonical is ColumnType.LINK else None,
        link_entity=type_ref.identity if canonical is ColumnType.LINK else None,
    )
