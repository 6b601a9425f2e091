"""Entity and field metadata shared by the introspection frontends and the schema engine.

Instances are read-only views over what a frontend (source scanner or
reflection adapter) could recover about a marked class. They are built once
per processing round and never mutated afterwards.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class TypeKind(str, Enum):
    """Shape of a declared field type."""
    NAME = "NAME"  # plain or dotted name: int, datetime.datetime
    GENERIC = "GENERIC"  # subscripted name: list[int]
    UNION = "UNION"  # int | None, Optional[int]
    OTHER = "OTHER"  # literals, calls, anything we can't name


class ScopeKind(str, Enum):
    """Kind of lexical scope enclosing an entity."""
    CLASS = "CLASS"
    MODULE = "MODULE"
    PACKAGE = "PACKAGE"


@dataclass(frozen=True)
class TypeRef:
    """Structured descriptor of a field's declared type."""
    written: str  # annotation text as it appears in the source
    qualified: str  # base name resolved through the module's imports
    arguments: str = ""  # generic argument text, e.g. "[int]"
    kind: TypeKind = TypeKind.NAME

    @property
    def identity(self) -> str:
        """Type identity used for reference detection (generic arguments ignored)."""
        return self.qualified

    @property
    def is_declared(self) -> bool:
        """Whether this type can refer to another entity."""
        return self.kind in (TypeKind.NAME, TypeKind.GENERIC)

    @property
    def simple_name(self) -> str:
        return self.qualified.rsplit(".", 1)[-1]

    def __str__(self) -> str:
        return f"{self.qualified}{self.arguments}"


@dataclass(frozen=True)
class ScopeElement:
    """One link of an entity's enclosing-scope chain."""
    kind: ScopeKind
    name: str  # qualified name of the scope


@dataclass(frozen=True)
class Field:
    """A declared, annotated member of an entity."""
    name: str
    type: TypeRef
    position: int | None = None  # byte offset in the source file, when known


@dataclass(frozen=True)
class Entity:
    """A marked data-model class."""
    qualified_name: str
    simple_name: str
    scope: tuple[ScopeElement, ...] = ()  # innermost first
    fields: tuple[Field, ...] = field(default_factory=tuple)
    source_file: str | None = None

    @property
    def module(self) -> str | None:
        """Qualified name of the module declaring this entity."""
        for element in self.scope:
            if element.kind is ScopeKind.MODULE:
                return element.name
        return None

    @property
    def class_path(self) -> list[str]:
        """Class names from the module level down to this entity."""
        module = self.module
        if module and self.qualified_name.startswith(module + "."):
            return self.qualified_name[len(module) + 1:].split(".")
        return [self.simple_name]
