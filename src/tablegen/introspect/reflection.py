"""Build entities from live, imported classes.

Names come from ``__module__``/``__qualname__`` and fields from the class's
own annotations. Reflection gives no source positions: field order is
recovered later by the FieldSorter.
"""
from __future__ import annotations

import inspect
import sys
import types
import typing
from collections import defaultdict
from typing import Any, Iterable

from ..markers import MARKER_ATTRIBUTE
from ..model import Entity, Field, ScopeElement, ScopeKind, TypeKind, TypeRef
from .annotations import is_class_var, type_ref_from_text


def qualified_type_name(typ: type) -> str:
    """``int`` for builtins, ``module.QualName`` for everything else."""
    module = getattr(typ, "__module__", None)
    qualname = getattr(typ, "__qualname__", None) or getattr(typ, "__name__", repr(typ))
    if module in (None, "builtins"):
        return qualname
    return f"{module}.{qualname}"


def _module_resolver(module_name: str):
    namespace = vars(sys.modules[module_name]) if module_name in sys.modules else {}

    def resolve(name: str) -> str:
        head, _, rest = name.partition(".")
        obj = namespace.get(head)
        if obj is None:
            return name
        if isinstance(obj, types.ModuleType):
            target = obj.__name__
        elif isinstance(obj, type) or obj is typing.Any:
            target = qualified_type_name(obj)
        elif hasattr(obj, "__module__") and hasattr(obj, "__qualname__"):
            target = qualified_type_name(obj)
        elif getattr(obj, "__module__", None) == "typing":
            # typing special forms such as Optional, Union, ClassVar
            target = f"typing.{getattr(obj, '_name', head)}"
        else:
            return name
        return f"{target}.{rest}" if rest else target

    return resolve


def _argument_text(arg: Any) -> str:
    if isinstance(arg, type):
        return qualified_type_name(arg)
    return repr(arg)


def type_ref_from_annotation(annotation: Any, module_name: str) -> TypeRef:
    """Build a TypeRef from a runtime annotation object."""
    if isinstance(annotation, str):
        return type_ref_from_text(annotation, _module_resolver(module_name))

    if annotation is typing.Any:
        return TypeRef(written="typing.Any", qualified="typing.Any")

    origin = typing.get_origin(annotation)
    if origin is not None:
        written = repr(annotation)
        if origin is typing.Union or origin is types.UnionType:
            return TypeRef(written=written, qualified=written, kind=TypeKind.UNION)
        if origin is typing.ClassVar:
            return TypeRef(written=written, qualified="typing.ClassVar", kind=TypeKind.GENERIC)
        args = ", ".join(_argument_text(a) for a in typing.get_args(annotation))
        qualified = qualified_type_name(origin)
        return TypeRef(written=written, qualified=qualified, arguments=f"[{args}]", kind=TypeKind.GENERIC)

    if isinstance(annotation, type):
        qualified = qualified_type_name(annotation)
        return TypeRef(written=qualified, qualified=qualified)

    written = repr(annotation)
    return TypeRef(written=written, qualified=written, kind=TypeKind.OTHER)


def _scope_for(cls: type) -> tuple[ScopeElement, ...]:
    module_name = cls.__module__
    parts = [p for p in cls.__qualname__.split(".") if p != "<locals>"]

    scope = []
    for depth in range(len(parts) - 1, 0, -1):
        scope.append(ScopeElement(ScopeKind.CLASS, ".".join([module_name] + parts[:depth])))
    scope.append(ScopeElement(ScopeKind.MODULE, module_name))

    module = sys.modules.get(module_name)
    if module is not None and hasattr(module, "__path__"):
        package = module_name
    else:
        package = module_name.rpartition(".")[0]
    if package:
        scope.append(ScopeElement(ScopeKind.PACKAGE, package))
    return tuple(scope)


def _source_file(cls: type) -> str | None:
    try:
        return inspect.getsourcefile(cls)
    except (TypeError, OSError):
        return None


def entity_from_class(cls: type) -> Entity:
    """Describe one live class as an Entity (fields in annotation order, no positions)."""
    fields = []
    for name, annotation in inspect.get_annotations(cls).items():
        type_ref = type_ref_from_annotation(annotation, cls.__module__)
        if is_class_var(type_ref):
            continue
        fields.append(Field(name=name, type=type_ref))

    qualname = ".".join(p for p in cls.__qualname__.split(".") if p != "<locals>")
    return Entity(
        qualified_name=f"{cls.__module__}.{qualname}",
        simple_name=cls.__name__,
        scope=_scope_for(cls),
        fields=tuple(fields),
        source_file=_source_file(cls),
    )


def marked_classes(module: types.ModuleType) -> list[type]:
    """Classes in a module carrying a marker, including nested ones, in definition order."""
    found: list[type] = []
    seen: set[int] = set()

    def visit(namespace: dict) -> None:
        for obj in list(namespace.values()):
            if not isinstance(obj, type) or obj.__module__ != module.__name__ or id(obj) in seen:
                continue
            seen.add(id(obj))
            if MARKER_ATTRIBUTE in vars(obj):
                found.append(obj)
            visit(vars(obj))

    visit(vars(module))
    return found


def collect_from_modules(modules: Iterable[types.ModuleType]) -> dict[str, list[Entity]]:
    """Group the marked classes of live modules by marker."""
    markers: dict[str, list[Entity]] = defaultdict(list)
    for module in modules:
        for cls in marked_classes(module):
            markers[vars(cls)[MARKER_ATTRIBUTE]].append(entity_from_class(cls))
    return dict(markers)
