"""Turn annotation text into a structured TypeRef."""
from __future__ import annotations

import re
from typing import Callable

from ..model import TypeKind, TypeRef

_NAME_RE = re.compile(r"^([A-Za-z_]\w*(?:\s*\.\s*[A-Za-z_]\w*)*)\s*(\[.*\])?$", re.DOTALL)

UNION_TYPES = frozenset({"typing.Optional", "typing.Union"})
CLASS_VAR_TYPES = frozenset({"typing.ClassVar"})


def _has_top_level_union(text: str) -> bool:
    depth = 0
    for char in text:
        if char in "[(":
            depth += 1
        elif char in "])":
            depth -= 1
        elif char == "|" and depth == 0:
            return True
    return False


def _unquote(text: str) -> str:
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        return text[1:-1].strip()
    return text


def type_ref_from_text(text: str, resolve: Callable[[str], str]) -> TypeRef:
    """Build a TypeRef from annotation source text.

    Args:
        text: Annotation as written, e.g. ``"dt.datetime"`` or ``list[int]``
        resolve: Maps a (possibly dotted) name to its fully qualified name

    Returns:
        TypeRef with the base name resolved and generic arguments kept as written
    """
    written = text.strip()
    stripped = _unquote(written)

    if _has_top_level_union(stripped):
        return TypeRef(written=written, qualified=stripped, kind=TypeKind.UNION)

    match = _NAME_RE.match(stripped)
    if not match:
        return TypeRef(written=written, qualified=stripped, kind=TypeKind.OTHER)

    base = re.sub(r"\s+", "", match.group(1))
    arguments = match.group(2) or ""
    qualified = resolve(base)

    if qualified in UNION_TYPES:
        kind = TypeKind.UNION
    elif arguments:
        kind = TypeKind.GENERIC
    else:
        kind = TypeKind.NAME

    return TypeRef(written=written, qualified=qualified, arguments=arguments, kind=kind)


def is_class_var(type_ref: TypeRef) -> bool:
    """Whether an annotation declares a class variable rather than a field."""
    return type_ref.qualified in CLASS_VAR_TYPES
