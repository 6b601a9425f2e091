"""Decorators that mark model classes for code generation.

Usage::

    from tablegen.markers import table

    @table
    class Person:
        name: str
        age: int

The decorator leaves the class untouched apart from recording which marker
was applied, so the reflection adapter can find marked classes in a live
module. The source scanner recognizes the same decorators statically.
"""
from __future__ import annotations

from typing import TypeVar

T = TypeVar("T", bound=type)

MARKERS_NAMESPACE = __name__
TABLE_MARKER = f"{__name__}.table"

MARKER_ATTRIBUTE = "__tablegen_marker__"


def table(cls: T | None = None, /):
    """Mark a class as a table entity. Works with and without parentheses."""
    def mark(target: T) -> T:
        setattr(target, MARKER_ATTRIBUTE, TABLE_MARKER)
        return target

    if cls is None:
        return mark
    return mark(cls)
