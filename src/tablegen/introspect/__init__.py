"""Entity metadata sources.

- Source scanner: tree-sitter over .py files under the source roots
- Reflection adapter: live classes marked with a tablegen decorator
- Field sorter: recovers source order of fields
"""
from __future__ import annotations

from .annotations import type_ref_from_text
from .extract_entities import MarkedEntity, extract_entities, field_positions
from .field_sorter import FieldSorter
from .parsers import parse_file, parse_source
from .reflection import collect_from_modules, entity_from_class, marked_classes
from .scanner import collect_entities, module_name_for, scan_sources

__all__ = [
    "FieldSorter",
    "MarkedEntity",
    "collect_entities",
    "collect_from_modules",
    "entity_from_class",
    "extract_entities",
    "field_positions",
    "marked_classes",
    "module_name_for",
    "parse_file",
    "parse_source",
    "scan_sources",
    "type_ref_from_text",
]
