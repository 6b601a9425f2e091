"""Recover source order of entity fields.

The order in which a metadata source exposes members is not trusted. Fields
are sorted by their byte offset in the declaring file; positions missing from
the metadata are recovered by re-parsing that file.
"""
from __future__ import annotations

import logging
from pathlib import Path

from ..diagnostics import Diagnostics
from ..model import Entity, Field
from .extract_entities import field_positions
from .parsers import parse_file

logger = logging.getLogger(__name__)


class FieldSorter:
    """Sorts fields by source position. One instance per processing round."""

    def __init__(self, diagnostics: Diagnostics | None = None) -> None:
        self.diagnostics = diagnostics
        self._parsed: dict[str, tuple[bytes, any] | None] = {}

    def sort_fields(self, entity: Entity) -> list[Field]:
        """Return the entity's fields in source order.

        Falls back to the exposed order, with a warning, when positions can't
        be recovered for every field.
        """
        fields = list(entity.fields)
        if not fields:
            return fields

        if all(f.position is not None for f in fields):
            return sorted(fields, key=lambda f: f.position)

        positions = self._recover_positions(entity)
        if positions is None:
            self._warn(entity, "Source of entity not available; keeping declaration order of fields")
            return fields

        missing = [f.name for f in fields if f.name not in positions]
        if missing:
            self._warn(
                entity,
                f"Fields not found in source ({', '.join(missing)}); keeping declaration order of fields",
            )
            return fields

        return sorted(fields, key=lambda f: positions[f.name])

    def _recover_positions(self, entity: Entity) -> dict[str, int] | None:
        if not entity.source_file:
            return None

        path = str(Path(entity.source_file))
        if path not in self._parsed:
            self._parsed[path] = parse_file(path)
        parsed = self._parsed[path]
        if parsed is None:
            return None

        source, tree = parsed
        return field_positions(source, tree, entity.class_path)

    def _warn(self, entity: Entity, message: str) -> None:
        if self.diagnostics is not None:
            self.diagnostics.warning(message, entity=entity.simple_name)
        else:
            logger.warning(f"{entity.simple_name}: {message}")
