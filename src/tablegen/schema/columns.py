"""Column model construction for one entity.

Column indices are structural: index ``i`` must always map to the same field
across recompilations, otherwise previously persisted data laid out by column
index is read back into the wrong columns. Fields are therefore ordered by
recovered source position before indices are assigned.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Sequence

from ..introspect.field_sorter import FieldSorter
from ..model import Entity, Field
from .classifier import Schema
from .normalizer import ColumnType, normalize_field


@dataclass(frozen=True)
class Column:
    """Normalized, ordered description of one field."""
    name: str
    type: ColumnType
    original_type: str
    field_type: str
    param_type: str
    index: int
    is_link: bool = False
    link_target: str | None = None  # capitalized entity name, only for links
    link_entity: str | None = None

    @property
    def is_supported(self) -> bool:
        return self.type is not ColumnType.UNSUPPORTED

    def as_template_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        return data


def columns_for_fields(fields: Sequence[Field], schema: Schema) -> list[Column]:
    """Build columns for fields that are already in their final order."""
    columns: list[Column] = []
    for index, field in enumerate(fields):
        normalized = normalize_field(field.type, schema)
        columns.append(Column(
            name=field.name,
            type=normalized.column_type,
            original_type=str(field.type),
            field_type=normalized.field_type,
            param_type=normalized.param_type,
            index=index,
            is_link=normalized.is_link,
            link_target=normalized.link_target,
            link_entity=normalized.link_entity,
        ))
    return columns


def build_columns(
    entity: Entity,
    schema: Schema,
    field_sorter: FieldSorter | None = None,
) -> list[Column]:
    """Produce the ordered column list of an entity.

    Args:
        entity: Entity to describe
        schema: Classification of the current round
        field_sorter: Sorter recovering source order (a fresh one is used if omitted)

    Returns:
        Columns with contiguous indices 0..n-1 in source order
    """
    if field_sorter is None:
        field_sorter = FieldSorter()
    fields = field_sorter.sort_fields(entity)
    return columns_for_fields(fields, schema)
