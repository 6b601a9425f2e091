"""Reference-graph classification of entities into top-level tables and sub-tables.

An entity is a sub-table when any candidate (itself included) declares a
field whose type identity is that entity's qualified name. Everything else is
a top-level table.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Iterable, Mapping

from ..model import Entity

logger = logging.getLogger(__name__)


class Classification(str, Enum):
    TOP_LEVEL = "TopLevel"
    NESTED = "Nested"


def referenced_identities(entities: Iterable[Entity]) -> set[str]:
    """Collect the type identity of every declared field across the candidate set."""
    referenced: set[str] = set()
    for entity in entities:
        for field in entity.fields:
            if field.type.is_declared:
                referenced.add(field.type.identity)
    return referenced


class Schema:
    """Classification of one round's candidate entities.

    Built once at the start of a round and consulted read-only afterwards.
    Never shared between rounds.
    """

    def __init__(self, classifications: Mapping[str, Classification]) -> None:
        self._classifications = dict(classifications)

    @classmethod
    def build(cls, entities: Iterable[Entity]) -> Schema:
        """Classify every candidate entity.

        Args:
            entities: The full candidate set for the round

        Returns:
            Schema mapping each entity's qualified name to its classification
        """
        entities = list(entities)
        referenced = referenced_identities(entities)

        classifications: dict[str, Classification] = {}
        for entity in entities:
            name = entity.qualified_name
            if name in referenced:
                logger.info(f"Detected subtable: {name}")
                classifications[name] = Classification.NESTED
            else:
                logger.info(f"Detected top-level table: {name}")
                classifications[name] = Classification.TOP_LEVEL

        return cls(classifications)

    def classify(self, entity: Entity | str) -> Classification | None:
        """Classification of a candidate entity, or None if it is not part of the schema."""
        name = entity if isinstance(entity, str) else entity.qualified_name
        return self._classifications.get(name)

    def is_nested(self, identity: str) -> bool:
        """Whether the given type identity names a sub-table entity."""
        return self._classifications.get(identity) is Classification.NESTED

    @property
    def tables(self) -> list[str]:
        return [n for n, c in self._classifications.items() if c is Classification.TOP_LEVEL]

    @property
    def subtables(self) -> list[str]:
        return [n for n, c in self._classifications.items() if c is Classification.NESTED]

    def __contains__(self, name: object) -> bool:
        return name in self._classifications

    def __len__(self) -> int:
        return len(self._classifications)
