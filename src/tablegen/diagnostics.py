"""Accumulated schema problems for one processing round.

Nothing in the schema engine raises for a bad field or an unresolvable
package. Problems are recorded here and reported together once the whole
candidate set has been processed.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterator

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Diagnostic:
    """One reported problem, attributed to an entity and optionally a field."""
    severity: Severity
    message: str
    entity: str | None = None
    field: str | None = None

    def format(self) -> str:
        """Render as a single line: ``<severity>: <Entity>[.<field>]: <message>``."""
        if self.entity and self.field:
            location = f"{self.entity}.{self.field}: "
        elif self.entity:
            location = f"{self.entity}: "
        else:
            location = ""
        return f"{self.severity.value}: {location}{self.message}"

    def __str__(self) -> str:
        return self.format()


class Diagnostics:
    """Collector for the diagnostics raised during one round."""

    def __init__(self) -> None:
        self._items: list[Diagnostic] = []

    def warning(self, message: str, entity: str | None = None, field: str | None = None) -> Diagnostic:
        diagnostic = Diagnostic(Severity.WARNING, message, entity, field)
        self._items.append(diagnostic)
        logger.warning(diagnostic.format())
        return diagnostic

    def error(self, message: str, entity: str | None = None, field: str | None = None) -> Diagnostic:
        diagnostic = Diagnostic(Severity.ERROR, message, entity, field)
        self._items.append(diagnostic)
        logger.error(diagnostic.format())
        return diagnostic

    def extend(self, other: Diagnostics) -> None:
        self._items.extend(other)

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self._items if d.severity is Severity.ERROR]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self._items if d.severity is Severity.WARNING]

    @property
    def has_errors(self) -> bool:
        return any(d.severity is Severity.ERROR for d in self._items)

    def lines(self) -> list[str]:
        return [d.format() for d in self._items]

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)
