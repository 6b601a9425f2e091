"""Tagged-union value type used by generated code for Variant columns."""
from __future__ import annotations

import datetime
from dataclasses import dataclass
from enum import Enum


class MixedKind(str, Enum):
    """Tag of a Mixed value."""
    INTEGER64 = "Integer64"
    BOOLEAN = "Boolean"
    STRING = "String"
    DATE = "Date"
    BINARY = "Binary"


@dataclass(frozen=True)
class Mixed:
    """A single value of one of the scalar column kinds, with its tag."""
    kind: MixedKind
    value: object

    @classmethod
    def of(cls, value: object) -> Mixed:
        """Wrap a plain Python value, inferring its tag.

        Raises:
            TypeError: If the value has no scalar column kind
        """
        if isinstance(value, Mixed):
            return value
        # bool before int: bool is an int subclass
        if isinstance(value, bool):
            return cls(MixedKind.BOOLEAN, value)
        if isinstance(value, int):
            return cls(MixedKind.INTEGER64, value)
        if isinstance(value, str):
            return cls(MixedKind.STRING, value)
        if isinstance(value, datetime.datetime):
            return cls(MixedKind.DATE, value)
        if isinstance(value, (bytes, bytearray, memoryview)):
            return cls(MixedKind.BINARY, memoryview(bytes(value)))
        raise TypeError(f"Cannot store {type(value).__name__} in a mixed column")

    def _expect(self, kind: MixedKind) -> object:
        if self.kind is not kind:
            raise TypeError(f"Mixed value holds {self.kind.value}, not {kind.value}")
        return self.value

    def as_int(self) -> int:
        return self._expect(MixedKind.INTEGER64)

    def as_bool(self) -> bool:
        return self._expect(MixedKind.BOOLEAN)

    def as_str(self) -> str:
        return self._expect(MixedKind.STRING)

    def as_datetime(self) -> datetime.datetime:
        return self._expect(MixedKind.DATE)

    def as_bytes(self) -> bytes:
        return bytes(self._expect(MixedKind.BINARY))
