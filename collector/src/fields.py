"""
Append-only field set builder.

A :class:`FieldSetBuilder` collects ``(name, value)`` pairs for one
measurement while a register block is being decoded, then is compacted once
into an immutable tuple of :class:`~collector.src.models.Field` that the line
encoder indexes.  Nothing can be appended after compaction.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

from collections.abc import Iterable

from collector.src.errors import FieldSetCompactedError
from collector.src.models import Field


class FieldSetBuilder:
    """Mutable, ordered accumulator of measurement fields.

    Field names are expected to be unique within one set; this is not
    enforced.

    Usage::

        builder = FieldSetBuilder()
        builder.append("voltage_l1_n", 230.1)
        fields = builder.compact()
    """

    def __init__(self) -> None:
        self._fields: list[Field] = []
        self._compacted = False

    def __len__(self) -> int:
        return len(self._fields)

    @property
    def compacted(self) -> bool:
        """True once :meth:`compact` has been called."""
        return self._compacted

    def append(self, name: str, value: float) -> None:
        """Append one field.

        Raises:
            FieldSetCompactedError: If the set was already compacted.
            TypeError: If *name* is not a string or *value* is not a number.
        """
        if self._compacted:
            raise FieldSetCompactedError(
                f"cannot append field '{name}' to a compacted field set"
            )
        if not isinstance(name, str):
            raise TypeError(f"field name must be str, got {type(name).__name__}")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(
                f"field '{name}' value must be a number, got {type(value).__name__}"
            )
        self._fields.append(Field(name=name, value=float(value)))

    def extend(self, pairs: Iterable[tuple[str, float]]) -> None:
        """Append every ``(name, value)`` pair in order."""
        for name, value in pairs:
            self.append(name, value)

    def compact(self) -> tuple[Field, ...]:
        """Freeze the set and return its fields as an immutable tuple.

        The tuple holds exactly the appended fields, in insertion order.
        Calling ``compact`` again returns an equal snapshot.
        """
        self._compacted = True
        return tuple(self._fields)
