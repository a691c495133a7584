"""
Pydantic value models for line protocol measurements.

``Tag`` and ``Field`` are immutable name/value pairs; ``Measurement`` groups a
measurement name with its tags and a compacted field tuple and renders to one
line protocol line.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from collector.src.line_protocol import Precision


class Tag(BaseModel):
    """An indexed key/value pair attached to a measurement (e.g. ``meter=2``).

    A tag with an empty name or value is dropped by the encoder.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    value: str


class Field(BaseModel):
    """A named numeric value of a measurement, in engineering units."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: float


class Measurement(BaseModel):
    """One named group of tags and fields, encoded as one output line.

    Attributes:
        name: Line protocol measurement name (e.g. ``"instant"``).
        tags: Tags in output order.
        fields: Compacted field snapshot in output order.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    tags: tuple[Tag, ...] = ()
    fields: tuple[Field, ...] = ()

    def to_line(self, precision: Precision, *, now_ns: int | None = None) -> str:
        """Render this measurement with a freshly generated timestamp."""
        from collector.src.line_protocol import encode_line

        return encode_line(self.name, self.tags, self.fields, precision, now_ns=now_ns)
