"""
InfluxDB line protocol encoder.

Renders one measurement as::

    <measurement>[,<tag>=<value>...] <field>=<value>[,...] <timestamp>

Rules:

- The timestamp is read once from the real-time clock and rendered as the
  whole-second count followed by the truncated, zero-padded sub-second digits
  of the requested precision (none for ``s``, 3 for ``ms``, 6 for ``us``,
  9 for ``ns``).
- Tags with an empty name or value are skipped; order is preserved.
- Fields with an empty name are skipped; values are written in positional
  notation (never scientific) with the shortest exact float representation.
- Measurement names escape backslashes, commas and spaces; tag keys, tag
  values and field keys also escape ``=``.
- ``None`` for tags or fields is a caller error.  An empty field list is
  rendered as an empty field segment; InfluxDB rejects such a line, and that
  is left to the caller.

CHANGELOG:
- 2026-10-18: Escape backslashes; non-numeric field values raise EncodingError
- 2026-10-18: Zero-pad sub-second timestamp digits
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import math
import re
import time
from collections.abc import Iterable, Sequence
from decimal import Decimal
from enum import StrEnum

from collector.src.errors import EncodingError
from collector.src.models import Field, Tag


class Precision(StrEnum):
    """Timestamp precisions accepted by the InfluxDB v2 write API."""

    S = "s"
    MS = "ms"
    US = "us"
    NS = "ns"


_SUBSECOND_DIGITS: dict[Precision, int] = {
    Precision.S: 0,
    Precision.MS: 3,
    Precision.US: 6,
    Precision.NS: 9,
}

_MEASUREMENT_SPECIALS = re.compile(r"([\\, ])")
_KEY_SPECIALS = re.compile(r"([\\,= ])")


# ---------------------------------------------------------------------------
# Element rendering
# ---------------------------------------------------------------------------


def timestamp(precision: Precision, *, now_ns: int | None = None) -> str:
    """Return the current real-time clock reading as a timestamp string.

    Args:
        precision: Output precision.
        now_ns: Clock reading in nanoseconds since the epoch.  Read from
            :func:`time.time_ns` when omitted.
    """
    if now_ns is None:
        now_ns = time.time_ns()
    seconds, nanos = divmod(now_ns, 1_000_000_000)
    digits = _SUBSECOND_DIGITS[Precision(precision)]
    if digits == 0:
        return str(seconds)
    return f"{seconds}{nanos // 10 ** (9 - digits):0{digits}d}"


def format_value(value: float) -> str:
    """Format a field value in positional notation without losing precision.

    Raises:
        EncodingError: If *value* is not a number, or is NaN or infinite.
    """
    try:
        value = float(value)
    except (TypeError, ValueError) as exc:
        raise EncodingError(f"field value {value!r} is not a number") from exc
    if not math.isfinite(value):
        raise EncodingError(f"cannot encode non-finite field value {value!r}")
    return format(Decimal(repr(value)), "f")


def _check_newline(text: str) -> None:
    if "\n" in text or "\r" in text:
        raise EncodingError(f"line protocol element contains a newline: {text!r}")


def escape_measurement(name: str) -> str:
    """Escape backslashes, commas and spaces in a measurement name."""
    _check_newline(name)
    return _MEASUREMENT_SPECIALS.sub(r"\\\1", name)


def escape_key(text: str) -> str:
    """Escape backslashes, commas, equals signs and spaces in tag keys and values."""
    _check_newline(text)
    return _KEY_SPECIALS.sub(r"\\\1", text)


def _pair(item: Tag | Field | tuple[str, object]) -> tuple[str, object]:
    if isinstance(item, tuple):
        name, value = item
        return name, value
    return item.name, item.value


def render_tags(tags: Iterable[Tag | tuple[str, str]]) -> str:
    """Render tags as ``name=value`` joined by commas, skipping empty ones."""
    parts = []
    for item in tags:
        name, value = _pair(item)
        if not name or not value:
            continue
        parts.append(f"{escape_key(name)}={escape_key(str(value))}")
    return ",".join(parts)


def render_fields(fields: Iterable[Field | tuple[str, float]]) -> str:
    """Render fields as ``name=value`` joined by commas, skipping unnamed ones."""
    parts = []
    for item in fields:
        name, value = _pair(item)
        if not name:
            continue
        parts.append(f"{escape_key(name)}={format_value(value)}")  # type: ignore[arg-type]
    return ",".join(parts)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def encode_line(
    measurement: str,
    tags: Sequence[Tag | tuple[str, str]] | None,
    fields: Sequence[Field | tuple[str, float]] | None,
    precision: Precision = Precision.S,
    *,
    now_ns: int | None = None,
) -> str:
    """Encode one measurement as a line protocol line.

    Args:
        measurement: Measurement name; must be non-empty.
        tags: Tags in output order.  May be empty, must not be ``None``.
        fields: Fields in output order.  May be empty, must not be ``None``.
        precision: Timestamp precision.
        now_ns: Optional real-time clock reading in nanoseconds.

    Returns:
        The line, without a trailing newline.

    Raises:
        EncodingError: If the measurement name is empty, tags or fields is
            ``None``, or any element cannot be rendered.  No partial line is
            returned.
    """
    if not measurement:
        raise EncodingError("measurement name must not be empty")
    if tags is None or fields is None:
        raise EncodingError(
            f"measurement '{measurement}': tags and fields must not be None"
        )

    stamp = timestamp(precision, now_ns=now_ns)
    head = escape_measurement(measurement)
    tag_str = render_tags(tags)
    field_str = render_fields(fields)

    if tag_str:
        head = f"{head},{tag_str}"
    return f"{head} {field_str} {stamp}"


def join_lines(lines: Iterable[str]) -> str:
    """Build a write payload: every line terminated by a newline."""
    return "".join(f"{line}\n" for line in lines)
