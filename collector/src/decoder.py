"""
Pure decoder that turns raw holding register words into engineering values.

Multi-register values are big-endian at word level: the first register holds
the most significant 16 bits.  32-bit values span two registers, 64-bit
values four.  Each field of a :class:`~collector.src.registers.RegisterBlock`
is decoded with one generic routine driven by its
:class:`~collector.src.registers.FieldDef`.

No I/O and no clock; a short buffer is rejected rather than decoded.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from collector.src.errors import ShortReadError

if TYPE_CHECKING:
    from collector.src.registers import FieldDef, RegisterBlock

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Word assembly
# ---------------------------------------------------------------------------


def decode32(words: Sequence[int]) -> int:
    """Assemble two registers (high word first) into an unsigned 32-bit int."""
    if len(words) != 2:
        raise ValueError(f"decode32 needs exactly 2 words, got {len(words)}")
    return ((words[0] & 0xFFFF) << 16) | (words[1] & 0xFFFF)


def decode64(words: Sequence[int]) -> int:
    """Assemble four registers (most significant first) into an unsigned 64-bit int."""
    if len(words) != 4:
        raise ValueError(f"decode64 needs exactly 4 words, got {len(words)}")
    value = 0
    for word in words:
        value = (value << 16) | (word & 0xFFFF)
    return value


def to_signed(raw: int, bits: int) -> int:
    """Reinterpret an unsigned *bits*-wide integer as two's complement."""
    if raw >= 1 << (bits - 1):
        raw -= 1 << bits
    return raw


# ---------------------------------------------------------------------------
# Field and block decoding
# ---------------------------------------------------------------------------


def decode_raw(fdef: FieldDef, words: Sequence[int]) -> int:
    """Decode the exact words of one field into its (possibly signed) integer."""
    if fdef.word_count == 2:
        raw = decode32(words)
    else:
        raw = decode64(words)
    if fdef.signed:
        raw = to_signed(raw, fdef.word_count * 16)
    return raw


def decode_field(
    block: RegisterBlock,
    fdef: FieldDef,
    words: Sequence[int],
) -> float:
    """Decode and scale one field out of a full block read.

    Args:
        block: The block that *words* was read from.
        fdef: Field definition; must belong to *block*.
        words: All words of the block read.

    Returns:
        The engineering value (raw integer divided by the field divisor).
    """
    offset = block.offset_of(fdef)
    raw = decode_raw(fdef, words[offset : offset + fdef.word_count])
    return raw / fdef.divisor


def decode_block(
    block: RegisterBlock,
    words: Sequence[int],
    *,
    meter_id: int | None = None,
) -> list[tuple[str, float]]:
    """Decode every field of *block* from the words of one read.

    Args:
        block: Register block definition.
        words: Words returned by the read, in address order.
        meter_id: Meter address, only used to annotate errors.

    Returns:
        ``(field_name, engineering_value)`` pairs in block order.

    Raises:
        ShortReadError: If fewer than ``block.count`` words were supplied.
    """
    if len(words) < block.count:
        raise ShortReadError(
            meter_id=meter_id,
            block_name=block.measurement,
            expected=block.count,
            received=len(words),
        )
    if len(words) > block.count:
        logger.debug(
            "Block '%s': ignoring %d surplus words",
            block.measurement,
            len(words) - block.count,
        )

    return [(fdef.name, decode_field(block, fdef, words)) for fdef in block.fields]
