"""
ABB A43 Modbus RTU register map -- single source of truth.

Defines the three holding register blocks read from every meter on each
sample interval, together with the position, width, signedness, divisor and
unit of every field that is forwarded to InfluxDB.  Values are documented by
ABB as big-endian (most significant word first) 32-bit or 64-bit integers.

Each block covers a contiguous address range so the acquisition layer can
issue one ``read_holding_registers`` call per block.  Each block is rendered
as one line protocol measurement named after the block.

References:
    - ABB A43/A44 Modbus communication protocol description (2CMC485003M0201)

CHANGELOG:
- 2026-10-18: Mark per-phase net accumulators as signed, as documented
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Data definitions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FieldDef:
    """Definition of a single multi-register meter value.

    Attributes:
        address: Holding register address of the most significant word.
        name: Field name used in the line protocol output.
        reg_type: Data type -- one of ``"U32"``, ``"S32"``, ``"U64"``,
            ``"S64"``.
        unit: Engineering unit string (e.g. ``"V"``, ``"kWh"``).
        divisor: The raw integer is divided by this value to obtain the
            engineering value.  For example 10 means the raw value is in
            tenths of the unit.
        description: Free-text description of the value.
        word_count: Number of 16-bit registers the value occupies, derived
            from *reg_type*.
    """

    address: int
    name: str
    reg_type: str
    unit: str
    divisor: float = 1.0
    description: str = ""
    word_count: int = field(default=0, repr=False)

    def __post_init__(self) -> None:  # noqa: D105
        wc = _WORD_COUNTS.get(self.reg_type)
        if wc is None:
            msg = f"Field '{self.name}': unsupported type '{self.reg_type}'"
            raise ValueError(msg)
        if self.divisor == 0:
            msg = f"Field '{self.name}': divisor must be non-zero"
            raise ValueError(msg)
        # frozen=True requires object.__setattr__
        object.__setattr__(self, "word_count", wc)

    @property
    def signed(self) -> bool:
        """True when the raw value is two's complement."""
        return self.reg_type.startswith("S")


_WORD_COUNTS: dict[str, int] = {
    "U32": 2,
    "S32": 2,
    "U64": 4,
    "S64": 4,
}


@dataclass(frozen=True, slots=True)
class RegisterBlock:
    """A contiguous range of holding registers read in one transaction.

    Attributes:
        measurement: Line protocol measurement name for this block.
        start_address: First holding register address of the read.
        count: Total number of 16-bit registers to read.
        fields: Ordered list of :class:`FieldDef` within this range.  Fields
            are emitted in this order.
    """

    measurement: str
    start_address: int
    count: int
    fields: list[FieldDef]

    def __post_init__(self) -> None:  # noqa: D105
        end = self.start_address + self.count
        for fdef in self.fields:
            if fdef.address < self.start_address or fdef.address + fdef.word_count > end:
                msg = (
                    f"Field '{fdef.name}' at 0x{fdef.address:04X} does not fit in "
                    f"block '{self.measurement}' "
                    f"(0x{self.start_address:04X}+{self.count})"
                )
                raise ValueError(msg)

    def offset_of(self, fdef: FieldDef) -> int:
        """Return the word offset of *fdef* within this block's read."""
        return fdef.address - self.start_address


# ---------------------------------------------------------------------------
# Instantaneous values (addresses 0x5B00-0x5B1B)
# ---------------------------------------------------------------------------

_INSTANT_FIELDS: list[FieldDef] = [
    FieldDef(0x5B00, "voltage_l1_n", "U32", "V", 10, "Voltage L1-N"),
    FieldDef(0x5B02, "voltage_l2_n", "U32", "V", 10, "Voltage L2-N"),
    FieldDef(0x5B04, "voltage_l3_n", "U32", "V", 10, "Voltage L3-N"),
    FieldDef(0x5B06, "voltage_l1_l2", "U32", "V", 10, "Voltage L1-L2"),
    FieldDef(0x5B08, "voltage_l3_l2", "U32", "V", 10, "Voltage L3-L2"),
    FieldDef(0x5B0A, "voltage_l1_l3", "U32", "V", 10, "Voltage L1-L3"),
    FieldDef(0x5B0C, "current_l1", "U32", "A", 100, "Current L1"),
    FieldDef(0x5B0E, "current_l2", "U32", "A", 100, "Current L2"),
    FieldDef(0x5B10, "current_l3", "U32", "A", 100, "Current L3"),
    FieldDef(0x5B12, "current_n", "U32", "A", 100, "Current N"),
    FieldDef(0x5B14, "active_tot", "S32", "W", 100, "Active power total"),
    FieldDef(0x5B16, "active_l1", "S32", "W", 100, "Active power L1"),
    FieldDef(0x5B18, "active_l2", "S32", "W", 100, "Active power L2"),
    FieldDef(0x5B1A, "active_l3", "S32", "W", 100, "Active power L3"),
]

INSTANT_BLOCK = RegisterBlock(
    measurement="instant",
    start_address=0x5B00,
    count=28,  # 14 values x 2 words
    fields=_INSTANT_FIELDS,
)

# ---------------------------------------------------------------------------
# Total energy accumulators (addresses 0x5000-0x5037)
#
# The block also carries reactive, apparent and CO2 accumulators which are
# read (the read must be contiguous) but not forwarded.
# ---------------------------------------------------------------------------

_TOTAL_FIELDS: list[FieldDef] = [
    FieldDef(0x5000, "import", "U64", "kWh", 100, "Active import"),
    FieldDef(0x5004, "export", "U64", "kWh", 100, "Active export"),
    FieldDef(0x5008, "netto", "S64", "kWh", 100, "Active net"),
    FieldDef(0x5034, "currency", "U64", "currency", 1000, "Active import currency"),
]

TOTAL_BLOCK = RegisterBlock(
    measurement="accumulator_total",
    start_address=0x5000,
    count=56,  # 14 values x 4 words
    fields=_TOTAL_FIELDS,
)

# ---------------------------------------------------------------------------
# Per-phase energy accumulators (addresses 0x5460-0x5483)
# ---------------------------------------------------------------------------

_PHASE_FIELDS: list[FieldDef] = [
    FieldDef(0x5460, "import_l1", "U64", "kWh", 100, "Active import L1"),
    FieldDef(0x5464, "import_l2", "U64", "kWh", 100, "Active import L2"),
    FieldDef(0x5468, "import_l3", "U64", "kWh", 100, "Active import L3"),
    FieldDef(0x546C, "export_l1", "U64", "kWh", 100, "Active export L1"),
    FieldDef(0x5470, "export_l2", "U64", "kWh", 100, "Active export L2"),
    FieldDef(0x5474, "export_l3", "U64", "kWh", 100, "Active export L3"),
    FieldDef(0x5478, "netto_l1", "S64", "kWh", 100, "Active net L1"),
    FieldDef(0x547C, "netto_l2", "S64", "kWh", 100, "Active net L2"),
    FieldDef(0x5480, "netto_l3", "S64", "kWh", 100, "Active net L3"),
]

PHASE_BLOCK = RegisterBlock(
    measurement="accumulator_phase",
    start_address=0x5460,
    count=36,  # 9 values x 4 words
    fields=_PHASE_FIELDS,
)

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

ALL_BLOCKS: list[RegisterBlock] = [
    INSTANT_BLOCK,
    TOTAL_BLOCK,
    PHASE_BLOCK,
]
"""All register blocks in read order."""

ALL_FIELDS: dict[str, FieldDef] = {
    f"{block.measurement}.{fdef.name}": fdef
    for block in ALL_BLOCKS
    for fdef in block.fields
}
"""Flat lookup of every field by ``<measurement>.<field name>``."""
