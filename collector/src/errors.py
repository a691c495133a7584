"""
Exception hierarchy for the meter collector.

Fatal startup errors (clock, bus, writer construction) and recoverable
per-meter or per-cycle errors share one base class so the main loop can tell
collector failures apart from unexpected bugs.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations


class CollectorError(Exception):
    """Base class for all collector errors."""


class ClockUnavailableError(CollectorError):
    """The monotonic clock used for scheduling cannot be read."""


class BusConnectionError(CollectorError):
    """The serial Modbus bus could not be opened."""


class RegisterReadError(CollectorError):
    """A holding register read failed for one meter and one block.

    Attributes:
        meter_id: Modbus device address of the meter, or ``None`` when the
            error was detected outside a bus transaction.
        block_name: Name of the register block being read.
    """

    def __init__(
        self,
        message: str,
        *,
        meter_id: int | None,
        block_name: str,
    ) -> None:
        super().__init__(message)
        self.meter_id = meter_id
        self.block_name = block_name


class ShortReadError(RegisterReadError):
    """A read returned fewer registers than requested."""

    def __init__(
        self,
        *,
        meter_id: int | None,
        block_name: str,
        expected: int,
        received: int,
    ) -> None:
        super().__init__(
            f"only {received} of {expected} registers received",
            meter_id=meter_id,
            block_name=block_name,
        )
        self.expected = expected
        self.received = received


class EncodingError(CollectorError):
    """A measurement could not be rendered as a line protocol line."""


class FieldSetCompactedError(CollectorError):
    """A field was appended to a field set that was already compacted."""


class WriterConstructionError(CollectorError):
    """The InfluxDB writer could not be built from the given endpoint."""
