"""
Async Modbus RTU poller for ABB A43 meters on a shared RS-485 bus.

Holds one ``AsyncModbusSerialClient`` for the lifetime of the process and
reads the register blocks defined in registers.py from each meter in turn.
The bus is half-duplex, so meters and blocks are always read sequentially.

On boards where the RS-485 transceiver direction is driven by RTS, the port
is switched to kernel RS-485 mode after it opens.  Unread input is discarded
once at the start of every cycle.

Each successfully read block is decoded, compacted into a field snapshot and
rendered as one line protocol line tagged ``meter=<id>``.  A failed or short
read abandons the remaining blocks of that meter for the current cycle;
lines from blocks already read are kept and other meters are unaffected.

CHANGELOG:
- 2026-10-18: RS-485 RTS direction control and per-cycle input flush
- 2026-10-18: Keep lines of blocks read before a failing block
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

import serial.rs485
from pymodbus.client import AsyncModbusSerialClient
from pymodbus.exceptions import ModbusException

from collector.src.decoder import decode_block
from collector.src.errors import (
    BusConnectionError,
    EncodingError,
    RegisterReadError,
    ShortReadError,
)
from collector.src.fields import FieldSetBuilder
from collector.src.line_protocol import Precision
from collector.src.models import Measurement, Tag
from collector.src.registers import ALL_BLOCKS, RegisterBlock

logger = logging.getLogger(__name__)

METER_TAG = "meter"
"""Tag name carrying the meter's Modbus address."""


# ---------------------------------------------------------------------------
# Bus wrapper
# ---------------------------------------------------------------------------


class MeterBus:
    """The serial Modbus bus shared by all meters.

    Args:
        port: Serial device path (e.g. ``/dev/ttyAMA4``).
        baudrate: Line speed in baud.
        parity: ``"N"``, ``"E"`` or ``"O"``.
        bytesize: Data bits per character.
        stopbits: Stop bits per character.
        timeout: Per-request timeout in seconds.
        rs485: Switch the port to kernel RS-485 mode after opening it, with
            RTS low while transmitting and high while receiving.
        rts_delay_us: Delay between switching RTS and the first transmitted
            byte, in microseconds.  Only used with *rs485*.
    """

    def __init__(
        self,
        *,
        port: str,
        baudrate: int = 9600,
        parity: str = "N",
        bytesize: int = 8,
        stopbits: int = 1,
        timeout: float = 1.0,
        rs485: bool = False,
        rts_delay_us: int = 0,
    ) -> None:
        self._port = port
        self._rs485 = rs485
        self._rts_delay_us = rts_delay_us
        self._client = AsyncModbusSerialClient(
            port,
            baudrate=baudrate,
            parity=parity,
            bytesize=bytesize,
            stopbits=stopbits,
            timeout=timeout,
        )

    async def connect(self) -> None:
        """Open the serial port and apply RS-485 mode if requested.

        Raises:
            BusConnectionError: If the port cannot be opened or configured.
        """
        try:
            ok = await self._client.connect()
        except Exception as exc:
            raise BusConnectionError(f"cannot open {self._port}: {exc}") from exc
        if not ok:
            raise BusConnectionError(f"cannot open {self._port} (connect returned False)")
        if self._rs485:
            self._enable_rs485()
        logger.info("Modbus bus connected on %s (rs485=%s)", self._port, self._rs485)

    def flush(self) -> None:
        """Discard bytes left unread on the bus by earlier transactions."""
        port = self._serial_port()
        if port is None:
            return
        try:
            port.reset_input_buffer()
        except (OSError, ValueError) as exc:
            logger.warning("Flushing %s failed: %s", self._port, exc)

    async def read_block(self, meter_id: int, block: RegisterBlock) -> list[int]:
        """Read one register block from one meter.

        Returns:
            Exactly ``block.count`` words, in address order.

        Raises:
            RegisterReadError: On a transport error or Modbus exception
                response.
            ShortReadError: If fewer registers than requested came back.
        """
        try:
            response = await self._client.read_holding_registers(
                block.start_address,
                count=block.count,
                device_id=meter_id,
            )
        except (ModbusException, OSError) as exc:
            raise RegisterReadError(
                str(exc), meter_id=meter_id, block_name=block.measurement
            ) from exc

        if response.isError():
            raise RegisterReadError(
                f"Modbus error response: {response}",
                meter_id=meter_id,
                block_name=block.measurement,
            )

        words = list(response.registers)
        if len(words) < block.count:
            raise ShortReadError(
                meter_id=meter_id,
                block_name=block.measurement,
                expected=block.count,
                received=len(words),
            )
        return words[: block.count]

    def close(self) -> None:
        """Close the serial port."""
        self._client.close()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _serial_port(self) -> serial.Serial | None:
        """Return the pyserial port under the open pymodbus transport."""
        transport = getattr(self._client.ctx, "transport", None)
        return getattr(transport, "sync_serial", None)

    def _enable_rs485(self) -> None:
        port = self._serial_port()
        if port is None:
            raise BusConnectionError(
                f"cannot enable RS-485 on {self._port}: serial port not reachable"
            )
        try:
            port.rs485_mode = serial.rs485.RS485Settings(
                rts_level_for_tx=False,
                rts_level_for_rx=True,
                delay_before_tx=self._rts_delay_us / 1_000_000,
            )
        except (OSError, ValueError) as exc:
            raise BusConnectionError(f"cannot enable RS-485 on {self._port}: {exc}") from exc


# ---------------------------------------------------------------------------
# Block -> measurement
# ---------------------------------------------------------------------------


def build_measurement(
    block: RegisterBlock,
    words: Sequence[int],
    tags: Iterable[Tag],
    *,
    meter_id: int | None = None,
) -> Measurement:
    """Decode *words* of *block* into a measurement with a compacted field set."""
    builder = FieldSetBuilder()
    builder.extend(decode_block(block, words, meter_id=meter_id))
    return Measurement(name=block.measurement, tags=tuple(tags), fields=builder.compact())


# ---------------------------------------------------------------------------
# Polling
# ---------------------------------------------------------------------------


async def poll_meter(
    bus: MeterBus,
    meter_id: int,
    *,
    precision: Precision = Precision.S,
    blocks: Sequence[RegisterBlock] = ALL_BLOCKS,
) -> list[str]:
    """Read every block of one meter and render one line per block.

    Stops at the first failing read; never raises for bus or encoding
    errors.

    Returns:
        The rendered lines, in block order.  Fewer than ``len(blocks)``
        when a read failed.
    """
    tags = (Tag(name=METER_TAG, value=str(meter_id)),)
    lines: list[str] = []

    for block in blocks:
        try:
            words = await bus.read_block(meter_id, block)
        except RegisterReadError as exc:
            logger.warning(
                "Meter %d: reading block '%s' failed (%s), "
                "skipping remaining blocks this cycle",
                meter_id,
                block.measurement,
                exc,
            )
            break

        logger.debug("Meter %d block '%s' raw words: %s", meter_id, block.measurement, words)

        try:
            measurement = build_measurement(block, words, tags, meter_id=meter_id)
            lines.append(measurement.to_line(precision))
        except (RegisterReadError, EncodingError) as exc:
            logger.warning(
                "Meter %d: dropping block '%s' (%s)",
                meter_id,
                block.measurement,
                exc,
            )

    return lines


async def poll_meters(
    bus: MeterBus,
    meter_ids: Iterable[int],
    *,
    precision: Precision = Precision.S,
    blocks: Sequence[RegisterBlock] = ALL_BLOCKS,
) -> list[str]:
    """Flush the bus, then poll each meter in turn and return all lines of the cycle."""
    bus.flush()
    lines: list[str] = []
    for meter_id in meter_ids:
        meter_lines = await poll_meter(bus, meter_id, precision=precision, blocks=blocks)
        if len(meter_lines) < len(blocks):
            logger.warning(
                "Meter %d: %d of %d blocks collected",
                meter_id,
                len(meter_lines),
                len(blocks),
            )
        lines.extend(meter_lines)
    return lines
