"""
Collector daemon main loop for the A43-to-InfluxDB telemetry pipeline.

Runs one sequential asyncio loop:

1. Wait for the next aligned sample instant (see scheduler.py).
2. Poll every meter in turn over the shared Modbus RTU bus; each meter
   yields up to three line protocol lines (instant, accumulator_total,
   accumulator_phase).
3. POST all lines of the cycle to InfluxDB as one payload.

Per-meter read errors and per-cycle delivery errors are logged and never
stop the loop; a failed payload is dropped, not retried.  Startup failures
(configuration, clock, serial port, writer URL) exit with status 1.

SIGTERM/SIGINT set a shared asyncio.Event.  The loop checks it while waiting
and between stages; a cycle interrupted before delivery is discarded.
Resources are released by :func:`shutdown` on the main task, never inside
the signal handler.

Structured JSON logging is used for all events.

CHANGELOG:
- 2026-10-18: Sleep until the target is reached on the scheduler clock
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import hashlib
import json
import logging
import os
import signal
import sys
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from pydantic import ValidationError

from collector.src.delivery import TOKEN_ENV_VAR, LocalFailure, Rejected, Success
from collector.src.errors import CollectorError
from collector.src.health import HealthWriter
from collector.src.poller import poll_meters

if TYPE_CHECKING:
    from collector.src.config import CollectorSettings
    from collector.src.delivery import DeliveryOutcome, InfluxWriter
    from collector.src.line_protocol import Precision
    from collector.src.poller import MeterBus
    from collector.src.scheduler import Scheduler

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


def configure_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging for the collector daemon.

    Sets up the root logger with a JSON-formatted handler writing to stderr.
    """

    class _JsonFormatter(logging.Formatter):
        """Minimal JSON log formatter."""

        def format(self, record: logging.LogRecord) -> str:
            log_entry = {
                "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
            }
            if record.exc_info and record.exc_info[1] is not None:
                log_entry["exception"] = self.formatException(record.exc_info)
            return json.dumps(log_entry)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    # pymodbus logs every failed transaction itself; the poller reports them.
    logging.getLogger("pymodbus").setLevel(logging.CRITICAL)


def _masked_token(value: str | None) -> str:
    """Return a short non-reversible token fingerprint for diagnostics."""
    if not value:
        return "empty"
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:10]
    return f"len={len(value)} sha256={digest}"


# ---------------------------------------------------------------------------
# Startup config logging
# ---------------------------------------------------------------------------


def log_config_summary(settings: CollectorSettings) -> None:
    """Log a config summary at startup, with the InfluxDB token masked."""
    logger.info(
        "Collector starting with config: "
        "serial_port=%s, baudrate=%s, parity=%s, bytesize=%s, stopbits=%s, "
        "modbus_timeout_s=%s, rs485=%s, rts_delay_us=%s, "
        "meter_ids=%s, sample_interval_s=%s, "
        "influx_url=%s, influx_org=%s, influx_bucket=%s, influx_precision=%s, "
        "http_timeout_s=%s, health_path=%s, influx_token_masked=%s",
        settings.serial_port,
        settings.baudrate,
        settings.parity,
        settings.bytesize,
        settings.stopbits,
        settings.modbus_timeout_s,
        settings.rs485,
        settings.rts_delay_us,
        settings.meter_ids,
        settings.sample_interval_s,
        settings.influx_url,
        settings.influx_org,
        settings.influx_bucket,
        settings.influx_precision,
        settings.http_timeout_s,
        settings.health_path or None,
        _masked_token(os.environ.get(TOKEN_ENV_VAR)),
    )


# ---------------------------------------------------------------------------
# Single-cycle functions (easily testable)
# ---------------------------------------------------------------------------


async def _collect_once(
    *,
    bus: MeterBus,
    meter_ids: Sequence[int],
    precision: Precision,
) -> list[str]:
    """Poll all meters once and return the cycle's lines.

    Catches all exceptions so that the caller's loop is never broken.
    """
    try:
        return await poll_meters(bus, meter_ids, precision=precision)
    except Exception:
        logger.error("Collection cycle error", exc_info=True)
        return []


async def _deliver_once(
    *,
    writer: InfluxWriter,
    lines: Sequence[str],
    health: HealthWriter | None = None,
) -> DeliveryOutcome | None:
    """Send one cycle's lines as a single payload.

    A cycle that collected no lines issues no POST at all; it is only
    logged and recorded as skipped.  Failed payloads are dropped.

    Returns:
        The delivery outcome, or ``None`` when nothing was sent.
    """
    outcome: DeliveryOutcome | None = None
    if not lines:
        logger.warning("No lines collected this cycle, nothing to send")
    else:
        try:
            outcome = await writer.write(lines)
        except Exception:
            logger.error("Delivery cycle error", exc_info=True)
            outcome = LocalFailure(reason="unexpected error")

        if isinstance(outcome, Success):
            logger.info("Delivered %d lines", len(lines))
        elif isinstance(outcome, Rejected):
            logger.error(
                "Delivery rejected (HTTP %d), dropping %d lines",
                outcome.status_code,
                len(lines),
            )
        else:
            logger.error(
                "Delivery failed (%s), dropping %d lines",
                outcome.reason,
                len(lines),
            )

    if health is not None:
        try:
            health.record_cycle(outcome, len(lines))
        except Exception:
            logger.warning("Failed to write health file", exc_info=True)

    return outcome


# ---------------------------------------------------------------------------
# Loop runner
# ---------------------------------------------------------------------------


async def run_loop(
    *,
    bus: MeterBus,
    writer: InfluxWriter,
    scheduler: Scheduler,
    meter_ids: Sequence[int],
    precision: Precision,
    shutdown_event: asyncio.Event,
    health: HealthWriter | None = None,
) -> None:
    """Run sample cycles until shutdown_event is set.

    Args:
        bus: The connected Modbus bus.
        writer: The InfluxDB writer, reused by every cycle.
        scheduler: Provides the wait until the next aligned instant.
        meter_ids: Meter addresses, polled in this order.
        precision: Timestamp precision of the rendered lines.
        shutdown_event: Event to signal graceful shutdown.
        health: HealthWriter instance, or None to skip health writes.
    """
    logger.info("Sample loop started (interval=%ss)", scheduler.interval)
    while not shutdown_event.is_set():
        wait = scheduler.advance()
        # asyncio sleeps on time.monotonic; re-check on the scheduler clock
        while wait > 0 and not shutdown_event.is_set():
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(shutdown_event.wait(), timeout=wait)
            wait = scheduler.remaining()
        if shutdown_event.is_set():
            break

        lines = await _collect_once(bus=bus, meter_ids=meter_ids, precision=precision)
        if shutdown_event.is_set():
            logger.info("Shutdown during collection, discarding %d lines", len(lines))
            break

        await _deliver_once(writer=writer, lines=lines, health=health)
    logger.info("Sample loop stopped")


async def shutdown(
    *,
    bus: MeterBus | None,
    writer: InfluxWriter | None,
) -> None:
    """Release the writer and the bus.  Either may be None."""
    if writer is not None:
        try:
            await writer.aclose()
        except Exception:
            logger.warning("Error closing InfluxDB writer", exc_info=True)
    if bus is not None:
        try:
            bus.close()
        except Exception:
            logger.warning("Error closing Modbus bus", exc_info=True)
    logger.info("Shutdown complete")


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


async def async_main() -> int:
    """Async entrypoint: load config, build components, run the loop.

    Returns:
        Process exit status: 0 after a signal-driven shutdown, 1 on a fatal
        startup error.
    """
    from collector.src.config import CollectorSettings
    from collector.src.delivery import InfluxWriter
    from collector.src.poller import MeterBus
    from collector.src.scheduler import Scheduler

    try:
        settings = CollectorSettings()
    except ValidationError as exc:
        configure_logging()
        logger.critical("Invalid configuration: %s", exc)
        return 1

    configure_logging(settings.log_level)
    log_config_summary(settings)

    shutdown_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: _handle_signal(shutdown_event),
        )

    bus: MeterBus | None = None
    writer: InfluxWriter | None = None
    try:
        bus = MeterBus(
            port=settings.serial_port,
            baudrate=settings.baudrate,
            parity=settings.parity,
            bytesize=settings.bytesize,
            stopbits=settings.stopbits,
            timeout=settings.modbus_timeout_s,
            rs485=settings.rs485,
            rts_delay_us=settings.rts_delay_us,
        )
        await bus.connect()
        scheduler = Scheduler(settings.sample_interval_s)
        writer = InfluxWriter(
            settings.influx_url,
            settings.influx_org,
            settings.influx_bucket,
            settings.influx_precision,
            timeout=settings.http_timeout_s,
        )
    except CollectorError as exc:
        logger.critical("Fatal startup error: %s", exc)
        await shutdown(bus=bus, writer=writer)
        return 1

    health = HealthWriter(settings.health_path) if settings.health_path else None

    try:
        await run_loop(
            bus=bus,
            writer=writer,
            scheduler=scheduler,
            meter_ids=settings.meter_ids,
            precision=settings.influx_precision,
            shutdown_event=shutdown_event,
            health=health,
        )
    finally:
        await shutdown(bus=bus, writer=writer)
    return 0


def _handle_signal(shutdown_event: asyncio.Event) -> None:
    """Handle SIGTERM/SIGINT by setting the shutdown event.

    Args:
        shutdown_event: The event to set for graceful shutdown.
    """
    logger.info("Received shutdown signal, initiating graceful shutdown")
    shutdown_event.set()


def main() -> None:
    """Synchronous entrypoint for the collector daemon."""
    sys.exit(asyncio.run(async_main()))


if __name__ == "__main__":
    main()
