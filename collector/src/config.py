"""
Collector configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
Defaults describe the reference deployment: three A43 meters (addresses 1-3)
on ``/dev/ttyAMA4`` at 9600 8N1 in RS-485 mode, sampled every 5 seconds.

The InfluxDB token is deliberately not a setting: the writer reads
``INFLUXDB_TOKEN`` from the environment on every write.

CHANGELOG:
- 2026-10-18: RS485 and RTS_DELAY_US settings
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode

from collector.src.line_protocol import Precision


class CollectorSettings(BaseSettings):
    """Meter collector configuration.

    Attributes:
        serial_port: RS-485 serial device.
        baudrate: Line speed in baud.
        parity: ``N``, ``E`` or ``O``.
        bytesize: Data bits (5-8).
        stopbits: Stop bits (1 or 2).
        modbus_timeout_s: Per-request Modbus timeout in seconds.
        rs485: Put the port in kernel RS-485 mode with RTS direction control.
        rts_delay_us: Microseconds between switching RTS and transmitting.
        meter_ids: Modbus addresses of the meters, polled in this order.
            Accepts a JSON list or a comma separated string.
        sample_interval_s: Seconds between aligned sample instants.
        influx_url: InfluxDB base URL (``scheme://host[:port]``).
        influx_org: InfluxDB organisation.
        influx_bucket: InfluxDB bucket.
        influx_precision: Timestamp precision (``s``, ``ms``, ``us``, ``ns``).
        http_timeout_s: Per-request HTTP timeout in seconds.
        health_path: Health JSON file path; empty disables it.
        log_level: Root log level name.
    """

    serial_port: str = "/dev/ttyAMA4"
    baudrate: int = 9600
    parity: str = "N"
    bytesize: int = 8
    stopbits: int = 1
    modbus_timeout_s: float = 1.0
    rs485: bool = True
    rts_delay_us: int = 1
    meter_ids: Annotated[list[int], NoDecode] = [1, 2, 3]
    sample_interval_s: int = 5
    influx_url: str = "https://8f.nu"
    influx_org: str = "Kandidatarbete"
    influx_bucket: str = "electricity"
    influx_precision: Precision = Precision.S
    http_timeout_s: float = 10.0
    health_path: str = ""
    log_level: str = "INFO"

    @field_validator("meter_ids", mode="before")
    @classmethod
    def split_meter_ids(cls, v: object) -> object:
        """Accept ``"1,2,3"`` as well as ``"[1, 2, 3]"`` from the environment."""
        if isinstance(v, str):
            text = v.strip().removeprefix("[").removesuffix("]")
            return [part.strip() for part in text.split(",") if part.strip()]
        return v

    @field_validator("meter_ids")
    @classmethod
    def meter_ids_must_be_valid(cls, v: list[int]) -> list[int]:
        """Validate meter addresses are unique unicast addresses (1-247)."""
        if not v:
            raise ValueError("METER_IDS must list at least one meter")
        if any(mid < 1 or mid > 247 for mid in v):
            raise ValueError("METER_IDS must be between 1 and 247")
        if len(set(v)) != len(v):
            raise ValueError("METER_IDS must not contain duplicates")
        return v

    @field_validator("parity")
    @classmethod
    def parity_must_be_valid(cls, v: str) -> str:
        """Validate parity is N, E or O."""
        v = v.upper()
        if v not in ("N", "E", "O"):
            raise ValueError("PARITY must be one of N, E, O")
        return v

    @field_validator("bytesize")
    @classmethod
    def bytesize_must_be_valid(cls, v: int) -> int:
        """Validate data bits are between 5 and 8."""
        if v < 5 or v > 8:
            raise ValueError("BYTESIZE must be between 5 and 8")
        return v

    @field_validator("stopbits")
    @classmethod
    def stopbits_must_be_valid(cls, v: int) -> int:
        """Validate stop bits are 1 or 2."""
        if v not in (1, 2):
            raise ValueError("STOPBITS must be 1 or 2")
        return v

    @field_validator("baudrate")
    @classmethod
    def baudrate_must_be_positive(cls, v: int) -> int:
        """Validate baud rate is positive."""
        if v < 1:
            raise ValueError("BAUDRATE must be > 0")
        return v

    @field_validator("rts_delay_us")
    @classmethod
    def rts_delay_must_not_be_negative(cls, v: int) -> int:
        """Validate the RTS delay is zero or positive."""
        if v < 0:
            raise ValueError("RTS_DELAY_US must be >= 0")
        return v

    @field_validator("sample_interval_s")
    @classmethod
    def sample_interval_must_be_positive(cls, v: int) -> int:
        """Validate the sample interval is at least one second."""
        if v < 1:
            raise ValueError("SAMPLE_INTERVAL_S must be >= 1")
        return v

    @field_validator("modbus_timeout_s", "http_timeout_s")
    @classmethod
    def timeouts_must_be_positive(cls, v: float) -> float:
        """Validate timeouts are positive."""
        if v <= 0:
            raise ValueError("timeouts must be > 0")
        return v

    @field_validator("influx_url", "influx_org", "influx_bucket")
    @classmethod
    def influx_target_must_be_set(cls, v: str) -> str:
        """Validate InfluxDB URL, org and bucket are non-empty."""
        if not v.strip():
            raise ValueError("INFLUX_URL, INFLUX_ORG and INFLUX_BUCKET must be set")
        return v.strip()

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        """Validate log level is a standard logging level name."""
        v = v.upper()
        if not isinstance(logging.getLevelName(v), int):
            raise ValueError("LOG_LEVEL must be DEBUG, INFO, WARNING, ERROR or CRITICAL")
        return v

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
