"""
Shared test fixtures for collector tests.

Provides environment variable fixtures for CollectorSettings tests and a
mocked Modbus client factory.  All collector env vars are cleaned before each
test to ensure isolation.

CHANGELOG:
- 2026-10-18: RS485 env vars; mock client exposes its serial port
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
from collector.src.registers import ALL_BLOCKS

# All CollectorSettings environment variable names, used for cleanup.
_ALL_COLLECTOR_ENV_VARS = (
    "SERIAL_PORT",
    "BAUDRATE",
    "PARITY",
    "BYTESIZE",
    "STOPBITS",
    "MODBUS_TIMEOUT_S",
    "RS485",
    "RTS_DELAY_US",
    "METER_IDS",
    "SAMPLE_INTERVAL_S",
    "INFLUX_URL",
    "INFLUX_ORG",
    "INFLUX_BUCKET",
    "INFLUX_PRECISION",
    "HTTP_TIMEOUT_S",
    "HEALTH_PATH",
    "LOG_LEVEL",
    "INFLUXDB_TOKEN",
)


@pytest.fixture(autouse=True)
def _clean_collector_env(monkeypatch: pytest.MonkeyPatch, tmp_path: str) -> None:
    """Remove all collector env vars and isolate from .env files before each test.

    Changes working directory to tmp_path so no .env file is accidentally
    loaded by Pydantic BaseSettings.
    """
    for var in _ALL_COLLECTOR_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def env_vars_full(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set every CollectorSettings environment variable.

    Returns the dict of env var names to values for assertion convenience.
    """
    env = {
        "SERIAL_PORT": "/dev/ttyUSB0",
        "BAUDRATE": "19200",
        "PARITY": "E",
        "BYTESIZE": "8",
        "STOPBITS": "1",
        "MODBUS_TIMEOUT_S": "0.5",
        "RS485": "false",
        "RTS_DELAY_US": "50",
        "METER_IDS": "4,5",
        "SAMPLE_INTERVAL_S": "10",
        "INFLUX_URL": "https://influx.example.com:8086",
        "INFLUX_ORG": "test-org",
        "INFLUX_BUCKET": "test-bucket",
        "INFLUX_PRECISION": "ms",
        "HTTP_TIMEOUT_S": "3",
        "HEALTH_PATH": "/tmp/collector-health.json",
        "LOG_LEVEL": "debug",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


# ---------------------------------------------------------------------------
# Mock Modbus client
# ---------------------------------------------------------------------------


def make_response(registers: list[int], is_error: bool = False) -> MagicMock:
    """Create a mock pymodbus response PDU."""
    resp = MagicMock()
    resp.isError.return_value = is_error
    resp.registers = registers
    return resp


def make_mock_client(
    block_words: Callable[[int, int, int], list[int]] | None = None,
    *,
    connect_ok: bool = True,
    failures: dict[tuple[int, str], Exception | str] | None = None,
) -> AsyncMock:
    """Create a mocked AsyncModbusSerialClient.

    The underlying pyserial port is reachable as
    ``client.ctx.transport.sync_serial``.

    Args:
        block_words: ``(meter_id, address, count) -> words``.  Defaults to
            all-zero words.
        connect_ok: Whether connect() should return True.
        failures: ``(meter_id, measurement) -> failure``.  An exception is
            raised from the read; ``"error"`` returns a Modbus error
            response; ``"short"`` returns half the requested words.
    """
    failures = failures or {}
    by_address = {block.start_address: block for block in ALL_BLOCKS}

    client = AsyncMock()
    client.connect = AsyncMock(return_value=connect_ok)
    client.close = MagicMock()
    # pymodbus protocol -> SerialTransport -> pyserial port
    client.ctx = MagicMock()
    client.ctx.transport.sync_serial.rs485_mode = None

    async def _read_holding_registers(
        address: int, *, count: int = 1, device_id: int = 1
    ) -> MagicMock:
        block = by_address[address]
        failure = failures.get((device_id, block.measurement))
        if isinstance(failure, Exception):
            raise failure
        if failure == "error":
            return make_response([], is_error=True)
        words = block_words(device_id, address, count) if block_words else [0] * count
        if failure == "short":
            words = words[: count // 2]
        return make_response(words)

    client.read_holding_registers = AsyncMock(side_effect=_read_holding_registers)
    return client


@pytest.fixture()
def mock_client_factory() -> Callable[..., AsyncMock]:
    """Return :func:`make_mock_client` for building per-test bus mocks."""
    return make_mock_client
