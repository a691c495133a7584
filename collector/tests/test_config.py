"""
Unit tests for CollectorSettings.

Tests verify:
- Defaults describe the reference deployment (three meters on /dev/ttyAMA4,
  9600 8N1 in RS-485 mode, 5 s interval, https://8f.nu).
- Every field can be overridden from the environment.
- METER_IDS accepts comma separated and JSON list forms.
- Out-of-range values are rejected with a ValidationError.

CHANGELOG:
- 2026-10-18: RS485 and RTS_DELAY_US
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import pytest
from collector.src.config import CollectorSettings
from collector.src.line_protocol import Precision
from pydantic import ValidationError


class TestDefaults:
    """Settings with no environment."""

    def test_reference_deployment(self) -> None:
        settings = CollectorSettings()

        assert settings.serial_port == "/dev/ttyAMA4"
        assert settings.baudrate == 9600
        assert settings.parity == "N"
        assert settings.bytesize == 8
        assert settings.stopbits == 1
        assert settings.rs485 is True
        assert settings.rts_delay_us == 1
        assert settings.meter_ids == [1, 2, 3]
        assert settings.sample_interval_s == 5
        assert settings.influx_url == "https://8f.nu"
        assert settings.influx_org == "Kandidatarbete"
        assert settings.influx_bucket == "electricity"
        assert settings.influx_precision is Precision.S
        assert settings.health_path == ""
        assert settings.log_level == "INFO"


class TestEnvironment:
    """Settings loaded from environment variables."""

    def test_all_fields_overridden(self, env_vars_full: dict[str, str]) -> None:
        settings = CollectorSettings()

        assert settings.serial_port == "/dev/ttyUSB0"
        assert settings.baudrate == 19200
        assert settings.parity == "E"
        assert settings.modbus_timeout_s == 0.5
        assert settings.rs485 is False
        assert settings.rts_delay_us == 50
        assert settings.meter_ids == [4, 5]
        assert settings.sample_interval_s == 10
        assert settings.influx_url == "https://influx.example.com:8086"
        assert settings.influx_org == "test-org"
        assert settings.influx_bucket == "test-bucket"
        assert settings.influx_precision is Precision.MS
        assert settings.http_timeout_s == 3.0
        assert settings.health_path == "/tmp/collector-health.json"
        assert settings.log_level == "DEBUG"

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("7", [7]),
            ("3,1,2", [3, 1, 2]),
            (" 1 , 2 ", [1, 2]),
            ("[1, 2, 3]", [1, 2, 3]),
        ],
    )
    def test_meter_ids_forms(
        self, monkeypatch: pytest.MonkeyPatch, raw: str, expected: list[int]
    ) -> None:
        monkeypatch.setenv("METER_IDS", raw)
        assert CollectorSettings().meter_ids == expected

    def test_parity_lowercase_accepted(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PARITY", "o")
        assert CollectorSettings().parity == "O"

    def test_dotenv_file_loaded(self, tmp_path) -> None:
        (tmp_path / ".env").write_text("METER_IDS=9\nINFLUX_BUCKET=lab\n")
        settings = CollectorSettings()
        assert settings.meter_ids == [9]
        assert settings.influx_bucket == "lab"

    def test_token_is_not_a_setting(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("INFLUXDB_TOKEN", "s3cret")
        assert "s3cret" not in repr(CollectorSettings())


class TestValidation:
    """Invalid values are rejected at load time."""

    @pytest.mark.parametrize(
        ("var", "value"),
        [
            ("METER_IDS", ""),
            ("METER_IDS", "0"),
            ("METER_IDS", "248"),
            ("METER_IDS", "1,1"),
            ("METER_IDS", "one"),
            ("PARITY", "X"),
            ("BYTESIZE", "9"),
            ("STOPBITS", "3"),
            ("RTS_DELAY_US", "-1"),
            ("RS485", "maybe"),
            ("BAUDRATE", "0"),
            ("SAMPLE_INTERVAL_S", "0"),
            ("MODBUS_TIMEOUT_S", "0"),
            ("HTTP_TIMEOUT_S", "-1"),
            ("INFLUX_URL", "  "),
            ("INFLUX_ORG", ""),
            ("INFLUX_BUCKET", ""),
            ("INFLUX_PRECISION", "m"),
            ("LOG_LEVEL", "LOUD"),
        ],
    )
    def test_invalid_value_rejected(
        self, monkeypatch: pytest.MonkeyPatch, var: str, value: str
    ) -> None:
        monkeypatch.setenv(var, value)
        with pytest.raises(ValidationError):
            CollectorSettings()
