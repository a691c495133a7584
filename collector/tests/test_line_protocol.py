"""
Tests for the InfluxDB line protocol encoder.

Tests verify:
- Line layout ``measurement,tags fields timestamp``.
- Tags with an empty name or value are omitted; fields with an empty name
  are omitted; input order is preserved.
- Field values are written in positional notation.
- Timestamps for every precision.
- Escaping of commas, spaces and equals signs.
- Absent (None) tag/field lists and empty measurement names are rejected;
  an empty field list still yields a line.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import re
import time

import pytest
from collector.src.errors import EncodingError
from collector.src.line_protocol import (
    Precision,
    encode_line,
    format_value,
    join_lines,
    timestamp,
)
from collector.src.models import Field, Tag

_NOW_NS = 1_700_000_000_012_345_678


class TestEncodeLine:
    """Line layout, filtering and ordering."""

    def test_single_tag_and_field_seconds(self) -> None:
        line = encode_line("instant", [("meter", "2")], [("voltage_l1_n", 230.1)], Precision.S)
        assert re.fullmatch(r"instant,meter=2 voltage_l1_n=230\.1(\d+)? \d+", line)

    def test_uses_current_time(self) -> None:
        before = int(time.time())
        line = encode_line("instant", [("meter", "2")], [("v", 1.0)], Precision.S)
        after = int(time.time())
        stamp = int(line.rsplit(" ", 1)[1])
        assert before <= stamp <= after

    def test_model_objects_accepted(self) -> None:
        line = encode_line(
            "instant",
            [Tag(name="meter", value="1")],
            [Field(name="current_l1", value=5.25), Field(name="current_l2", value=0.0)],
            Precision.S,
            now_ns=_NOW_NS,
        )
        assert line == "instant,meter=1 current_l1=5.25,current_l2=0.0 1700000000"

    def test_empty_tag_value_omitted(self) -> None:
        line = encode_line(
            "instant",
            [("meter", ""), ("site", "a")],
            [("v", 1.0)],
            now_ns=_NOW_NS,
        )
        assert line == "instant,site=a v=1.0 1700000000"
        assert "meter" not in line

    def test_empty_tag_name_omitted(self) -> None:
        line = encode_line("instant", [("", "x")], [("v", 1.0)], now_ns=_NOW_NS)
        assert line == "instant v=1.0 1700000000"

    def test_empty_tag_list(self) -> None:
        line = encode_line("instant", [], [("v", 1.0)], now_ns=_NOW_NS)
        assert line == "instant v=1.0 1700000000"

    def test_unnamed_field_omitted(self) -> None:
        line = encode_line(
            "instant", [("meter", "1")], [("", 9.0), ("v", 1.0)], now_ns=_NOW_NS
        )
        assert line == "instant,meter=1 v=1.0 1700000000"

    def test_tag_and_field_order_preserved(self) -> None:
        line = encode_line(
            "m",
            [("b", "2"), ("a", "1")],
            [("z", 1.0), ("y", 2.0), ("x", 3.0)],
            now_ns=_NOW_NS,
        )
        assert line == "m,b=2,a=1 z=1.0,y=2.0,x=3.0 1700000000"

    def test_empty_field_list_yields_empty_field_segment(self) -> None:
        line = encode_line("instant", [("meter", "1")], [], now_ns=_NOW_NS)
        assert line == "instant,meter=1  1700000000"


class TestEncodeLineErrors:
    """Input contract violations raise EncodingError."""

    def test_empty_measurement_rejected(self) -> None:
        with pytest.raises(EncodingError):
            encode_line("", [], [("v", 1.0)])

    def test_absent_tags_rejected(self) -> None:
        with pytest.raises(EncodingError):
            encode_line("instant", None, [("v", 1.0)])

    def test_absent_fields_rejected(self) -> None:
        with pytest.raises(EncodingError):
            encode_line("instant", [], None)

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_value_rejected(self, value: float) -> None:
        with pytest.raises(EncodingError):
            encode_line("instant", [], [("v", value)])

    def test_newline_in_tag_rejected(self) -> None:
        with pytest.raises(EncodingError):
            encode_line("instant", [("meter", "1\n2")], [("v", 1.0)])

    @pytest.mark.parametrize("value", ["abc", None, object()])
    def test_non_numeric_field_value_rejected(self, value: object) -> None:
        with pytest.raises(EncodingError, match="not a number"):
            encode_line("m", [], [("f", value)])  # type: ignore[list-item]


class TestFormatValue:
    """Field values are positional decimals carrying full precision."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (230.1, "230.1"),
            (0.0, "0.0"),
            (-123.45, "-123.45"),
            (5, "5.0"),
            (1e-7, "0.0000001"),
            (1e20, "100000000000000000000"),
            (184467440737095516.15, "184467440737095520"),
        ],
    )
    def test_positional_notation(self, value: float, expected: str) -> None:
        assert format_value(value) == expected
        assert "e" not in format_value(value).lower()


class TestTimestamp:
    """Whole seconds followed by zero-padded, truncated sub-second digits."""

    @pytest.mark.parametrize(
        ("precision", "expected"),
        [
            (Precision.S, "1700000000"),
            (Precision.MS, "1700000000012"),
            (Precision.US, "1700000000012345"),
            (Precision.NS, "1700000000012345678"),
        ],
    )
    def test_precisions(self, precision: Precision, expected: str) -> None:
        assert timestamp(precision, now_ns=_NOW_NS) == expected

    def test_small_subsecond_is_zero_padded(self) -> None:
        assert timestamp(Precision.MS, now_ns=1_700_000_000_000_000_001) == "1700000000000"

    def test_accepts_string_precision(self) -> None:
        assert timestamp("us", now_ns=_NOW_NS) == "1700000000012345"  # type: ignore[arg-type]

    def test_line_uses_requested_precision(self) -> None:
        line = encode_line("m", [], [("v", 1.0)], Precision.NS, now_ns=_NOW_NS)
        assert line.endswith(" 1700000000012345678")


class TestEscaping:
    """Line protocol special characters are backslash-escaped."""

    def test_measurement_escapes_comma_and_space(self) -> None:
        line = encode_line("my meas,x", [], [("v", 1.0)], now_ns=_NOW_NS)
        assert line.startswith(r"my\ meas\,x v=1.0")

    def test_tag_key_and_value_escaped(self) -> None:
        line = encode_line("m", [("lo c", "a=b,c")], [("v", 1.0)], now_ns=_NOW_NS)
        assert line == r"m,lo\ c=a\=b\,c v=1.0 1700000000"

    def test_field_key_escaped(self) -> None:
        line = encode_line("m", [], [("a b", 1.0)], now_ns=_NOW_NS)
        assert line == r"m a\ b=1.0 1700000000"

    def test_trailing_backslash_in_tag_value_escaped(self) -> None:
        line = encode_line("instant", [("site", "a\\")], [("f", 1.0)], now_ns=_NOW_NS)
        assert line == r"instant,site=a\\ f=1.0 1700000000"

    def test_backslash_in_measurement_and_field_key_escaped(self) -> None:
        line = encode_line("m\\x", [], [("a\\b", 1.0)], now_ns=_NOW_NS)
        assert line == r"m\\x a\\b=1.0 1700000000"


class TestJoinLines:
    """Payloads terminate every line with a newline."""

    def test_join(self) -> None:
        assert join_lines(["a 1", "b 2"]) == "a 1\nb 2\n"

    def test_empty(self) -> None:
        assert join_lines([]) == ""
