import math

import pytest

from ppb.report.formatting import (
    flag,
    format_bytes,
    format_float,
    format_ms,
    format_number,
    round_half_up,
    status_icon,
    within,
)


@pytest.mark.parametrize(
    "value, expected",
    [(950, "950 ms"), (999.6, "1000 ms"), (1500, "1.50 s"), (15_000, "15.0 s"), (None, "n/a")],
)
def test_format_ms(value, expected):
    assert format_ms(value) == expected


@pytest.mark.parametrize(
    "value, expected",
    [(512, "512 B"), (2048, "2.00 KB"), (1_048_576, "1.00 MB"), (20 * 1024, "20.0 KB"), (None, "n/a")],
)
def test_format_bytes(value, expected):
    assert format_bytes(value) == expected


def test_format_number_rounds_half_up():
    assert format_number(2.5) == "3"
    assert format_number(74.4) == "74"


def test_format_float_when_value_not_finite_returns_not_available():
    assert format_float(math.nan) == "n/a"
    assert format_float(0.12345) == "0.123"


def test_within_when_value_absent_returns_none():
    assert within(None, 100) is None
    assert flag(None) == "•"


def test_status_icon_compares_in_requested_direction():
    assert status_icon(100, 100) == "✅"
    assert status_icon(101, 100) == "⚠️"
    assert status_icon(74, 75, "gte") == "⚠️"
    assert status_icon(75, 75, "gte") == "✅"


@pytest.mark.parametrize("value, expected", [(12.5, 13), (752.5, 753), (0.5, 1), (74.4, 74), (-2.5, -2)])
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected
