"""Presentation helpers. None of these feed back into breach detection."""

import math
from typing import Literal

NOT_AVAILABLE = "n/a"
BYTE_UNITS = ("B", "KB", "MB", "GB")

Comparator = Literal["lte", "gte"]


def is_number(value: object) -> bool:
    return (
        isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)
    )


def round_half_up(value: float) -> int:
    """Halves round up, like Math.round (round() would give half-even)."""
    return math.floor(value + 0.5)


def _fixed(value: float, digits: int) -> str:
    # Half-up; round() would give half-even.
    scale = 10**digits
    rounded = math.floor(abs(value) * scale + 0.5) / scale
    return f"{math.copysign(rounded, value):.{digits}f}"


def format_ms(value: float | None) -> str:
    if not is_number(value):
        return NOT_AVAILABLE
    if value < 1000:
        return f"{_fixed(value, 0)} ms"
    if value < 10_000:
        return f"{_fixed(value / 1000, 2)} s"
    return f"{_fixed(value / 1000, 1)} s"


def format_bytes(value: float | None) -> str:
    if not is_number(value):
        return NOT_AVAILABLE
    size = float(value)
    index = 0
    while size >= 1024 and index < len(BYTE_UNITS) - 1:
        size /= 1024
        index += 1
    decimals = 0 if index == 0 else 2 if size < 10 else 1
    return f"{_fixed(size, decimals)} {BYTE_UNITS[index]}"


def format_number(value: float | None) -> str:
    if not is_number(value):
        return NOT_AVAILABLE
    return str(round_half_up(value))


def format_float(value: float | None, digits: int = 3) -> str:
    if not is_number(value):
        return NOT_AVAILABLE
    return _fixed(value, digits)


def within(value: float | None, threshold: float, comparator: Comparator = "lte") -> bool | None:
    """True/False against the threshold, None when the value is absent."""
    if not is_number(value):
        return None
    return value <= threshold if comparator == "lte" else value >= threshold


def flag(ok: bool | None) -> str:
    if ok is None:
        return "•"
    return "✅" if ok else "⚠️"


def status_icon(value: float | None, threshold: float, comparator: Comparator = "lte") -> str:
    return flag(within(value, threshold, comparator))
