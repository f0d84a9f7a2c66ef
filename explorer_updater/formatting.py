"""
Presentation helpers used when rendering snapshot values as text.
"""
import math
from datetime import datetime, timezone
from typing import Optional, Union

Number = Union[int, float]

_UNIT_DIVISORS = {
    "kilo": 1e3,
    "mega": 1e6,
    "giga": 1e9,
    "tera": 1e12,
}

_UNIT_PREFIXES = {
    "kilo": "K",
    "mega": "M",
    "giga": "G",
    "tera": "T",
}


def _round_half_up(value: float, decimals: int) -> float:
    factor = 10 ** decimals
    return math.floor(value * factor + 0.5) / factor


def format_timestamp(unix_s: Number) -> str:
    """Unix seconds -> 'YYYY-MM-DD HH:MM:SS' (UTC)."""
    return datetime.fromtimestamp(unix_s, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def percent_bar(a: Number, b: Number, c: Number) -> str:
    """
    Ten-cell bar showing a's share of a + b + c.

    >>> percent_bar(1, 1, 0)
    '*****..... 50% '
    """
    total = a + b + c
    if total == 0:
        return ".......... 0% "
    percent = a / total * 100
    width = int(_round_half_up(percent / 10, 0))
    return "*" * width + "." * (10 - width) + f" {int(percent)}% "


def transform_value_to_unit(
    value: Optional[Number], unit: Optional[str] = None, decimals: Optional[int] = None
) -> float:
    """Scale value into unit (kilo/mega/giga/tera); None counts as 0."""
    if value is None:
        return 0
    scaled = value / _UNIT_DIVISORS[unit] if unit in _UNIT_DIVISORS else value
    if decimals:
        return _round_half_up(scaled, decimals)
    return scaled


def unit_prefix(unit: Optional[str]) -> str:
    return _UNIT_PREFIXES.get(unit, "")


def unit_format(
    value: Optional[Number], unit: Optional[str] = None, decimals: Optional[int] = None
) -> Optional[str]:
    """Scaled value as text; fixed decimals when given, else thousands separators."""
    if value is None:
        return None
    scaled = transform_value_to_unit(value, unit, decimals)
    if decimals:
        return f"{scaled:.{decimals}f}"
    if isinstance(scaled, int) or float(scaled).is_integer():
        return f"{int(scaled):,}"
    return f"{scaled:,.3f}".rstrip("0").rstrip(".")


def format_hash_rate(value: Optional[Number], unit: str = "tera") -> str:
    """e.g. 1.5e15 -> '1500.00 TH/s'."""
    return f"{transform_value_to_unit(value, unit, 2):.2f} {unit_prefix(unit)}H/s"


def format_thousands(value: Optional[Number]) -> Optional[str]:
    if value is None:
        return None
    return f"{math.floor(value):,}"
