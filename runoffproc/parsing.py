"""
Timestamp and number coercion shared by all readers.

All timestamps live in a fixed UTC+1 zone without daylight saving, which is
how the loggers and the sampling sheets were kept.
"""

from __future__ import annotations

from typing import Any
import math
import pandas as pd

TIMEZONE = "Etc/GMT-1"
LOGGER_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
WINDOW_TIME_FORMAT = "%Y-%m-%d %H:%M"
OUTPUT_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def _localize(t: pd.Series, tz: str) -> pd.Series:
    if t.dt.tz is None:
        return t.dt.tz_localize(tz)
    return t.dt.tz_convert(tz)


def parse_timestamps(values: Any, fmt: str | None = None, tz: str = TIMEZONE) -> pd.Series:
    """Parse ``values`` into a tz-aware Series; unparseable entries become ``NaT``."""
    s = values if isinstance(values, pd.Series) else pd.Series(values, dtype=object)
    if pd.api.types.is_datetime64_any_dtype(s):
        return _localize(s, tz)
    t = pd.to_datetime(s.astype(object).map(_strip), format=fmt, errors="coerce")
    return _localize(t, tz)


def to_timestamp(value: Any, fmt: str = WINDOW_TIME_FORMAT, tz: str = TIMEZONE) -> pd.Timestamp:
    """Coerce a single window bound (text or datetime-like) to a tz-aware Timestamp."""
    if isinstance(value, str):
        ts = pd.to_datetime(value.strip(), format=fmt, errors="coerce")
        if pd.isna(ts):
            raise ValueError(f"Cannot parse timestamp {value!r} with format {fmt!r}")
    else:
        ts = pd.Timestamp(value)
    if ts.tzinfo is None:
        return ts.tz_localize(tz)
    return ts.tz_convert(tz)


def parse_number(value: Any) -> float:
    """Scalar numeric coercion accepting decimal commas; failures give NaN."""
    if value is None:
        return float("nan")
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip().replace(",", ".")
    if not text:
        return float("nan")
    try:
        out = float(text)
    except ValueError:
        return float("nan")
    return out if not math.isinf(out) else float("nan")


def to_number(values: Any) -> pd.Series:
    """Vectorised :func:`parse_number` for a column of mixed text/numbers."""
    s = values if isinstance(values, pd.Series) else pd.Series(values, dtype=object)
    if pd.api.types.is_numeric_dtype(s) and not pd.api.types.is_bool_dtype(s):
        return s.astype(float)
    text = s.astype(object).map(lambda v: _strip(v).replace(",", ".") if isinstance(v, str) else v)
    return pd.to_numeric(text, errors="coerce").astype(float)


__all__ = [
    "TIMEZONE",
    "LOGGER_TIME_FORMAT",
    "WINDOW_TIME_FORMAT",
    "OUTPUT_TIME_FORMAT",
    "parse_timestamps",
    "to_timestamp",
    "parse_number",
    "to_number",
]
