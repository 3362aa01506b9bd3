"""Air temperature during the dry period before a sampled event."""

from __future__ import annotations

from typing import Any
import logging
import numpy as np
import pandas as pd

from .parsing import to_timestamp

logger = logging.getLogger(__name__)


def _column(frame: pd.DataFrame, col: str, what: str) -> pd.Series:
    if col not in frame.columns:
        cols = ", ".join(map(str, frame.columns))
        raise KeyError(f"{what} column '{col}' not found. Available columns: {cols}")
    return pd.to_numeric(frame[col], errors="coerce")


def previous_rain_end(rain: pd.DataFrame, t_beg: Any, *, gauge: str,
                      time_col: str = "dateTime") -> pd.Timestamp | None:
    """Timestamp of the last sample with rain > 0 strictly before ``t_beg``.

    ``None`` when the gauge recorded no rain before ``t_beg``.
    """
    t0 = to_timestamp(t_beg)
    depth = _column(rain, gauge, "Rain gauge")
    wet = (rain[time_col] < t0) & (depth > 0)
    if not wet.any():
        return None
    return rain.loc[wet, time_col].max()


def antecedent_temperature(
    rain: pd.DataFrame,
    temperature: pd.DataFrame,
    t_beg: Any,
    *,
    gauge: str,
    temp_col: str,
    time_col: str = "dateTime",
) -> float:
    """Mean temperature over ``[end of previous rain, t_beg)``.

    Returns NaN when no antecedent dry period can be found (no earlier rain
    at ``gauge``) or when the window holds no valid temperature.
    """
    if t_beg is None or (not isinstance(t_beg, str) and pd.isna(t_beg)):
        return float("nan")
    t0 = to_timestamp(t_beg)
    t_prev = previous_rain_end(rain, t0, gauge=gauge, time_col=time_col)
    if t_prev is None:
        logger.warning("No rain before %s at gauge %s; antecedent temperature undefined", t0, gauge)
        return float("nan")
    temp = _column(temperature, temp_col, "Temperature")
    window = (temperature[time_col] >= t_prev) & (temperature[time_col] < t0)
    vals = temp[window].dropna()
    return float(vals.mean()) if len(vals) else float("nan")


def antecedent_temperatures(
    events: pd.DataFrame,
    rain: pd.DataFrame,
    temperature: pd.DataFrame,
    *,
    temp_col: str,
    gauge_col: str = "rain_gauge",
    start_col: str = "t_beg_rain",
    time_col: str = "dateTime",
) -> pd.Series:
    """:func:`antecedent_temperature` for every event, using each event's own gauge."""
    vals = []
    for t, g in zip(events[start_col], events[gauge_col]):
        if pd.isna(g):
            logger.warning("Event at %s names no rain gauge", t)
            vals.append(float("nan"))
            continue
        vals.append(antecedent_temperature(rain, temperature, t, gauge=str(g),
                                           temp_col=temp_col, time_col=time_col))
    return pd.Series(np.asarray(vals, dtype=float), index=events.index, name="temp_before")


__all__ = ["previous_rain_end", "antecedent_temperature", "antecedent_temperatures"]
