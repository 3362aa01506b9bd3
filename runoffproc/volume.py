"""Event runoff volumes from flow time series (trapezoidal rule)."""

from __future__ import annotations

from typing import Any, Dict, Optional
import numpy as np
import pandas as pd

from .config import ConfigError
from .parsing import to_timestamp

# Seconds per time unit of the flow rate's denominator (l/s, l/min, l/h).
RATE_UNIT_SECONDS: Dict[str, float] = {"s": 1.0, "min": 60.0, "h": 3600.0}


def _unit_seconds(rate_unit: str) -> float:
    try:
        return RATE_UNIT_SECONDS[rate_unit]
    except KeyError:
        raise ConfigError(
            f"Unknown rate unit {rate_unit!r}; expected one of: {', '.join(RATE_UNIT_SECONDS)}"
        ) from None


def select_window(series: pd.DataFrame, t_beg: Any = None, t_end: Any = None,
                  *, time_col: str = "dateTime") -> pd.DataFrame:
    """Rows with ``t_beg <= time <= t_end``; open bounds are ``None``."""
    t = series[time_col]
    mask = t.notna()
    if t_beg is not None:
        mask &= t >= to_timestamp(t_beg)
    if t_end is not None:
        mask &= t <= to_timestamp(t_end)
    return series.loc[mask]


def integrate_volume(
    flow: pd.DataFrame,
    column: str = "Q",
    t_beg: Any = None,
    t_end: Any = None,
    *,
    rate_unit: str = "s",
    time_col: str = "dateTime",
) -> float:
    """Volume under the flow curve between ``t_beg`` and ``t_end`` (inclusive).

    Rows with missing flow are dropped first, so the trapezoid spans the
    neighbouring retained samples.  ``rate_unit`` names the denominator of
    the flow rate (``"s"`` for l/s, ``"h"`` for l/h); time steps are
    converted into that unit.  Fewer than two samples give ``0.0``.

    Example: samples ``0`` and ``10`` l/s one minute apart give 300 l.
    """
    if column not in flow.columns:
        cols = ", ".join(map(str, flow.columns))
        raise KeyError(f"Column '{column}' not found in flow series. Available columns: {cols}")
    unit_s = _unit_seconds(rate_unit)
    sel = select_window(flow, t_beg, t_end, time_col=time_col)
    sel = sel[sel[column].notna()]
    if len(sel) < 2:
        return 0.0
    q = pd.to_numeric(sel[column], errors="coerce").to_numpy(float)
    dt = sel[time_col].diff().dt.total_seconds().to_numpy(float)[1:] / unit_s
    return float(np.sum((q[1:] + q[:-1]) / 2.0 * dt))


def event_summary(
    runoff: pd.DataFrame,
    rain: pd.DataFrame,
    rain_gauge: str,
    t_beg: Any,
    t_end: Any,
    *,
    flow_col: str = "Q",
    rate_unit: str = "h",
    time_col: str = "dateTime",
) -> Dict[str, Optional[float]]:
    """Rain depth and roof runoff volume of one event window.

    The roof logger reports l/h, hence the default ``rate_unit``.
    """
    if rain_gauge not in rain.columns:
        cols = ", ".join(map(str, rain.columns))
        raise KeyError(f"Rain gauge '{rain_gauge}' not found. Available columns: {cols}")
    rain_sel = select_window(rain, t_beg, t_end, time_col=time_col)
    depth = pd.to_numeric(rain_sel[rain_gauge], errors="coerce")
    runoff_sel = select_window(runoff, t_beg, t_end, time_col=time_col)
    return {
        "t_beg": str(to_timestamp(t_beg)),
        "t_end": str(to_timestamp(t_end)),
        "rain_gauge": rain_gauge,
        "rain_mm": float(depth.sum(skipna=True)),
        "volume_l": integrate_volume(runoff, flow_col, t_beg, t_end, rate_unit=rate_unit, time_col=time_col),
        "n_samples": int(runoff_sel[flow_col].notna().sum()),
        "q_max": float(runoff_sel[flow_col].max()) if runoff_sel[flow_col].notna().any() else None,
    }


__all__ = ["RATE_UNIT_SECONDS", "select_window", "integrate_volume", "event_summary"]
