"""
Sampling-event tables and specific runoff (runoff volume per catchment area).

Three monitoring points are recorded in separate sheets:

* roof   - one volume per event, fixed roof area per site
* facade - one volume and gutter area per side (N, O, S, W); volumes may be
           recorded as ``>100`` when the sampling bottle overflowed
* sewer  - one volume per event, fixed site catchment area

Specific runoff is reported in l/m^2.
"""

from __future__ import annotations

from typing import Any, List, Tuple
import logging
import numpy as np
import pandas as pd

from .config import (
    EventSchema,
    SitePreset,
    load_schema,
    resolve_site,
    volume_col,
    area_col,
    overflow_col,
    specq_col,
)
from .parsing import parse_timestamps, parse_number, to_number

logger = logging.getLogger(__name__)

TIME_COLUMNS = ("t_beg_rain", "t_end_rain", "t_beg_hydraulic", "t_end_hydraulic")
NUMERIC_COLUMNS = (
    "rain_mm", "n_events", "air_temp_mean_C", "air_temp_sd_C", "volume_l",
    "wind_v_mean_m_s", "wind_v_sd_m_s", "wind_dir_mean_deg", "wind_dir_sd_deg",
)
TEXT_COLUMNS = ("rain_gauge", "lims_no", "analysed_bottles")

_TRUE = {"true", "t", "wahr", "1"}
_FALSE = {"false", "f", "falsch", "0"}


def parse_flag(values: pd.Series) -> pd.Series:
    """Text flags (TRUE/FALSE, T/F) to nullable booleans; anything else is NA."""
    def one(v: Any):
        if isinstance(v, (bool, np.bool_)):
            return bool(v)
        if v is None or (isinstance(v, float) and np.isnan(v)):
            return pd.NA
        s = str(v).strip().lower()
        if s in _TRUE:
            return True
        if s in _FALSE:
            return False
        return pd.NA
    return values.map(one).astype("boolean")


def _strip_text(values: pd.Series) -> pd.Series:
    out = values.map(lambda v: v.strip() if isinstance(v, str) else v)
    return out.mask(out.map(lambda v: isinstance(v, str) and v == ""))


def prepare_event_table(sheet: pd.DataFrame, point: str, schema: EventSchema | None = None) -> pd.DataFrame:
    """Rename sheet headers to canonical names and coerce column types.

    Raises
    ------
    ValueError
        If a header required for ``point`` is missing from ``sheet``.
    """
    schema = schema or load_schema()
    if point not in schema.required:
        raise ValueError(f"Unknown monitoring point {point!r}")
    mapping = schema.header_map(point)
    required = [schema.header(c) for c in schema.required[point]]
    if point == "facade":
        for side in schema.facade_sides.values():
            required += [side["volume"], side["area"]]
    missing = [h for h in required if h not in sheet.columns]
    if missing:
        cols = ", ".join(map(str, sheet.columns))
        raise ValueError(f"{point} sheet lacks columns {missing}. Available columns: {cols}")

    out = sheet.rename(columns=mapping).reset_index(drop=True)
    for canon in schema.columns:
        if canon not in out.columns:
            out[canon] = np.nan

    for c in TIME_COLUMNS:
        out[c] = parse_timestamps(out[c], fmt=schema.datetime_format)
    for c in NUMERIC_COLUMNS:
        out[c] = to_number(out[c])
    for c in TEXT_COLUMNS:
        out[c] = _strip_text(out[c].astype(object))
    out["volume_from_regression"] = parse_flag(out["volume_from_regression"])
    if point == "facade":
        for code in schema.facade_sides:
            out[area_col(code)] = to_number(out[area_col(code)])
    return out


def parse_truncated_volume(value: Any) -> Tuple[float, bool]:
    """Split a volume entry such as ``">100"`` into ``(100.0, True)``.

    Entries without ``>`` return ``(number, False)``; missing stays NaN.
    """
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return float("nan"), False
    parts = str(value).split(">")
    if len(parts) > 1:
        return parse_number(parts[1]), True
    return parse_number(parts[0]), False


def _site_event_table(sheet: pd.DataFrame, point: str, schema: EventSchema | None) -> pd.DataFrame:
    out = prepare_event_table(sheet, point, schema)
    if out["t_beg_rain"].isna().any():
        logger.warning("%s sheet: %d events without a parseable start time",
                       point, int(out["t_beg_rain"].isna().sum()))
    return out


def specific_runoff_roof(sheet: pd.DataFrame, site: str | SitePreset,
                         schema: EventSchema | None = None) -> pd.DataFrame:
    """Roof events with ``specQ = volume_l / roof area`` [l/m^2]."""
    preset = resolve_site(site)
    out = _site_event_table(sheet, "roof", schema)
    out["specQ"] = out["volume_l"] / float(preset.roof_area_m2)
    return out


def specific_runoff_sewer(sheet: pd.DataFrame, site: str | SitePreset,
                          schema: EventSchema | None = None) -> pd.DataFrame:
    """Storm-sewer events with ``specQ = volume_l / site catchment area`` [l/m^2]."""
    preset = resolve_site(site)
    out = _site_event_table(sheet, "sewer", schema)
    out["specQ"] = out["volume_l"] / float(preset.sewer_area_m2)
    return out


def specific_runoff_facade(sheet: pd.DataFrame, schema: EventSchema | None = None) -> pd.DataFrame:
    """Facade events with per-side specific runoff.

    For each side code ``X`` adds ``volume_X_ml`` (numeric), ``full_X``
    (bottle overflowed, value is a lower bound) and
    ``specQ_X = volume_X_ml / area_X_m2 / 1000`` [l/m^2].
    """
    schema = schema or load_schema()
    out = _site_event_table(sheet, "facade", schema)
    for code in schema.facade_sides:
        parsed: List[Tuple[float, bool]] = [parse_truncated_volume(v) for v in out[volume_col(code)]]
        out[volume_col(code)] = [p[0] for p in parsed]
        out[overflow_col(code)] = [p[1] for p in parsed]
        out[volume_col(code)] = out[volume_col(code)].astype(float)
        out[overflow_col(code)] = out[overflow_col(code)].astype(bool)
        area = out[area_col(code)].where(out[area_col(code)] > 0)
        out[specq_col(code)] = out[volume_col(code)] / area / 1000.0
    n_full = int(sum(out[overflow_col(c)].sum() for c in schema.facade_sides))
    if n_full:
        logger.info("facade sheet: %d side volumes recorded as overflowed (lower bounds)", n_full)
    return out


def specific_runoff(point: str, sheet: pd.DataFrame, site: str | SitePreset,
                    schema: EventSchema | None = None) -> pd.DataFrame:
    """Dispatch to the builder for ``point`` (``facade``, ``roof`` or ``sewer``)."""
    if point == "roof":
        return specific_runoff_roof(sheet, site, schema)
    if point == "sewer":
        return specific_runoff_sewer(sheet, site, schema)
    if point == "facade":
        return specific_runoff_facade(sheet, schema)
    raise ValueError(f"Unknown monitoring point {point!r}")


__all__ = [
    "parse_flag",
    "prepare_event_table",
    "parse_truncated_volume",
    "specific_runoff_roof",
    "specific_runoff_sewer",
    "specific_runoff_facade",
    "specific_runoff",
]
