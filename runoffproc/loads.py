"""
Specific loads per substance: specific runoff x concentration.

Runoff events and lab rows are joined on the event start time; facade rows
additionally on the analysed bottle (the gutter side).  Lab rows without a
matching event are dropped and counted in the returned metadata.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence
import logging
import numpy as np
import pandas as pd

from .config import (
    DetectionLimitPolicy,
    EventSchema,
    SitePreset,
    load_schema,
    resolve_policy,
    resolve_site,
    area_col,
    specq_col,
)
from .concentrations import resolve_concentrations, split_concentration_sheet, substance_columns

logger = logging.getLogger(__name__)


@dataclass
class LoadTables:
    """Load and concentration tables of one monitoring point.

    ``load`` holds specific loads (ug/m^2 for ug/l concentrations, mg/m^2
    for mg/l), ``concentration`` the lab values as reported.  Both share the
    same metadata columns and row order.
    """

    point: str
    load: pd.DataFrame
    concentration: pd.DataFrame
    meta: Dict[str, Any] = field(default_factory=dict)


def explode_bottles(events: pd.DataFrame, *, bottles_col: str = "analysed_bottles",
                    lims_col: str = "lims_no") -> pd.DataFrame:
    """One row per analysed bottle.

    Only events with a lab (LIMS) number are kept.  ``"N, S"`` in
    ``bottles_col`` becomes two rows with ``bottle`` ``"N"`` and ``"S"`` and
    otherwise identical event data.
    """
    analysed = events[events[lims_col].notna()].copy()
    analysed["bottle"] = analysed[bottles_col].map(
        lambda v: [b.replace(" ", "") for b in str(v).split(",")] if isinstance(v, str) else [v]
    )
    out = analysed.explode("bottle", ignore_index=True)
    out["bottle"] = out["bottle"].map(lambda b: b if not isinstance(b, str) or b else np.nan)
    return out


def _match(conc: pd.DataFrame, runoff: pd.DataFrame, keys: Sequence[str]) -> pd.DataFrame:
    """Inner join preserving the lab row order; first runoff row wins on duplicate keys.

    Returns the matched runoff rows plus ``_row`` (position in ``conc``).
    """
    left = conc[list(keys)].assign(_row=np.arange(len(conc))).dropna(subset=list(keys))
    right = runoff.dropna(subset=list(keys)).drop_duplicates(subset=list(keys), keep="first")
    right = right.drop(columns=[c for c in right.columns if c == "_row"])
    return left.merge(right, on=list(keys), how="inner", sort=False, validate="many_to_one")


def _key_text(frame: pd.DataFrame, keys: Sequence[str]) -> List[str]:
    return [" ".join(str(v) for v in row) for row in frame[list(keys)].itertuples(index=False)]


def _assemble(point: str, conc: pd.DataFrame, joined: pd.DataFrame, metadata: List[str],
              policy: DetectionLimitPolicy, keys: Sequence[str]) -> LoadTables:
    substances = substance_columns(conc)
    rows = joined["_row"].to_numpy(int)
    meta_df = joined.reindex(columns=metadata).reset_index(drop=True)
    raw = conc.iloc[rows][substances].reset_index(drop=True)
    resolved = resolve_concentrations(raw, policy)
    load = pd.concat([meta_df, resolved.mul(meta_df["specQ"].astype(float), axis=0)], axis=1)
    concentration = pd.concat([meta_df, raw], axis=1)

    unmatched = np.setdiff1d(np.arange(len(conc)), rows)
    n_input, n_matched = int(len(conc)), int(len(rows))
    if len(unmatched):
        logger.warning("%s: %d of %d concentration rows have no matching event and are dropped",
                       point, len(unmatched), n_input)
    meta = {
        "point": point,
        "policy": policy.value,
        "n_input": n_input,
        "n_matched": n_matched,
        "n_dropped": n_input - n_matched,
        "unmatched_keys": _key_text(conc.iloc[unmatched], keys),
        "substances": list(substances),
    }
    return LoadTables(point=point, load=load, concentration=concentration, meta=meta)


def facade_loads(runoff: pd.DataFrame, conc: pd.DataFrame, policy: str | DetectionLimitPolicy,
                 schema: EventSchema | None = None) -> LoadTables:
    """Join facade runoff (per side) with facade lab rows.

    ``runoff`` comes from :func:`runoffproc.events.specific_runoff_facade`,
    ``conc`` from :func:`runoffproc.concentrations.split_concentration_sheet`.
    The load uses the specific runoff of the side named by the bottle.
    """
    schema = schema or load_schema()
    policy = resolve_policy(policy)
    keys = ("t_beg_rain", "bottle")
    joined = _match(conc, explode_bottles(runoff), keys)

    specq = pd.Series(np.nan, index=joined.index, dtype=float)
    area = pd.Series(np.nan, index=joined.index, dtype=float)
    for code in schema.facade_sides:
        hit = joined["bottle"] == code
        specq[hit] = joined.loc[hit, specq_col(code)].astype(float)
        area[hit] = joined.loc[hit, area_col(code)].astype(float)
    unknown = sorted(set(joined.loc[~joined["bottle"].isin(list(schema.facade_sides)), "bottle"].astype(str)))
    if unknown:
        logger.warning("facade: bottles %s name no known side; their loads are missing", unknown)
    joined = joined.assign(specQ=specq, area_gutter_m2=area)

    tables = _assemble("facade", conc, joined, schema.load_metadata["facade"], policy, keys)
    tables.meta["unknown_sides"] = unknown
    return tables


def event_loads(point: str, runoff: pd.DataFrame, conc: pd.DataFrame,
                policy: str | DetectionLimitPolicy, schema: EventSchema | None = None) -> LoadTables:
    """Join roof or sewer runoff with lab rows on the event start time."""
    if point not in ("roof", "sewer"):
        raise ValueError(f"event_loads handles 'roof' and 'sewer', not {point!r}")
    schema = schema or load_schema()
    policy = resolve_policy(policy)
    keys = ("t_beg_rain",)
    joined = _match(conc, runoff, keys)
    return _assemble(point, conc, joined, schema.load_metadata[point], policy, keys)


def roof_loads(runoff: pd.DataFrame, conc: pd.DataFrame, policy: str | DetectionLimitPolicy,
               schema: EventSchema | None = None) -> LoadTables:
    return event_loads("roof", runoff, conc, policy, schema)


def sewer_loads(runoff: pd.DataFrame, conc: pd.DataFrame, policy: str | DetectionLimitPolicy,
                schema: EventSchema | None = None) -> LoadTables:
    return event_loads("sewer", runoff, conc, policy, schema)


def compute_loads(
    site: str | SitePreset,
    policy: str | DetectionLimitPolicy,
    facade: pd.DataFrame,
    roof: pd.DataFrame,
    sewer: pd.DataFrame,
    concentration_sheet: pd.DataFrame,
    *,
    schema: Optional[EventSchema] = None,
) -> Dict[str, LoadTables]:
    """Load and concentration tables for all three monitoring points.

    ``facade``/``roof``/``sewer`` are specific-runoff tables; the lab sheet
    is split using the site's column layout.
    """
    preset = resolve_site(site)
    policy = resolve_policy(policy)
    schema = schema or load_schema()
    conc = split_concentration_sheet(concentration_sheet, preset, datetime_format=schema.datetime_format)
    return {
        "facade": facade_loads(facade, conc["facade"], policy, schema),
        "roof": roof_loads(roof, conc["roof"], policy, schema),
        "sewer": sewer_loads(sewer, conc["sewer"], policy, schema),
    }


__all__ = [
    "LoadTables",
    "explode_bottles",
    "facade_loads",
    "event_loads",
    "roof_loads",
    "sewer_loads",
    "compute_loads",
]
