"""
Lab concentration sheets.

Cells hold either a number (decimal comma allowed) or ``<limit`` for values
below the detection limit.  How ``<limit`` becomes a number is set by
:class:`~runoffproc.config.DetectionLimitPolicy`.
"""

from __future__ import annotations

from typing import Any, Dict, List
import logging
import pandas as pd

from .config import DetectionLimitPolicy, SitePreset, resolve_policy, resolve_site
from .parsing import parse_number, parse_timestamps

logger = logging.getLogger(__name__)

DL_MARKER = "<"

_POLICY_FACTOR = {
    DetectionLimitPolicy.ZERO: 0.0,
    DetectionLimitPolicy.HALF: 0.5,
    DetectionLimitPolicy.LIMIT: 1.0,
}


def is_below_limit(value: Any) -> bool:
    return isinstance(value, str) and len(value.split(DL_MARKER)) == 2


def resolve_concentration(value: Any, policy: str | DetectionLimitPolicy) -> float:
    """Numeric concentration for one lab cell.

    ``"<5"`` gives 0, 2.5 or 5 under the ``zero``, ``half`` and ``limit``
    policies; ``"3,2"`` gives 3.2; empty or missing cells give NaN.
    """
    policy = resolve_policy(policy)
    if not isinstance(value, str):
        return parse_number(None if value is None or pd.isna(value) else value)
    if is_below_limit(value):
        if policy is DetectionLimitPolicy.ZERO:
            return 0.0
        return _POLICY_FACTOR[policy] * parse_number(value.split(DL_MARKER)[1])
    return parse_number(value)


def resolve_concentrations(frame: pd.DataFrame, policy: str | DetectionLimitPolicy) -> pd.DataFrame:
    """Apply :func:`resolve_concentration` to every cell of ``frame``."""
    policy = resolve_policy(policy)
    return frame.apply(lambda col: col.map(lambda v: resolve_concentration(v, policy))).astype(float)


def _span(layout: Dict[str, Any], point: str, n_cols: int) -> List[int]:
    try:
        lo, hi = layout[point]["substances"]
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Concentration layout lacks a substance range for {point!r}") from e
    if not (0 <= lo < hi <= n_cols):
        raise ValueError(
            f"Concentration layout for {point!r} spans columns {lo}:{hi} but the sheet has {n_cols}"
        )
    return list(range(lo, hi))


def split_concentration_sheet(
    sheet: pd.DataFrame,
    site: str | SitePreset,
    *,
    datetime_format: str = "%d.%m.%Y %H:%M",
) -> Dict[str, pd.DataFrame]:
    """Cut the lab sheet into sewer, facade and roof tables.

    Each table has ``t_beg_rain`` (parsed), for the facade also ``bottle``,
    followed by the substance columns as raw text.  Rows without any
    substance value are dropped.
    """
    preset = resolve_site(site)
    layout = preset.concentration_layout
    n_cols = sheet.shape[1]
    t_pos = int(layout.get("event_start", 0))
    t_beg = parse_timestamps(sheet.iloc[:, t_pos], fmt=datetime_format).reset_index(drop=True)

    out: Dict[str, pd.DataFrame] = {}
    for point in ("sewer", "facade", "roof"):
        cols = _span(layout, point, n_cols)
        subst = sheet.iloc[:, cols].reset_index(drop=True)
        subst = subst.apply(lambda col: col.map(lambda v: v.strip() if isinstance(v, str) else v))
        subst = subst.mask(subst.apply(lambda col: col.map(lambda v: isinstance(v, str) and v == "")))
        parts = [t_beg.rename("t_beg_rain")]
        if point == "facade":
            b_pos = int(layout["facade"]["bottle"])
            bottle = sheet.iloc[:, b_pos].reset_index(drop=True)
            bottle = bottle.map(lambda v: v.replace(" ", "") if isinstance(v, str) else v)
            parts.append(bottle.rename("bottle"))
        table = pd.concat(parts + [subst], axis=1)
        keep = subst.notna().any(axis=1)
        out[point] = table[keep].reset_index(drop=True)
        logger.debug("%s: %d %s concentration rows (%d empty rows dropped)",
                     preset.name, int(keep.sum()), point, int((~keep).sum()))
    return out


def substance_columns(table: pd.DataFrame) -> List[str]:
    """Substance columns of a table produced by :func:`split_concentration_sheet`."""
    return [c for c in table.columns if c not in ("t_beg_rain", "bottle")]


__all__ = [
    "DL_MARKER",
    "is_below_limit",
    "resolve_concentration",
    "resolve_concentrations",
    "split_concentration_sheet",
    "substance_columns",
]
