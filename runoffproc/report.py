from __future__ import annotations
from pathlib import Path
from typing import Dict, Mapping
import csv
import logging
import pandas as pd

from .loads import LoadTables
from .parsing import OUTPUT_TIME_FORMAT

logger = logging.getLogger(__name__)


def _format_times(df: pd.DataFrame, fmt: str) -> pd.DataFrame:
    out = df.copy()
    for c in out.columns:
        if pd.api.types.is_datetime64_any_dtype(out[c]):
            out[c] = out[c].dt.strftime(fmt)
    return out


def write_table(df: pd.DataFrame, path: Path, *, time_format: str = OUTPUT_TIME_FORMAT) -> str:
    """Semicolon-separated text table, header row, no quoting, ``NA`` for missing."""
    path.parent.mkdir(parents=True, exist_ok=True)
    _format_times(df, time_format).to_csv(
        path, sep=";", index=False, quoting=csv.QUOTE_NONE, escapechar="\\", na_rep="NA"
    )
    return str(path)


def write_load_tables(outdir: Path, tables: Mapping[str, LoadTables], stems: Mapping[str, str]) -> Dict[str, Dict[str, str]]:
    """Write ``<stem>_load.txt`` and ``<stem>_conc.txt`` for every monitoring point.

    Returns ``{point: {"load": path, "conc": path}}``.
    """
    outdir = Path(outdir)
    files: Dict[str, Dict[str, str]] = {}
    for point, t in tables.items():
        if point not in stems:
            raise KeyError(f"No output stem configured for monitoring point {point!r}")
        stem = stems[point]
        files[point] = {
            "load": write_table(t.load, outdir / f"{stem}_load.txt"),
            "conc": write_table(t.concentration, outdir / f"{stem}_conc.txt"),
        }
        logger.info("Wrote %s tables (%d rows) to %s", point, len(t.load), outdir)
    return files


def read_table(path: Path | str) -> pd.DataFrame:
    """Read back a table written by :func:`write_table` (all columns as text)."""
    return pd.read_csv(path, sep=";", dtype=str, keep_default_na=False, na_values=["NA"])


__all__ = ["write_table", "write_load_tables", "read_table"]
