"""Batch orchestration: specific runoff -> loads -> result tables."""


from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
import json
import logging
import pandas as pd

from .config import (
    ConfigError,
    DetectionLimitPolicy,
    EventSchema,
    SitePreset,
    load_schema,
    resolve_policy,
    resolve_site,
)
from .events import specific_runoff
from .io import load_logger_dir
from .loads import LoadTables, compute_loads
from .merge import merge_logger_files
from .report import write_load_tables

logger = logging.getLogger(__name__)


@dataclass
class RunConfig:
    """Inputs required to run :func:`run_all`.

    ``output_dir`` may be ``None`` to keep the tables in memory only.
    """

    site: str
    detection_limit: str = "half"
    output_dir: Optional[str] = None
    stems: Dict[str, str] = field(
        default_factory=lambda: {"facade": "facade", "roof": "roof", "sewer": "sewer"}
    )
    schema_path: Optional[str] = None
    presets: Optional[Dict[str, SitePreset]] = None


@dataclass
class PipelineInputs:
    """Sheets of one site as read from the workbooks (text cells, original headers)."""

    facade_sheet: pd.DataFrame
    roof_sheet: pd.DataFrame
    sewer_sheet: pd.DataFrame
    concentration_sheet: pd.DataFrame


def _resolve(cfg: RunConfig) -> Tuple[SitePreset, DetectionLimitPolicy, EventSchema]:
    """Validate configuration before any computation."""
    site = resolve_site(cfg.site, cfg.presets)
    policy = resolve_policy(cfg.detection_limit)
    schema = load_schema(cfg.schema_path)
    if cfg.output_dir is not None:
        missing = [p for p in ("facade", "roof", "sewer") if p not in cfg.stems]
        if missing:
            raise ConfigError(f"Output stems missing for {missing}")
    return site, policy, schema


def load_roof_runoff(directory: Path | str, pattern: str = "*.csv") -> tuple[pd.DataFrame, Dict[str, Any]]:
    """Read all roof-logger exports of a site directory and merge them."""
    files = load_logger_dir(directory, pattern=pattern)
    logger.info("Found %d logger files in %s", len(files), directory)
    return merge_logger_files(files)


def run_all(cfg: RunConfig, inputs: PipelineInputs) -> tuple[Dict[str, LoadTables], Dict[str, Any]]:
    """Compute load and concentration tables for one site; optionally write them.

    Returns ``(tables, summary)``; ``summary`` is also written as
    ``summary.json`` next to the tables when ``cfg.output_dir`` is set.
    """
    site, policy, schema = _resolve(cfg)
    logger.info("Run start: site=%s policy=%s output=%s", site.name, policy.value, cfg.output_dir)

    facade, roof, sewer = (
        specific_runoff(point, getattr(inputs, f"{point}_sheet"), site, schema)
        for point in ("facade", "roof", "sewer")
    )

    tables = compute_loads(site, policy, facade, roof, sewer, inputs.concentration_sheet, schema=schema)

    summary: Dict[str, Any] = {
        "site": site.name,
        "detection_limit": policy.value,
        "events": {"facade": int(len(facade)), "roof": int(len(roof)), "sewer": int(len(sewer))},
        "points": {
            point: {k: v for k, v in t.meta.items() if k != "substances"}
            for point, t in tables.items()
        },
    }
    dropped = sum(t.meta["n_dropped"] for t in tables.values())
    if dropped:
        logger.warning("%s: %d concentration rows without matching event in total", site.name, dropped)

    if cfg.output_dir is not None:
        outdir = Path(cfg.output_dir)
        summary["files"] = write_load_tables(outdir, tables, cfg.stems)
        (outdir / "summary.json").write_text(json.dumps(summary, indent=2))
        summary["summary_json"] = str(outdir / "summary.json")
    return tables, summary


__all__ = ["RunConfig", "PipelineInputs", "load_roof_runoff", "run_all"]
