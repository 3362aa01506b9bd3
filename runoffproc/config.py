"""Site presets, detection-limit policy and spreadsheet schema."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional
import json


class ConfigError(ValueError):
    """Raised for unknown sites, unknown policies or malformed configuration."""


class DetectionLimitPolicy(str, Enum):
    """Substitution rule for concentrations reported as ``<limit``."""

    ZERO = "zero"
    HALF = "half"
    LIMIT = "limit"


# "detLim" is the switch value used in the field-database notes.
_POLICY_ALIASES = {"detlim": "limit", "full": "limit"}


def resolve_policy(value: str | DetectionLimitPolicy) -> DetectionLimitPolicy:
    if isinstance(value, DetectionLimitPolicy):
        return value
    key = str(value).strip().lower()
    key = _POLICY_ALIASES.get(key, key)
    try:
        return DetectionLimitPolicy(key)
    except ValueError:
        valid = ", ".join(p.value for p in DetectionLimitPolicy)
        raise ConfigError(f"Unknown detection-limit policy {value!r}; expected one of: {valid}") from None


# 0-based, end-exclusive column positions in the concentration workbook sheet.
# Column 0 holds the event start (tBegRain).
DEFAULT_CONCENTRATION_LAYOUT: Dict[str, Any] = {
    "event_start": 0,
    "sewer": {"substances": [16, 61]},
    "facade": {"bottle": 65, "substances": [71, 115]},
    "roof": {"substances": [121, 165]},
}


@dataclass
class SitePreset:
    """Fixed catchment constants and sheet layout for one monitoring site.

    ``regression_overrides`` replace observation values before the roof
    regression is fitted; each entry names ``t_beg_rain`` (sheet format) and
    any of ``rain_mm`` / ``volume_l``.
    """

    name: str
    roof_area_m2: float
    sewer_area_m2: float
    temperature_col: str
    concentration_layout: Dict[str, Any] = field(
        default_factory=lambda: json.loads(json.dumps(DEFAULT_CONCENTRATION_LAYOUT))
    )
    regression_overrides: List[Dict[str, Any]] = field(default_factory=list)


PRESETS: Dict[str, SitePreset] = {
    "BBW": SitePreset(
        name="BBW",
        roof_area_m2=183.57,
        sewer_area_m2=3950.0,
        temperature_col="temperature_BBW",
        # Event of 07.01.2019 was sampled before it ended; the sheet holds the
        # interrupted values, the regression uses the complete event.
        regression_overrides=[
            {"t_beg_rain": "07.01.2019 07:05", "rain_mm": 29.3, "volume_l": 4284.0},
        ],
    ),
    "BBR": SitePreset(
        name="BBR",
        roof_area_m2=194.0,
        sewer_area_m2=3300.0,
        temperature_col="temperature_BBR",
    ),
}


def resolve_site(site: str | SitePreset, presets: Optional[Dict[str, SitePreset]] = None) -> SitePreset:
    """Return the :class:`SitePreset` for ``site`` or raise :class:`ConfigError`."""
    if isinstance(site, SitePreset):
        return site
    table = PRESETS if presets is None else presets
    key = str(site).strip()
    if key not in table:
        raise ConfigError(f"Unknown site {site!r}; known sites: {', '.join(sorted(table))}")
    return table[key]


def load_site_presets(path: str | Path) -> Dict[str, SitePreset]:
    """Load site presets from a JSON file keyed by site name.

    Sites missing from the file keep their built-in preset.
    """
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Preset file does not exist: {p}")
    data = json.loads(p.read_text(encoding="utf-8"))
    out = dict(PRESETS)
    for name, entry in data.items():
        try:
            out[name] = SitePreset(name=name, **entry)
        except TypeError as e:
            raise ConfigError(f"Invalid preset for site {name!r}: {e}") from e
    return out


DEFAULT_SCHEMA_PATH = Path(__file__).with_name("schema") / "default_schema.json"

POINTS = ("facade", "roof", "sewer")


@dataclass(frozen=True)
class EventSchema:
    """Spreadsheet header names mapped onto canonical column names.

    ``columns`` maps canonical name -> header in the sampling sheets,
    ``facade_sides`` maps side code -> ``{"volume": header, "area": header}``.
    """

    datetime_format: str
    columns: Dict[str, str]
    required: Dict[str, List[str]]
    facade_sides: Dict[str, Dict[str, str]]
    load_metadata: Dict[str, List[str]]

    def header_map(self, point: str) -> Dict[str, str]:
        """Return ``{header: canonical}`` for sheets of monitoring point ``point``."""
        mapping = {hdr: canon for canon, hdr in self.columns.items()}
        if point == "facade":
            for code, side in self.facade_sides.items():
                mapping[side["volume"]] = volume_col(code)
                mapping[side["area"]] = area_col(code)
        return mapping

    def header(self, canonical: str) -> str:
        return self.columns[canonical]


def volume_col(side: str) -> str:
    return f"volume_{side}_ml"


def area_col(side: str) -> str:
    return f"area_{side}_m2"


def overflow_col(side: str) -> str:
    return f"full_{side}"


def specq_col(side: str) -> str:
    return f"specQ_{side}"


def _validate_schema(schema: EventSchema) -> None:
    for point in POINTS:
        if point not in schema.required or point not in schema.load_metadata:
            raise ConfigError(f"Schema lacks entries for monitoring point {point!r}")
        unknown = [c for c in schema.required[point] if c not in schema.columns]
        if unknown:
            raise ConfigError(f"Schema requires unmapped columns for {point}: {unknown}")
    for code, side in schema.facade_sides.items():
        if not {"volume", "area"} <= set(side):
            raise ConfigError(f"Facade side {code!r} needs 'volume' and 'area' headers")


@lru_cache(maxsize=None)
def _load_schema_cached(path: str) -> EventSchema:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    try:
        schema = EventSchema(
            datetime_format=data["datetime_format"],
            columns=dict(data["columns"]),
            required={k: list(v) for k, v in data["required"].items()},
            facade_sides={k: dict(v) for k, v in data["facade_sides"].items()},
            load_metadata={k: list(v) for k, v in data["load_metadata"].items()},
        )
    except KeyError as e:
        raise ConfigError(f"Schema file {path} lacks key {e}") from e
    _validate_schema(schema)
    return schema


def load_schema(path: str | Path | None = None) -> EventSchema:
    """Load (once per path) the spreadsheet schema; defaults to the packaged one."""
    p = Path(path) if path is not None else DEFAULT_SCHEMA_PATH
    if not p.exists():
        raise ConfigError(f"Schema file does not exist: {p}")
    return _load_schema_cached(str(p.resolve()))


__all__ = [
    "ConfigError",
    "DetectionLimitPolicy",
    "resolve_policy",
    "SitePreset",
    "PRESETS",
    "resolve_site",
    "load_site_presets",
    "EventSchema",
    "load_schema",
    "POINTS",
    "DEFAULT_CONCENTRATION_LAYOUT",
]
