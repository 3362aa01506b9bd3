
"""
runoffproc - roof, facade and storm-sewer runoff loads for stormwater monitoring.
"""

__version__ = "0.1.0"

from .config import (
    ConfigError,
    DetectionLimitPolicy,
    SitePreset,
    PRESETS,
    resolve_policy,
    resolve_site,
    load_site_presets,
    EventSchema,
    load_schema,
)
from .merge import merge_logger_files, select_authoritative, coverage_windows
from .volume import integrate_volume, event_summary
from .events import (
    parse_truncated_volume,
    specific_runoff_roof,
    specific_runoff_facade,
    specific_runoff_sewer,
)
from .antecedent import antecedent_temperature, antecedent_temperatures
from .regression import RegressionError, VolumeModel, fit_volume_model, roof_regression
from .concentrations import resolve_concentration, split_concentration_sheet
from .loads import LoadTables, explode_bottles, compute_loads
from .report import write_load_tables
from .io import read_logger_csv, load_logger_dir, read_event_sheet, read_concentration_sheet
from .pipeline import RunConfig, PipelineInputs, load_roof_runoff, run_all

__all__ = [
    "__version__",
    "ConfigError", "DetectionLimitPolicy", "SitePreset", "PRESETS",
    "resolve_policy", "resolve_site", "load_site_presets", "EventSchema", "load_schema",
    "merge_logger_files", "select_authoritative", "coverage_windows",
    "integrate_volume", "event_summary",
    "parse_truncated_volume", "specific_runoff_roof", "specific_runoff_facade", "specific_runoff_sewer",
    "antecedent_temperature", "antecedent_temperatures",
    "RegressionError", "VolumeModel", "fit_volume_model", "roof_regression",
    "resolve_concentration", "split_concentration_sheet",
    "LoadTables", "explode_bottles", "compute_loads",
    "write_load_tables",
    "read_logger_csv", "load_logger_dir", "read_event_sheet", "read_concentration_sheet",
    "RunConfig", "PipelineInputs", "load_roof_runoff", "run_all",
]
