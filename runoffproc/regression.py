"""
Roof runoff volume from rain depth and antecedent temperature.

Used for events where the tipping counter overflowed or tipped incorrectly:
an ordinary least-squares model ``volume_l ~ rain_mm + temp_before`` is
fitted on the events whose volume was measured and evaluated for the event
in question.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import logging
import numpy as np
import pandas as pd

from .antecedent import antecedent_temperature, antecedent_temperatures
from .config import SitePreset, resolve_site, load_schema
from .parsing import parse_timestamps, to_timestamp

logger = logging.getLogger(__name__)

PREDICTORS = ("rain_mm", "temp_before")
RESPONSE = "volume_l"


class RegressionError(ValueError):
    """Insufficient data for regression (too few or degenerate observations)."""


@dataclass(frozen=True)
class VolumeModel:
    intercept: float
    coef_rain_mm: float
    coef_temp_before: float
    n_obs: int
    r_squared: float
    residual_se: float

    @property
    def coefficients(self) -> Dict[str, float]:
        return {
            "intercept": self.intercept,
            "rain_mm": self.coef_rain_mm,
            "temp_before": self.coef_temp_before,
        }

    def predict(self, rain_mm: float, temp_before: float) -> float:
        """Predicted volume in litres; NaN if either predictor is missing."""
        x = np.array([rain_mm, temp_before], dtype=float)
        if not np.all(np.isfinite(x)):
            return float("nan")
        return float(self.intercept + self.coef_rain_mm * x[0] + self.coef_temp_before * x[1])


@dataclass
class RegressionResult:
    model: VolumeModel
    observations: pd.DataFrame
    prediction: float = float("nan")
    temp_before: float = float("nan")
    meta: Dict[str, Any] = field(default_factory=dict)


def fit_volume_model(observations: pd.DataFrame) -> VolumeModel:
    """Fit ``volume_l ~ rain_mm + temp_before`` by ordinary least squares.

    Rows with a missing response or predictor are ignored.

    Raises
    ------
    RegressionError
        With fewer than three complete observations or a rank-deficient
        design (e.g. constant rain depth).
    """
    cols = [RESPONSE, *PREDICTORS]
    missing = [c for c in cols if c not in observations.columns]
    if missing:
        raise KeyError(f"Observation table lacks columns {missing}")
    data = observations[cols].apply(pd.to_numeric, errors="coerce").dropna()
    n = len(data)
    if n < 3:
        raise RegressionError(f"Insufficient data for regression: {n} complete observations, need >= 3")
    X = np.column_stack([np.ones(n), data[PREDICTORS[0]].to_numpy(float), data[PREDICTORS[1]].to_numpy(float)])
    y = data[RESPONSE].to_numpy(float)
    if np.linalg.matrix_rank(X) < X.shape[1]:
        raise RegressionError("Insufficient data for regression: design matrix is singular")
    beta, *_ = np.linalg.lstsq(X, y, rcond=None)
    resid = y - X @ beta
    ss_res = float(resid @ resid)
    ss_tot = float(np.sum((y - y.mean()) ** 2))
    r2 = 1.0 - ss_res / ss_tot if ss_tot > 0 else float("nan")
    dof = n - X.shape[1]
    se = float(np.sqrt(ss_res / dof)) if dof > 0 else float("nan")
    return VolumeModel(
        intercept=float(beta[0]),
        coef_rain_mm=float(beta[1]),
        coef_temp_before=float(beta[2]),
        n_obs=n,
        r_squared=r2,
        residual_se=se,
    )


def apply_overrides(events: pd.DataFrame, preset: SitePreset, fmt: Optional[str] = None) -> pd.DataFrame:
    """Replace observation values named by ``preset.regression_overrides``."""
    out = events.copy()
    if not preset.regression_overrides:
        return out
    fmt = fmt or load_schema().datetime_format
    for entry in preset.regression_overrides:
        t = parse_timestamps(pd.Series([entry["t_beg_rain"]]), fmt=fmt).iloc[0]
        hit = out["t_beg_rain"] == t
        for col in (c for c in ("rain_mm", "volume_l") if c in entry):
            out.loc[hit, col] = float(entry[col])
        if hit.any():
            logger.info("%s: regression override applied to event %s", preset.name, t)
    return out


def training_observations(
    events: pd.DataFrame,
    rain: pd.DataFrame,
    temperature: pd.DataFrame,
    site: str | SitePreset,
    *,
    time_col: str = "dateTime",
) -> pd.DataFrame:
    """Observation table for the roof regression.

    Keeps events explicitly flagged as measured (regression flag False, not
    missing) so estimated volumes never feed back into the model.
    """
    preset = resolve_site(site)
    flag = events["volume_from_regression"].astype("boolean")
    measured = events[flag.notna() & ~flag.fillna(True)]
    measured = apply_overrides(measured, preset)
    temp_before = antecedent_temperatures(
        measured, rain, temperature, temp_col=preset.temperature_col, time_col=time_col
    )
    obs = pd.DataFrame({
        "t_beg_rain": measured["t_beg_rain"],
        "t_end_rain": measured["t_end_rain"],
        "rain_mm": measured["rain_mm"],
        "volume_l": measured["volume_l"],
        "temp_before": temp_before,
    })
    return obs.reset_index(drop=True)


def roof_regression(
    events: pd.DataFrame,
    rain: pd.DataFrame,
    temperature: pd.DataFrame,
    site: str | SitePreset,
    rain_mm_pred: float,
    date_pred: Any,
    rain_gauge: str,
    *,
    time_col: str = "dateTime",
) -> RegressionResult:
    """Fit the roof model for ``site`` and predict the volume of one event.

    Parameters
    ----------
    events:
        Prepared roof event table (see :func:`runoffproc.events.specific_runoff_roof`).
    rain, temperature:
        Time series with ``time_col`` plus one column per gauge / sensor.
    rain_mm_pred, date_pred, rain_gauge:
        Rain depth, start time and gauge of the event to estimate.
    """
    preset = resolve_site(site)
    obs = training_observations(events, rain, temperature, preset, time_col=time_col)
    model = fit_volume_model(obs)
    t_pred = to_timestamp(date_pred)
    temp_before = antecedent_temperature(
        rain, temperature, t_pred, gauge=rain_gauge, temp_col=preset.temperature_col, time_col=time_col
    )
    prediction = model.predict(rain_mm_pred, temp_before)
    if np.isnan(prediction):
        logger.warning("%s: no prediction for %s (antecedent temperature missing)", preset.name, t_pred)
    else:
        logger.info("%s: predicted roof runoff = %.1f l, mean temp before = %.2f",
                    preset.name, prediction, temp_before)
    meta = {
        "site": preset.name,
        "date_pred": str(t_pred),
        "rain_gauge": rain_gauge,
        "rain_mm_pred": float(rain_mm_pred),
        "coefficients": model.coefficients,
        "n_obs": model.n_obs,
        "r_squared": model.r_squared,
    }
    return RegressionResult(model=model, observations=obs, prediction=prediction,
                            temp_before=temp_before, meta=meta)


__all__ = [
    "RegressionError",
    "VolumeModel",
    "RegressionResult",
    "fit_volume_model",
    "apply_overrides",
    "training_observations",
    "roof_regression",
]
