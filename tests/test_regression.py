import numpy as np
import pandas as pd
import pytest

from runoffproc.config import PRESETS
from runoffproc.events import specific_runoff_roof
from runoffproc.parsing import parse_timestamps
from runoffproc.regression import (
    RegressionError,
    apply_overrides,
    fit_volume_model,
    roof_regression,
    training_observations,
)

RAIN_DEPTHS = [5.0, 8.0, 3.0, 12.0, 7.0]


def _volume(rain_mm, temp):
    return 50.0 + 80.0 * rain_mm + 4.0 * temp


@pytest.fixture()
def weather():
    # rain at midnight of each day, daily constant temperature 10 + 2*day
    t = pd.date_range("2019-06-01 00:00", periods=24 * 7, freq="h", tz="Etc/GMT-1")
    hours = np.arange(len(t))
    rain = pd.DataFrame({"dateTime": t, "G1": np.where(hours % 24 == 0, 1.0, 0.0)})
    temp = pd.DataFrame({"dateTime": t, "temperature_TST": 10.0 + 2.0 * (hours // 24)})
    return rain, temp


@pytest.fixture()
def roof_events(sheet_builder, test_site):
    rows = []
    for day, depth in enumerate(RAIN_DEPTHS):
        rows.append({
            "t_beg_rain": f"{day + 1:02d}.06.2019 06:00",
            "rain_mm": str(depth),
            "rain_gauge": "G1",
            "volume_l": str(_volume(depth, 10.0 + 2.0 * day)),
            "volume_from_regression": "FALSE",
        })
    # estimated volume and unflagged event must not enter the fit
    rows.append({"t_beg_rain": "02.06.2019 12:00", "rain_mm": "9", "rain_gauge": "G1",
                 "volume_l": "99999", "volume_from_regression": "TRUE"})
    rows.append({"t_beg_rain": "03.06.2019 12:00", "rain_mm": "9", "rain_gauge": "G1",
                 "volume_l": "99999", "volume_from_regression": None})
    return specific_runoff_roof(sheet_builder("roof", rows), test_site)


def test_fit_recovers_linear_model():
    obs = pd.DataFrame({
        "rain_mm": [1.0, 2.0, 3.0, 4.0, 6.0],
        "temp_before": [10.0, 15.0, 11.0, 20.0, 12.0],
    })
    obs["volume_l"] = 10.0 + 100.0 * obs["rain_mm"] + 5.0 * obs["temp_before"]
    model = fit_volume_model(obs)
    assert model.intercept == pytest.approx(10.0)
    assert model.coef_rain_mm == pytest.approx(100.0)
    assert model.coef_temp_before == pytest.approx(5.0)
    assert model.n_obs == 5
    assert model.r_squared == pytest.approx(1.0)
    assert model.predict(2.0, 10.0) == pytest.approx(260.0)
    assert np.isnan(model.predict(2.0, np.nan))


def test_fit_with_too_few_observations_raises():
    obs = pd.DataFrame({"rain_mm": [1.0, 2.0], "temp_before": [10.0, 12.0], "volume_l": [100.0, 200.0]})
    with pytest.raises(RegressionError, match="Insufficient data"):
        fit_volume_model(obs)


def test_incomplete_rows_do_not_count():
    obs = pd.DataFrame({
        "rain_mm": [1.0, 2.0, 3.0, 4.0],
        "temp_before": [10.0, np.nan, 12.0, np.nan],
        "volume_l": [100.0, 200.0, 300.0, 400.0],
    })
    with pytest.raises(RegressionError):
        fit_volume_model(obs)


def test_constant_predictor_is_singular():
    obs = pd.DataFrame({
        "rain_mm": [5.0, 5.0, 5.0, 5.0],
        "temp_before": [10.0, 12.0, 14.0, 16.0],
        "volume_l": [100.0, 120.0, 130.0, 150.0],
    })
    with pytest.raises(RegressionError, match="singular"):
        fit_volume_model(obs)


def test_training_observations_skip_estimated_volumes(roof_events, weather, test_site):
    rain, temp = weather
    obs = training_observations(roof_events, rain, temp, test_site)
    assert len(obs) == len(RAIN_DEPTHS)
    assert obs["temp_before"].tolist() == pytest.approx([10.0, 12.0, 14.0, 16.0, 18.0])
    assert (obs["volume_l"] < 99999).all()


def test_roof_regression_predicts_event(roof_events, weather, test_site):
    rain, temp = weather
    res = roof_regression(roof_events, rain, temp, test_site, rain_mm_pred=10.0,
                          date_pred="2019-06-06 06:00", rain_gauge="G1")
    assert res.temp_before == pytest.approx(20.0)
    assert res.prediction == pytest.approx(_volume(10.0, 20.0))
    assert res.model.coef_rain_mm == pytest.approx(80.0)
    assert res.meta["n_obs"] == 5
    assert list(res.observations.columns) == ["t_beg_rain", "t_end_rain", "rain_mm", "volume_l", "temp_before"]


def test_roof_regression_without_antecedent_rain_gives_missing_prediction(roof_events, weather, test_site):
    rain, temp = weather
    res = roof_regression(roof_events, rain, temp, test_site, rain_mm_pred=10.0,
                          date_pred="2019-06-01 00:00", rain_gauge="G1")
    assert np.isnan(res.temp_before)
    assert np.isnan(res.prediction)


def test_site_override_replaces_interrupted_event():
    events = pd.DataFrame({
        "t_beg_rain": parse_timestamps(pd.Series(["07.01.2019 07:05", "08.01.2019 10:00"]), fmt="%d.%m.%Y %H:%M"),
        "rain_mm": [12.0, 4.0],
        "volume_l": [1500.0, 600.0],
    })
    out = apply_overrides(events, PRESETS["BBW"])
    assert out["rain_mm"].tolist() == [29.3, 4.0]
    assert out["volume_l"].tolist() == [4284.0, 600.0]
    unchanged = apply_overrides(events, PRESETS["BBR"])
    assert unchanged["rain_mm"].tolist() == [12.0, 4.0]
