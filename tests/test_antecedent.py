import numpy as np
import pandas as pd
import pytest

from runoffproc.antecedent import antecedent_temperature, antecedent_temperatures, previous_rain_end


def _hourly(start, values, col):
    t = pd.date_range(start, periods=len(values), freq="h", tz="Etc/GMT-1")
    return pd.DataFrame({"dateTime": t, col: values})


@pytest.fixture()
def rain():
    # rain at 01:00 and 02:00, dry afterwards; event starts at 05:00
    return _hourly("2019-06-01 00:00", [0.0, 0.4, 0.2, 0.0, 0.0, 1.2, 0.0], "G1")


@pytest.fixture()
def temperature():
    return _hourly("2019-06-01 00:00", [10.0, 11.0, 12.0, 14.0, np.nan, 30.0, 30.0], "temperature_TST")


def test_mean_over_dry_period(rain, temperature):
    val = antecedent_temperature(rain, temperature, "2019-06-01 05:00", gauge="G1",
                                 temp_col="temperature_TST")
    # window [02:00, 05:00): 12, 14, NaN -> 13
    assert val == pytest.approx(13.0)


def test_rain_at_event_start_is_not_antecedent(rain):
    t_prev = previous_rain_end(rain, "2019-06-01 05:00", gauge="G1")
    assert t_prev == pd.Timestamp("2019-06-01 02:00", tz="Etc/GMT-1")


def test_no_prior_rain_gives_missing(rain, temperature):
    val = antecedent_temperature(rain, temperature, "2019-06-01 01:00", gauge="G1",
                                 temp_col="temperature_TST")
    assert np.isnan(val)


def test_unknown_gauge_raises(rain, temperature):
    with pytest.raises(KeyError, match="G7"):
        antecedent_temperature(rain, temperature, "2019-06-01 05:00", gauge="G7",
                               temp_col="temperature_TST")


def test_per_event_gauges(rain, temperature):
    events = pd.DataFrame({
        "t_beg_rain": pd.to_datetime(["2019-06-01 05:00", "2019-06-01 01:00", "2019-06-01 05:00"])
        .tz_localize("Etc/GMT-1"),
        "rain_gauge": ["G1", "G1", None],
    })
    vals = antecedent_temperatures(events, rain, temperature, temp_col="temperature_TST")
    assert vals.iloc[0] == pytest.approx(13.0)
    assert np.isnan(vals.iloc[1])
    assert np.isnan(vals.iloc[2])
    assert vals.name == "temp_before"
