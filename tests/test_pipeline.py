import json

import numpy as np
import pandas as pd
import pytest

from runoffproc.config import ConfigError
from runoffproc.io import read_concentration_sheet, read_event_sheet, read_logger_csv
from runoffproc.pipeline import PipelineInputs, RunConfig, load_roof_runoff, run_all
from runoffproc.report import read_table


@pytest.fixture()
def inputs(sheet_builder, concentration_sheet):
    facade = sheet_builder("facade", [
        {"t_beg_rain": "01.06.2019 06:00", "t_end_rain": "01.06.2019 08:00", "rain_mm": "12",
         "rain_gauge": "G1", "lims_no": "L-1", "analysed_bottles": "N, S",
         "volume_N_ml": "50", "area_N_m2": "2", "volume_S_ml": ">100", "area_S_m2": "4",
         "area_O_m2": "3", "area_W_m2": "3"},
    ])
    roof = sheet_builder("roof", [
        {"t_beg_rain": "01.06.2019 06:00", "rain_mm": "12", "rain_gauge": "G1", "volume_l": "1000"},
        {"t_beg_rain": "03.06.2019 12:00", "rain_mm": "3", "rain_gauge": "G1", "volume_l": "200"},
    ])
    sewer = sheet_builder("sewer", [
        {"t_beg_rain": "01.06.2019 06:00", "rain_mm": "12", "volume_l": "2000"},
        {"t_beg_rain": "03.06.2019 12:00", "rain_mm": "3", "volume_l": None},
    ])
    return PipelineInputs(facade, roof, sewer, concentration_sheet)


def test_run_all_writes_tables_and_summary(tmp_path, inputs, test_site):
    cfg = RunConfig(site="TST", detection_limit="half", output_dir=str(tmp_path / "out"),
                    presets={"TST": test_site})
    tables, summary = run_all(cfg, inputs)

    out = tmp_path / "out"
    for stem in ("facade", "roof", "sewer"):
        assert (out / f"{stem}_load.txt").exists()
        assert (out / f"{stem}_conc.txt").exists()
    assert summary["files"]["roof"]["load"] == str(out / "roof_load.txt")

    on_disk = json.loads((out / "summary.json").read_text())
    assert on_disk["site"] == "TST"
    assert on_disk["detection_limit"] == "half"
    assert on_disk["points"]["facade"]["n_matched"] == 2
    assert on_disk["points"]["facade"]["n_dropped"] == 1
    assert on_disk["events"] == {"facade": 1, "roof": 2, "sewer": 2}

    facade = read_table(out / "facade_load.txt")
    assert facade["t_beg_rain"].tolist() == ["2019-06-01 06:00:00", "2019-06-01 06:00:00"]
    assert facade["bottle"].tolist() == ["N", "S"]
    assert float(facade["Cu_facade"].iloc[0]) == pytest.approx(0.1)
    assert facade["t_end_rain"].tolist() == ["2019-06-01 08:00:00"] * 2
    assert facade["wind_v_mean_m_s"].isna().all()

    conc = read_table(out / "facade_conc.txt")
    assert conc["Zn_facade"].tolist() == ["<2", "1"]

    sewer = read_table(out / "sewer_load.txt")
    # sewer event without a volume keeps its row, its load is missing
    assert len(sewer) == 2
    assert sewer["Zn_sewer"].isna().tolist() == [False, True]
    assert float(sewer["Zn_sewer"].iloc[0]) == pytest.approx(20.0)

    assert tables["roof"].load["Zn_roof"].tolist() == pytest.approx([55.0, 4.0])


def test_run_all_in_memory(inputs, test_site):
    tables, summary = run_all(RunConfig(site="TST", detection_limit="zero", presets={"TST": test_site}), inputs)
    assert "files" not in summary
    assert tables["roof"].load["Cu_roof"].iloc[0] == 0.0


@pytest.mark.parametrize("cfg", [
    RunConfig(site="NOPE"),
    RunConfig(site="BBW", detection_limit="quarter"),
    RunConfig(site="BBW", output_dir="x", stems={"roof": "r"}),
])
def test_invalid_configuration_is_rejected(cfg, inputs):
    with pytest.raises(ConfigError):
        run_all(cfg, inputs)


def _write_logger(path, rows):
    header = [f"# header line {i}" for i in range(28)]
    body = [f"{i};{t};{q}" for i, (t, q) in enumerate(rows, start=1)]
    path.write_text("\n".join(header + body) + "\n", encoding="latin-1")


def test_logger_files_are_read_and_merged(tmp_path):
    _write_logger(tmp_path / "a.csv", [("2019-01-01 00:10:00", "0.5"), ("2019-01-01 03:00:00", "1,0")])
    _write_logger(tmp_path / "b.csv", [("2019-01-01 00:11:00", "0.5"),
                                       ("2019-01-01 05:00:00", "Messbereich überschritten")])
    (tmp_path / "notes.txt").write_text("ignored")

    one = read_logger_csv(tmp_path / "a.csv")
    assert list(one.columns) == ["id", "dateTime", "Q"]
    assert one["dateTime"].iloc[0] == "2019-01-01 00:10:00"

    merged, meta = load_roof_runoff(tmp_path)
    assert meta["selected"] == ["b.csv"]
    assert merged["Q"].iloc[0] == pytest.approx(0.5)
    assert np.isnan(merged["Q"].iloc[1])
    assert meta["n_over_range"] == 1


def test_missing_logger_directory(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_roof_runoff(tmp_path / "nothing")


def test_read_sheets_from_workbook(tmp_path, sheet_builder):
    path = tmp_path / "Genommene_Proben.xlsx"
    sheet = sheet_builder("roof", [
        {"t_beg_rain": "01.06.2019 06:00", "rain_mm": "12,5", "rain_gauge": " G1 ", "volume_l": "na"},
    ])
    lab = pd.DataFrame([["01.06.2019 06:00", "<2", "na"]], columns=["tBegRain", "Zn", "Cu"])
    with pd.ExcelWriter(path, engine="openpyxl") as xw:
        sheet.to_excel(xw, sheet_name="BBW", startrow=2, index=False)
        lab.to_excel(xw, sheet_name="Konz_BBW", startrow=5, index=False)

    events = read_event_sheet(path, "BBW")
    assert list(events.columns) == list(sheet.columns)
    assert events["Regenhöhe_mm"].iloc[0] == "12,5"
    assert events["Regenschreiber"].iloc[0] == "G1"
    assert pd.isna(events["Abflussvol_l"].iloc[0])

    conc = read_concentration_sheet(path, "Konz_BBW")
    assert conc.iloc[0, 1] == "<2"
    assert pd.isna(conc.iloc[0, 2])
