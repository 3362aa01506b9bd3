from __future__ import annotations

import pandas as pd
import pytest

from runoffproc.config import SitePreset, load_schema


@pytest.fixture()
def schema():
    return load_schema()


@pytest.fixture()
def sheet_builder(schema):
    """Build a sampling sheet with the workbook headers from canonical-keyed rows."""

    def build(point: str, rows: list[dict]) -> pd.DataFrame:
        inv = {canon: hdr for hdr, canon in schema.header_map(point).items()}
        data = [{inv[k]: v for k, v in row.items()} for row in rows]
        return pd.DataFrame(data, columns=list(inv.values()), dtype=object)

    return build


@pytest.fixture()
def test_site() -> SitePreset:
    # Small lab-sheet layout: sewer 1:3, facade bottle 3 + 4:6, roof 6:8
    return SitePreset(
        name="TST",
        roof_area_m2=100.0,
        sewer_area_m2=1000.0,
        temperature_col="temperature_TST",
        concentration_layout={
            "event_start": 0,
            "sewer": {"substances": [1, 3]},
            "facade": {"bottle": 3, "substances": [4, 6]},
            "roof": {"substances": [6, 8]},
        },
    )


@pytest.fixture()
def concentration_sheet() -> pd.DataFrame:
    cols = ["tBegRain", "Zn_sewer", "Cu_sewer", "beprobte_Flasche",
            "Zn_facade", "Cu_facade", "Zn_roof", "Cu_roof"]
    rows = [
        ["01.06.2019 06:00", "10", "<2", None, None, None, "5,5", "<1"],
        ["01.06.2019 06:00", None, None, "N", "<2", "4,0", None, None],
        ["01.06.2019 06:00", None, None, " S", "1", "2", None, None],
        ["03.06.2019 12:00", "8", "3", "N", "1", "1", "2", "2"],
        ["04.06.2019 08:00", None, None, None, None, None, None, None],
    ]
    return pd.DataFrame(rows, columns=cols, dtype=object)
