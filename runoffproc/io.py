from __future__ import annotations
import pandas as pd
from pathlib import Path

LOGGER_COLUMNS = ["id", "dateTime", "Q"]
LOGGER_HEADER_LINES = 28
SHEET_NA = ["na", "nb"]


def read_logger_csv(path: Path | str, skip: int = LOGGER_HEADER_LINES,
                    encoding: str = "latin-1") -> pd.DataFrame:
    """Read one roof-logger export: ``id;dateTime;Q`` after ``skip`` header lines.

    Timestamp and value stay text; the value column may hold the logger's
    over-range message instead of a number.
    """
    df = pd.read_csv(
        path,
        sep=";",
        skiprows=skip,
        header=None,
        names=LOGGER_COLUMNS,
        usecols=[0, 1, 2],
        quotechar='"',
        dtype={"dateTime": str, "Q": str},
        keep_default_na=False,
        na_values=[""],
        encoding=encoding,
    )
    df["id"] = pd.to_numeric(df["id"], errors="coerce")
    return df


def load_logger_dir(directory: Path | str, pattern: str = "*.csv",
                    skip: int = LOGGER_HEADER_LINES) -> dict[str, pd.DataFrame]:
    """All logger exports in ``directory`` keyed by file name (sorted)."""
    d = Path(directory)
    if not d.is_dir():
        raise FileNotFoundError(f"Logger directory does not exist: {d}")
    return {p.name: read_logger_csv(p, skip=skip) for p in sorted(d.glob(pattern))}


def _read_text_sheet(path: Path | str, sheet: str, skip: int, na: list[str]) -> pd.DataFrame:
    df = pd.read_excel(
        path,
        sheet_name=sheet,
        skiprows=skip,
        dtype=str,
        na_values=na,
        keep_default_na=False,
        engine="openpyxl",
    )
    df = df.apply(lambda col: col.map(lambda v: v.strip() if isinstance(v, str) else v))
    return df.replace("", pd.NA)


def read_event_sheet(path: Path | str, sheet: str, skip: int = 2) -> pd.DataFrame:
    """Sampling-event sheet of one site (``Genommene_Proben_*`` workbooks), as text."""
    return _read_text_sheet(path, sheet, skip, SHEET_NA)


def read_concentration_sheet(path: Path | str, sheet: str, skip: int = 5) -> pd.DataFrame:
    """Lab concentration sheet of one site, as text; columns are addressed by position."""
    return _read_text_sheet(path, sheet, skip, ["na"])
