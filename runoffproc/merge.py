"""
Rebuild one continuous runoff series from overlapping logger downloads.

The roof logger records into a ring buffer, so every download holds the
whole record since the last reset.  Each time the logger clock was corrected
the timestamps of the *same* record shifted slightly, so several files start
on the same calendar day.  Files are grouped by that day ("start day") and
only the longest file of each group is kept.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Iterable, Tuple, List, Dict, Any
import logging
import numpy as np
import pandas as pd

from .parsing import parse_timestamps, LOGGER_TIME_FORMAT

logger = logging.getLogger(__name__)

# Logger text for values outside the measuring range.  The second spelling is
# how the umlaut arrives from exports written in a legacy code page.
OVER_RANGE_SENTINELS: Tuple[str, ...] = (
    "Messbereich überschritten",
    "Messbereich ?berschritten",
)


@dataclass(frozen=True)
class CoverageWindow:
    file: str
    start: pd.Timestamp
    end: pd.Timestamp
    start_day: pd.Timestamp

    @property
    def duration(self) -> pd.Timedelta:
        """Span from midnight of the start day to the last sample."""
        return self.end - self.start_day


def coverage_window(name: str, frame: pd.DataFrame, *, time_col: str = "dateTime",
                    fmt: str = LOGGER_TIME_FORMAT) -> CoverageWindow | None:
    """Return the coverage window of one file, or ``None`` if it holds no valid timestamp."""
    if time_col not in frame.columns:
        cols = ", ".join(map(str, frame.columns))
        raise KeyError(f"Column '{time_col}' not found in logger file {name!r}. Available columns: {cols}")
    t = parse_timestamps(frame[time_col], fmt=fmt).dropna()
    if t.empty:
        return None
    start = t.min()
    return CoverageWindow(file=name, start=start, end=t.max(), start_day=start.normalize())


def coverage_windows(files: Mapping[str, pd.DataFrame], *, time_col: str = "dateTime",
                     fmt: str = LOGGER_TIME_FORMAT) -> Tuple[List[CoverageWindow], List[Tuple[str, str]]]:
    """
    Return ``(windows, skipped)``.

    ``skipped = [(filename, reason)]`` lists files without any parseable
    timestamp; they cannot be assigned to a start day.
    """
    windows: List[CoverageWindow] = []
    skipped: List[Tuple[str, str]] = []
    for name in sorted(files):
        frame = files[name]
        if frame is None or len(frame) == 0:
            skipped.append((name, "no rows"))
            continue
        w = coverage_window(name, frame, time_col=time_col, fmt=fmt)
        if w is None:
            skipped.append((name, "no parseable timestamps"))
            continue
        windows.append(w)
    for name, reason in skipped:
        logger.warning("Skipping logger file %s: %s", name, reason)
    return windows, skipped


def select_authoritative(windows: Iterable[CoverageWindow]) -> List[CoverageWindow]:
    """Pick the longest file per start day, in start-day order.

    Equal durations resolve to the lexicographically smallest file name.
    """
    ordered = sorted(windows, key=lambda w: (w.start_day, -w.duration.value, w.file))
    chosen: List[CoverageWindow] = []
    for w in ordered:
        if chosen and chosen[-1].start_day == w.start_day:
            if w.duration == chosen[-1].duration:
                logger.info("Equal coverage on %s: keeping %s over %s",
                            w.start_day.date(), chosen[-1].file, w.file)
            continue
        chosen.append(w)
    return chosen


def normalize_values(values: pd.Series, sentinels: Iterable[str] = OVER_RANGE_SENTINELS) -> Tuple[pd.Series, int]:
    """Map over-range sentinels to NaN and coerce the rest to float.

    Returns ``(values, n_over_range)``.
    """
    text = values.map(lambda v: v.strip() if isinstance(v, str) else v)
    over = text.isin(list(sentinels))
    out = pd.to_numeric(text.mask(over), errors="coerce").astype(float)
    return out, int(over.sum())


def merge_logger_files(
    files: Mapping[str, pd.DataFrame],
    *,
    time_col: str = "dateTime",
    value_col: str = "Q",
    fmt: str = LOGGER_TIME_FORMAT,
    sentinels: Iterable[str] = OVER_RANGE_SENTINELS,
) -> tuple[pd.DataFrame, Dict[str, Any]]:
    """Combine raw logger files of one site into a continuous series.

    Parameters
    ----------
    files:
        Mapping of file name to raw rows with ``time_col`` and ``value_col``
        as text (an ``id`` column may be present and is dropped).
    time_col, value_col:
        Column names of the timestamp and the runoff value.
    fmt:
        Timestamp format of the logger export.
    sentinels:
        Texts that mark an exceeded measuring range.

    Returns
    -------
    DataFrame
        Columns ``[time_col, value_col]``; timestamps tz-aware, values float
        with NaN for over-range or unparseable entries.
    dict
        ``selected`` files in start-day order, ``skipped`` files with reason,
        per-file coverage windows and the ``n_over_range`` count.
    """
    windows, skipped = coverage_windows(files, time_col=time_col, fmt=fmt)
    chosen = select_authoritative(windows)

    parts: List[pd.DataFrame] = []
    for w in chosen:
        frame = files[w.file]
        if value_col not in frame.columns:
            cols = ", ".join(map(str, frame.columns))
            raise KeyError(f"Column '{value_col}' not found in logger file {w.file!r}. Available columns: {cols}")
        parts.append(pd.DataFrame({
            time_col: parse_timestamps(frame[time_col], fmt=fmt).reset_index(drop=True),
            value_col: frame[value_col].astype(object).reset_index(drop=True),
        }))

    if parts:
        out = pd.concat(parts, ignore_index=True)
    else:
        out = pd.DataFrame({time_col: parse_timestamps(pd.Series([], dtype=object)),
                            value_col: pd.Series([], dtype=object)})
    out[value_col], n_over = normalize_values(out[value_col], sentinels)
    if n_over:
        logger.info("%d samples flagged as over range and set to missing", n_over)

    meta = {
        "selected": [w.file for w in chosen],
        "skipped": skipped,
        "windows": [
            {
                "file": w.file,
                "start": str(w.start),
                "end": str(w.end),
                "start_day": str(w.start_day),
                "duration_h": float(w.duration / np.timedelta64(1, "h")),
            }
            for w in windows
        ],
        "n_samples": int(len(out)),
        "n_over_range": n_over,
    }
    logger.info("Merged %d of %d logger files into %d samples",
                len(chosen), len(files), len(out))
    return out, meta


__all__ = [
    "OVER_RANGE_SENTINELS",
    "CoverageWindow",
    "coverage_window",
    "coverage_windows",
    "select_authoritative",
    "normalize_values",
    "merge_logger_files",
]
