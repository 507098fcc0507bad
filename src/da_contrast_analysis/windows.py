"""Time-window extraction and per-trial peak detection."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from .errors import EmptyWindowError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeWindow:
    """Closed time interval ``[start, end]`` in the units of the time vector."""

    start: float
    end: float

    def __post_init__(self) -> None:
        if not self.start <= self.end:
            raise ValueError(f"Window start must not exceed end, got [{self.start}, {self.end}]")

    @classmethod
    def from_value(cls, value: "TimeWindow | Sequence[float]") -> "TimeWindow":
        """Build a window from a ``TimeWindow`` or a two-element sequence."""

        if isinstance(value, TimeWindow):
            return value
        if len(value) != 2:
            raise ValueError(f"A time window needs exactly two bounds, got {list(value)}")
        return cls(float(value[0]), float(value[1]))

    def as_tuple(self) -> Tuple[float, float]:
        return self.start, self.end


@dataclass(frozen=True)
class PeakRecord:
    """Per-trial peak values and times for one window.

    ``values[i]`` and ``times[i]`` belong to trial ``i`` of the source
    matrix. Trials whose window samples are all NaN carry NaN in both.
    """

    window: TimeWindow
    values: np.ndarray
    times: np.ndarray

    def __len__(self) -> int:
        return int(self.values.shape[0])


def extract_window(ts: np.ndarray, window: TimeWindow | Sequence[float]) -> np.ndarray:
    """Return indices ``i`` with ``start <= ts[i] <= end`` (possibly empty)."""

    win = TimeWindow.from_value(window)
    ts = np.asarray(ts, dtype=np.float64)
    mask = (ts >= win.start) & (ts <= win.end)
    return np.flatnonzero(mask)


def _require_indices(ts: np.ndarray, window: TimeWindow) -> np.ndarray:
    idx = extract_window(ts, window)
    if idx.size == 0:
        raise EmptyWindowError(
            f"No samples in window [{window.start}, {window.end}] "
            f"(time vector spans [{float(np.min(ts)) if ts.size else np.nan}, "
            f"{float(np.max(ts)) if ts.size else np.nan}])"
        )
    return idx


def peak_in_window(
    trial: np.ndarray, ts: np.ndarray, window: TimeWindow | Sequence[float]
) -> Tuple[float, float]:
    """Maximum of ``trial`` inside ``window`` and the time it occurs.

    Ties go to the first occurrence. NaN samples are ignored; a window with
    only NaN samples yields ``(nan, nan)``. Raises ``EmptyWindowError`` when
    no sample of ``ts`` falls inside the window.
    """

    win = TimeWindow.from_value(window)
    trial = np.asarray(trial, dtype=np.float64)
    ts = np.asarray(ts, dtype=np.float64)
    if trial.shape[0] != ts.shape[0]:
        raise ValueError(f"Trial length {trial.shape[0]} does not match time vector length {ts.shape[0]}")
    idx = _require_indices(ts, win)
    segment = trial[idx]
    if np.all(np.isnan(segment)):
        return np.nan, np.nan
    best = int(np.nanargmax(segment))
    return float(segment[best]), float(ts[idx[best]])


def peak_records(zall: np.ndarray, ts: np.ndarray, window: TimeWindow | Sequence[float]) -> PeakRecord:
    """Apply :func:`peak_in_window` to every row of a trial matrix."""

    win = TimeWindow.from_value(window)
    zall = np.atleast_2d(np.asarray(zall, dtype=np.float64))
    ts = np.asarray(ts, dtype=np.float64)
    if zall.shape[1] != ts.shape[0]:
        raise ValueError(f"Trial matrix has {zall.shape[1]} samples but time vector has {ts.shape[0]}")
    idx = _require_indices(ts, win)
    n_trials = zall.shape[0]
    values = np.full(n_trials, np.nan)
    times = np.full(n_trials, np.nan)
    segment = zall[:, idx]
    valid = ~np.all(np.isnan(segment), axis=1)
    if valid.any():
        filled = np.where(np.isnan(segment[valid]), -np.inf, segment[valid])
        best = np.argmax(filled, axis=1)
        values[valid] = segment[valid][np.arange(best.size), best]
        times[valid] = ts[idx[best]]
    if not valid.all():
        logger.debug("%d of %d trials have no finite samples in window %s", int((~valid).sum()), n_trials, win.as_tuple())
    return PeakRecord(window=win, values=values, times=times)


__all__ = [
    "TimeWindow",
    "PeakRecord",
    "extract_window",
    "peak_in_window",
    "peak_records",
]
