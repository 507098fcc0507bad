"""Mean/SEM aggregation, smoothing and window-ratio statistics."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
import scipy.stats

from .errors import InsufficientDataError
from .windows import TimeWindow, peak_in_window, peak_records

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AggregateStat:
    """Column-wise mean and SEM of a trial group, optionally smoothed."""

    mean: np.ndarray
    sem: np.ndarray
    n_trials: int
    smoothed_mean: Optional[np.ndarray] = None
    smoothed_sem: Optional[np.ndarray] = None

    def scaled(self, factor: float) -> "AggregateStat":
        """Return the statistic divided by ``factor`` (e.g. a normalisation peak)."""

        if factor == 0 or not np.isfinite(factor):
            raise InsufficientDataError(f"Cannot normalise by {factor}")
        return AggregateStat(
            mean=self.mean / factor,
            sem=self.sem / factor,
            n_trials=self.n_trials,
            smoothed_mean=None if self.smoothed_mean is None else self.smoothed_mean / factor,
            smoothed_sem=None if self.smoothed_sem is None else self.smoothed_sem / factor,
        )


def _as_matrix(zall: np.ndarray) -> np.ndarray:
    zall = np.asarray(zall, dtype=np.float64)
    if zall.ndim == 1:
        zall = zall[None, :]
    if zall.ndim != 2:
        raise ValueError(f"Trial matrix must be 2D, got shape {zall.shape}")
    return zall


def mean_sem(zall: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Column mean and standard error of the mean.

    The SEM uses the sample standard deviation (``ddof=1``) and is all zero
    for a single trial.
    """

    zall = _as_matrix(zall)
    n_trials = zall.shape[0]
    if n_trials < 1:
        raise InsufficientDataError("Mean/SEM needs at least one trial")
    mean = zall.mean(axis=0)
    if n_trials == 1:
        return mean, np.zeros_like(mean)
    return mean, scipy.stats.sem(zall, axis=0, ddof=1)


def smooth(series: Sequence[float] | np.ndarray, window: int = 15) -> np.ndarray:
    """Centred moving average whose window shrinks at the edges.

    For an even ``window`` the extra sample is taken before the current
    one. Output length equals input length; a NaN only affects the windows
    that contain it.
    """

    x = np.asarray(series, dtype=np.float64).ravel()
    if x.size == 0 or window <= 1:
        return x.copy()
    before = window // 2
    after = window - before - 1
    idx = np.arange(x.size)
    lo = np.maximum(idx - before, 0)
    hi = np.minimum(idx + after, x.size - 1) + 1

    nan_mask = np.isnan(x)
    csum = np.concatenate([[0.0], np.cumsum(np.where(nan_mask, 0.0, x))])
    nan_count = np.concatenate([[0], np.cumsum(nan_mask)])
    out = (csum[hi] - csum[lo]) / (hi - lo)
    out[(nan_count[hi] - nan_count[lo]) > 0] = np.nan
    return out


def aggregate(zall: np.ndarray, smooth_window: Optional[int] = None) -> AggregateStat:
    """Mean/SEM of a trial matrix plus smoothed variants when requested."""

    zall = _as_matrix(zall)
    mean, sem = mean_sem(zall)
    if smooth_window and smooth_window > 1:
        return AggregateStat(
            mean=mean,
            sem=sem,
            n_trials=zall.shape[0],
            smoothed_mean=smooth(mean, smooth_window),
            smoothed_sem=smooth(sem, smooth_window),
        )
    return AggregateStat(mean=mean, sem=sem, n_trials=zall.shape[0])


def mean_trace_peak(zall: np.ndarray, ts: np.ndarray, window: TimeWindow | Sequence[float]) -> float:
    """Peak of the trial-averaged trace inside ``window``."""

    zall = _as_matrix(zall)
    if zall.shape[0] < 1:
        raise InsufficientDataError("Mean trace peak needs at least one trial")
    value, _ = peak_in_window(zall.mean(axis=0), ts, window)
    return value


@dataclass(frozen=True)
class PeakSummary:
    """Group-level summary of per-trial window peaks."""

    window: TimeWindow
    mean_value: float
    sem_value: float
    mean_time: float
    sem_time: float
    n_trials: int


def _finite_mean_sem(values: np.ndarray) -> Tuple[float, float, int]:
    finite = values[np.isfinite(values)]
    if finite.size == 0:
        return np.nan, np.nan, 0
    if finite.size == 1:
        return float(finite[0]), 0.0, 1
    return float(finite.mean()), float(finite.std(ddof=1) / np.sqrt(finite.size)), int(finite.size)


def peak_summary(zall: np.ndarray, ts: np.ndarray, window: TimeWindow | Sequence[float]) -> PeakSummary:
    """Mean and SEM of per-trial peak values and peak times in ``window``."""

    record = peak_records(zall, ts, window)
    mean_value, sem_value, n_valid = _finite_mean_sem(record.values)
    if n_valid == 0:
        raise InsufficientDataError(f"No finite peaks in window {record.window.as_tuple()}")
    mean_time, sem_time, _ = _finite_mean_sem(record.times)
    return PeakSummary(
        window=record.window,
        mean_value=mean_value,
        sem_value=sem_value,
        mean_time=mean_time,
        sem_time=sem_time,
        n_trials=n_valid,
    )


def cs_us_ratio(
    zall: np.ndarray,
    ts: np.ndarray,
    cs_window: TimeWindow | Sequence[float],
    us_window: TimeWindow | Sequence[float],
) -> np.ndarray:
    """Per-trial ratio of the CS-window peak to the US-window peak.

    Trials with a zero US peak or a non-finite peak in either window are
    NaN in the returned array.
    """

    cs = peak_records(zall, ts, cs_window).values
    us = peak_records(zall, ts, us_window).values
    with np.errstate(divide="ignore", invalid="ignore"):
        ratios = cs / us
    ratios[~np.isfinite(ratios) | (us == 0)] = np.nan
    return ratios


@dataclass(frozen=True)
class RatioStat:
    mean: float
    sem: float
    n_valid: int
    n_trials: int


def ratio_stat(ratios: np.ndarray) -> RatioStat:
    """Mean and SEM over the finite per-trial ratios."""

    ratios = np.asarray(ratios, dtype=np.float64).ravel()
    mean, sem, n_valid = _finite_mean_sem(ratios)
    if n_valid == 0:
        raise InsufficientDataError("No valid CS/US ratios")
    if n_valid < ratios.size:
        logger.debug("Excluded %d of %d non-finite ratios", ratios.size - n_valid, ratios.size)
    return RatioStat(mean=mean, sem=sem, n_valid=n_valid, n_trials=int(ratios.size))


__all__ = [
    "AggregateStat",
    "PeakSummary",
    "RatioStat",
    "aggregate",
    "cs_us_ratio",
    "mean_sem",
    "mean_trace_peak",
    "peak_summary",
    "ratio_stat",
    "smooth",
]
