"""Distributions of per-trial peak times in the CS and US windows."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from ..batch import BatchResult, run_per_session
from ..config import AnalysisConfig
from ..errors import InsufficientDataError
from ..regression import NormalFit, fit_normal
from ..store import HIT, Session
from ..windows import TimeWindow, peak_records
from .threshold_comparison import session_threshold

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionPeakTimes:
    """Peak times of every hit trial; ``above[i]`` marks an above-threshold contrast."""

    cs_times: np.ndarray
    us_times: np.ndarray
    above: np.ndarray
    threshold: float


@dataclass(frozen=True)
class PeakTimeDistribution:
    window: TimeWindow
    times: np.ndarray
    mean: float
    median: float
    n: int
    normal: Optional[NormalFit]

    @classmethod
    def from_times(cls, window: TimeWindow, times: np.ndarray, label: str = "") -> "PeakTimeDistribution":
        times = np.asarray(times, dtype=np.float64)
        finite = times[np.isfinite(times)]
        normal = None
        try:
            normal = fit_normal(finite)
        except InsufficientDataError as exc:
            logger.warning("%s: no normal fit (%s)", label or "Peak times", exc)
        return cls(
            window=window,
            times=times,
            mean=float(finite.mean()) if finite.size else np.nan,
            median=float(np.median(finite)) if finite.size else np.nan,
            n=int(finite.size),
            normal=normal,
        )


@dataclass(frozen=True)
class PeakTimeReport:
    cs: PeakTimeDistribution
    us: PeakTimeDistribution
    cs_above: Optional[PeakTimeDistribution]
    cs_below: Optional[PeakTimeDistribution]
    us_above: Optional[PeakTimeDistribution]
    us_below: Optional[PeakTimeDistribution]
    batch: BatchResult[SessionPeakTimes]


def session_peak_times(session: Session, config: AnalysisConfig | None = None) -> SessionPeakTimes:
    config = config or AnalysisConfig()
    threshold = session_threshold(session, config)
    cs_times: List[np.ndarray] = []
    us_times: List[np.ndarray] = []
    above: List[np.ndarray] = []
    for contrast, group in session.contrast_groups(HIT).items():
        if not group.complete:
            logger.warning("%s: missing data fields for contrast %d%%. Skipping.", session.label, contrast)
            continue
        cs_times.append(peak_records(group.zall, group.ts, config.cs_peak_window).times)
        us_times.append(peak_records(group.zall, group.ts, config.us_peak_window).times)
        above.append(np.full(group.trial_count, contrast / 100.0 > threshold))
    if not cs_times:
        raise InsufficientDataError(f"{session.label}: no hit contrast data for peak times")
    return SessionPeakTimes(
        cs_times=np.concatenate(cs_times),
        us_times=np.concatenate(us_times),
        above=np.concatenate(above).astype(bool),
        threshold=threshold,
    )


def peak_time_distributions(
    sessions: Sequence[Session],
    config: AnalysisConfig | None = None,
    split_by_threshold: bool = False,
) -> PeakTimeReport:
    """Pool CS/US peak times over sessions and summarise each distribution.

    Raises ``InsufficientDataError`` when no session yields a peak time.
    """

    config = config or AnalysisConfig()
    batch = run_per_session(sessions, lambda s: session_peak_times(s, config), label="peak times")
    results = list(batch.results.values())
    if not results or sum(r.cs_times.size for r in results) == 0:
        raise InsufficientDataError("No valid peak times found for any session.")

    cs = np.concatenate([r.cs_times for r in results])
    us = np.concatenate([r.us_times for r in results])
    above = np.concatenate([r.above for r in results])
    report = PeakTimeReport(
        cs=PeakTimeDistribution.from_times(config.cs_peak_window, cs, "CS peaks"),
        us=PeakTimeDistribution.from_times(config.us_peak_window, us, "US peaks"),
        cs_above=PeakTimeDistribution.from_times(config.cs_peak_window, cs[above], "CS peaks above threshold") if split_by_threshold else None,
        cs_below=PeakTimeDistribution.from_times(config.cs_peak_window, cs[~above], "CS peaks below threshold") if split_by_threshold else None,
        us_above=PeakTimeDistribution.from_times(config.us_peak_window, us[above], "US peaks above threshold") if split_by_threshold else None,
        us_below=PeakTimeDistribution.from_times(config.us_peak_window, us[~above], "US peaks below threshold") if split_by_threshold else None,
        batch=batch,
    )
    logger.info("CS window: mean = %.3f s, median = %.3f s, n = %d", report.cs.mean, report.cs.median, report.cs.n)
    logger.info("US window: mean = %.3f s, median = %.3f s, n = %d", report.us.mean, report.us.median, report.us.n)
    return report


__all__ = [
    "PeakTimeDistribution",
    "PeakTimeReport",
    "SessionPeakTimes",
    "peak_time_distributions",
    "session_peak_times",
]
