"""Early versus late comparisons within a session."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Sequence

import numpy as np
import pandas as pd

from ..aggregate import AggregateStat, aggregate
from ..batch import BatchResult, run_per_session
from ..config import AnalysisConfig
from ..errors import RECOVERABLE_ERRORS, InsufficientDataError
from ..splits import EARLY, LATE, match_rows_to_timestamps, split_by_median_time, split_by_order
from ..store import HIT, MISS, Session
from .trends import normalization_peak

logger = logging.getLogger(__name__)

HIT_RATE_COLUMNS = [
    "contrast",
    "early_hits",
    "early_misses",
    "late_hits",
    "late_misses",
    "early_hit_rate",
    "late_hit_rate",
]


@dataclass(frozen=True)
class EarlyLateComparison:
    """First and second half (by trial order) of one contrast."""

    session_index: int
    contrast: int
    early: AggregateStat
    late: AggregateStat

    @property
    def n_early(self) -> int:
        return self.early.n_trials

    @property
    def n_late(self) -> int:
        return self.late.n_trials


def order_split_contrast(
    session: Session, contrast: int, config: AnalysisConfig | None = None
) -> EarlyLateComparison:
    config = config or AnalysisConfig()
    group = session.lookup(HIT, contrast).unwrap()
    halves = split_by_order(group.zall, min_trials=config.min_trials_split)
    logger.info(
        "%s: contrast %d%% split into %d early and %d late trials",
        session.label,
        contrast,
        halves.early.shape[0],
        halves.late.shape[0],
    )
    return EarlyLateComparison(
        session_index=session.index,
        contrast=contrast,
        early=aggregate(halves.early, config.smooth_window),
        late=aggregate(halves.late, config.smooth_window),
    )


def order_split_across_sessions(
    sessions: Sequence[Session], contrast: int, config: AnalysisConfig | None = None
) -> BatchResult[EarlyLateComparison]:
    config = config or AnalysisConfig()
    return run_per_session(
        sessions, lambda s: order_split_contrast(s, contrast, config), label=f"early/late split of {contrast}%"
    )


@dataclass(frozen=True)
class EarlyLateHitRates:
    median_time: float
    table: pd.DataFrame


def _rate(hits: int, misses: int) -> float:
    total = hits + misses
    return hits / total if total else np.nan


def hit_rate_table(session: Session, config: AnalysisConfig | None = None) -> EarlyLateHitRates:
    """Hits, misses and hit rate per contrast before and after the median trial time.

    The median is taken over all hit and miss timestamps of the session.
    """

    config = config or AnalysisConfig()
    median_time = split_by_median_time(session.behavior.pooled_times(), min_trials=config.min_trials_split).median_time
    rows = []
    for contrast in session.behavior.contrasts():
        hits = session.behavior.times_for(HIT, contrast)
        misses = session.behavior.times_for(MISS, contrast)
        hit_times = hits.value if hits.ok else np.empty(0)
        miss_times = misses.value if misses.ok else np.empty(0)
        counts = {
            "early_hits": int(np.sum(hit_times < median_time)),
            "early_misses": int(np.sum(miss_times < median_time)),
            "late_hits": int(np.sum(hit_times >= median_time)),
            "late_misses": int(np.sum(miss_times >= median_time)),
        }
        rows.append(
            {
                "contrast": contrast,
                **counts,
                "early_hit_rate": _rate(counts["early_hits"], counts["early_misses"]),
                "late_hit_rate": _rate(counts["late_hits"], counts["late_misses"]),
            }
        )
    if not rows:
        raise InsufficientDataError(f"{session.label}: no per-contrast timestamps")
    return EarlyLateHitRates(median_time=median_time, table=pd.DataFrame(rows, columns=HIT_RATE_COLUMNS))


@dataclass(frozen=True)
class PeriodTrace:
    contrast: int
    stat: AggregateStat
    n_trials: int
    matched: bool


@dataclass(frozen=True)
class EarlyLateTraces:
    session_index: int
    period: str
    median_time: float
    normalization: float
    traces: Dict[int, PeriodTrace]


def early_late_traces(session: Session, period: str, config: AnalysisConfig | None = None) -> EarlyLateTraces:
    """Normalised mean/SEM traces per hit contrast for one period of the session.

    Traces are divided by :func:`normalization_peak` over all hit trials.
    Trial rows are matched to hit timestamps per ``config.unmatched_rows``.
    """

    config = config or AnalysisConfig()
    if period not in (EARLY, LATE):
        raise ValueError(f"period must be '{EARLY}' or '{LATE}', got '{period}'")
    median_time = split_by_median_time(session.behavior.pooled_times(), min_trials=config.min_trials_split).median_time
    norm = normalization_peak(session, config.norm_window)

    traces: Dict[int, PeriodTrace] = {}
    for contrast, group in session.contrast_groups(HIT).items():
        if not group.complete:
            logger.warning("%s: missing data fields for contrast %d%%. Skipping.", session.label, contrast)
            continue
        times = session.behavior.times_for(HIT, contrast)
        try:
            selection = match_rows_to_timestamps(
                group.zall,
                times.value if times.ok else np.empty(0),
                median_time,
                period,
                policy=config.unmatched_rows,
                label=f"{session.label} contrast {contrast}%",
            )
        except RECOVERABLE_ERRORS as exc:
            logger.warning("%s. Skipping.", exc)
            continue
        if selection.rows.shape[0] == 0:
            logger.info("%s: no %s trials for contrast %d%%", session.label, period, contrast)
            continue
        stat = aggregate(selection.rows, config.smooth_window).scaled(norm)
        traces[contrast] = PeriodTrace(
            contrast=contrast, stat=stat, n_trials=selection.rows.shape[0], matched=selection.matched
        )
    if not traces:
        raise InsufficientDataError(f"{session.label}: no {period} traces")
    return EarlyLateTraces(
        session_index=session.index,
        period=period,
        median_time=median_time,
        normalization=norm,
        traces=traces,
    )


@dataclass(frozen=True)
class EarlyLateSession:
    hit_rates: EarlyLateHitRates
    early: EarlyLateTraces
    late: EarlyLateTraces


def early_late_session(session: Session, config: AnalysisConfig | None = None) -> EarlyLateSession:
    config = config or AnalysisConfig()
    return EarlyLateSession(
        hit_rates=hit_rate_table(session, config),
        early=early_late_traces(session, EARLY, config),
        late=early_late_traces(session, LATE, config),
    )


def early_late_across_sessions(
    sessions: Sequence[Session], config: AnalysisConfig | None = None
) -> BatchResult[EarlyLateSession]:
    config = config or AnalysisConfig()
    return run_per_session(sessions, lambda s: early_late_session(s, config), label="early/late contrasts")


__all__ = [
    "EarlyLateComparison",
    "EarlyLateHitRates",
    "EarlyLateSession",
    "EarlyLateTraces",
    "HIT_RATE_COLUMNS",
    "PeriodTrace",
    "early_late_across_sessions",
    "early_late_session",
    "early_late_traces",
    "hit_rate_table",
    "order_split_across_sessions",
    "order_split_contrast",
]
