"""Above- vs below-threshold hit responses per session and pooled across sessions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from ..aggregate import AggregateStat, aggregate
from ..batch import BatchResult, run_per_session
from ..config import AnalysisConfig
from ..errors import InsufficientDataError
from ..splits import ThresholdSplit, resolve_threshold, split_by_threshold
from ..store import HIT, Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThresholdComparison:
    """Split rows and their aggregates; ``session_index`` is ``None`` when pooled."""

    session_index: Optional[int]
    threshold: float
    ts: np.ndarray
    split: ThresholdSplit
    above: Optional[AggregateStat]
    below: Optional[AggregateStat]


@dataclass(frozen=True)
class ThresholdReport:
    per_session: BatchResult[ThresholdComparison]
    combined: Optional[ThresholdComparison]


def session_threshold(session: Session, config: AnalysisConfig) -> float:
    return resolve_threshold(
        session.threshold,
        default=config.default_threshold,
        allow_default=config.allow_default_threshold,
        label=session.label,
    )


def _summarise(rows: np.ndarray, smooth_window: int) -> Optional[AggregateStat]:
    return aggregate(rows, smooth_window) if rows.shape[0] else None


def compare_session_threshold(session: Session, config: AnalysisConfig | None = None) -> ThresholdComparison:
    config = config or AnalysisConfig()
    threshold = session_threshold(session, config)
    logger.info("%s: using threshold = %.3f", session.label, threshold)
    ts = session.time_vector().unwrap()
    split = split_by_threshold(session.contrast_groups(HIT), threshold, label=session.label)
    if split.n_above == 0 and split.n_below == 0:
        raise InsufficientDataError(f"{session.label}: no valid hit trials on either side of the threshold")
    return ThresholdComparison(
        session_index=session.index,
        threshold=threshold,
        ts=ts,
        split=split,
        above=_summarise(split.above, config.smooth_window),
        below=_summarise(split.below, config.smooth_window),
    )


def compare_threshold_across_sessions(
    sessions: Sequence[Session], config: AnalysisConfig | None = None
) -> ThresholdReport:
    """Per-session comparisons plus one comparison over the stacked rows of all sessions."""

    config = config or AnalysisConfig()
    per_session = run_per_session(
        sessions, lambda s: compare_session_threshold(s, config), label="threshold comparison"
    )
    if not per_session.results:
        logger.warning("No valid data found for any session.")
        return ThresholdReport(per_session=per_session, combined=None)

    comparisons: List[ThresholdComparison] = []
    reference_ts = next(iter(per_session.results.values())).ts
    for index, comparison in per_session.results.items():
        if comparison.ts.shape != reference_ts.shape or not np.allclose(comparison.ts, reference_ts):
            logger.warning("Session %d: time grid differs from the first session. Excluded from pooling.", index)
            continue
        comparisons.append(comparison)
    above = np.vstack([c.split.above for c in comparisons])
    below = np.vstack([c.split.below for c in comparisons])
    pooled = ThresholdSplit(
        above=above,
        below=below,
        above_contrasts=sorted({x for c in comparisons for x in c.split.above_contrasts}),
        below_contrasts=sorted({x for c in comparisons for x in c.split.below_contrasts}),
        threshold=np.nan,
    )
    combined = ThresholdComparison(
        session_index=None,
        threshold=np.nan,
        ts=reference_ts,
        split=pooled,
        above=_summarise(above, config.smooth_window),
        below=_summarise(below, config.smooth_window),
    )
    logger.info("Combined threshold comparison: %d rows above, %d rows below", pooled.n_above, pooled.n_below)
    return ThresholdReport(per_session=per_session, combined=combined)


__all__ = [
    "ThresholdComparison",
    "ThresholdReport",
    "compare_session_threshold",
    "compare_threshold_across_sessions",
    "session_threshold",
]
