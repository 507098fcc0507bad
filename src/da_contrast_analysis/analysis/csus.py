"""CS/US response ratios by contrast."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence

import numpy as np
import pandas as pd

from ..aggregate import cs_us_ratio, ratio_stat
from ..batch import BatchResult, run_per_session
from ..config import AnalysisConfig
from ..errors import RECOVERABLE_ERRORS, InsufficientDataError
from ..store import HIT, Session

logger = logging.getLogger(__name__)

SESSION_COLUMNS = ["session", "contrast", "mean_ratio", "sem_ratio", "n_valid", "n_trials"]
COMBINED_COLUMNS = ["contrast", "mean_ratio", "sem_ratio", "n_sessions"]


@dataclass(frozen=True)
class CsUsReport:
    per_session: pd.DataFrame
    combined: pd.DataFrame
    batch: BatchResult[pd.DataFrame]


def trial_ratios(session: Session, config: AnalysisConfig | None = None) -> Dict[int, np.ndarray]:
    """Raw per-trial ratios (NaN kept) for every complete hit contrast."""

    config = config or AnalysisConfig()
    out: Dict[int, np.ndarray] = {}
    for contrast, group in session.contrast_groups(HIT).items():
        if not group.complete:
            continue
        out[contrast] = cs_us_ratio(group.zall, group.ts, config.cs_window, config.us_window)
    return out


def session_ratios(session: Session, config: AnalysisConfig | None = None) -> pd.DataFrame:
    """Mean and SEM of the finite CS/US ratios for each non-zero hit contrast."""

    config = config or AnalysisConfig()
    rows: List[dict] = []
    for contrast, group in session.contrast_groups(HIT).items():
        if contrast == 0:
            logger.info("%s: contrast 0%% excluded from CS/US ratios", session.label)
            continue
        if not group.complete:
            logger.warning("%s: missing data fields for contrast %d%%. Skipping.", session.label, contrast)
            continue
        try:
            ratios = cs_us_ratio(group.zall, group.ts, config.cs_window, config.us_window)
            stat = ratio_stat(ratios)
        except RECOVERABLE_ERRORS as exc:
            logger.warning("%s: no valid CS/US ratios for contrast %d%% (%s). Skipping.", session.label, contrast, exc)
            continue
        rows.append(
            {
                "session": session.index,
                "contrast": contrast,
                "mean_ratio": stat.mean,
                "sem_ratio": stat.sem,
                "n_valid": stat.n_valid,
                "n_trials": stat.n_trials,
            }
        )
    if not rows:
        raise InsufficientDataError(f"{session.label}: no valid contrast data for CS/US ratios")
    return pd.DataFrame(rows, columns=SESSION_COLUMNS).sort_values("contrast", ignore_index=True)


def combine_sessions(per_session: pd.DataFrame) -> pd.DataFrame:
    """Mean and SEM across sessions of the per-session mean ratios."""

    if per_session.empty:
        return pd.DataFrame(columns=COMBINED_COLUMNS)
    grouped = per_session.groupby("contrast", sort=True)["mean_ratio"]
    combined = grouped.agg(mean_ratio="mean", std_ratio="std", n_sessions="count").reset_index()
    combined["sem_ratio"] = (combined["std_ratio"] / np.sqrt(combined["n_sessions"])).fillna(0.0)
    return combined[COMBINED_COLUMNS]


def csus_ratio_by_contrast(sessions: Sequence[Session], config: AnalysisConfig | None = None) -> CsUsReport:
    config = config or AnalysisConfig()
    batch = run_per_session(sessions, lambda s: session_ratios(s, config), label="CS/US ratio")
    frames = list(batch.results.values())
    per_session = (
        pd.concat(frames, ignore_index=True) if frames else pd.DataFrame(columns=SESSION_COLUMNS)
    )
    combined = combine_sessions(per_session)
    for row in combined.itertuples(index=False):
        logger.info("Contrast %d%%: CS/US ratio = %.2f +/- %.2f", row.contrast, row.mean_ratio, row.sem_ratio)
    return CsUsReport(per_session=per_session, combined=combined, batch=batch)


__all__ = [
    "CsUsReport",
    "combine_sessions",
    "csus_ratio_by_contrast",
    "session_ratios",
    "trial_ratios",
]
