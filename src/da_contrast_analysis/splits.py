"""Threshold and early/late partitioning of trial matrices."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Mapping, NamedTuple, Optional, Sequence

import numpy as np

from .errors import InsufficientTrialsError, InvalidThresholdError, MissingFieldError
from .store import ContrastTrialGroup

logger = logging.getLogger(__name__)

EARLY = "early"
LATE = "late"


def resolve_threshold(
    threshold: Optional[float],
    default: float = 0.1,
    allow_default: bool = True,
    label: str = "",
) -> float:
    """Return ``threshold`` when it is a proportion in [0, 1], else the default.

    Substituting the default logs a warning. With ``allow_default=False``
    an absent or invalid threshold raises ``InvalidThresholdError``.
    """

    if threshold is not None and np.isfinite(threshold) and 0.0 <= threshold <= 1.0:
        return float(threshold)
    if not allow_default:
        raise InvalidThresholdError(f"{label or 'Session'}: invalid threshold {threshold!r}")
    logger.warning(
        "%s: no valid threshold found (%r). Using default threshold of %.3f.",
        label or "Session",
        threshold,
        default,
    )
    return float(default)


@dataclass(frozen=True)
class ThresholdSplit:
    """Rows of contrasts above the threshold and at or below it."""

    above: np.ndarray
    below: np.ndarray
    above_contrasts: List[int]
    below_contrasts: List[int]
    threshold: float

    @property
    def n_above(self) -> int:
        return int(self.above.shape[0])

    @property
    def n_below(self) -> int:
        return int(self.below.shape[0])


def _stack(rows: List[np.ndarray], n_samples: int) -> np.ndarray:
    if not rows:
        return np.empty((0, n_samples))
    return np.vstack(rows)


def split_by_threshold(
    groups: Mapping[int, Optional[ContrastTrialGroup]],
    threshold: float,
    label: str = "",
) -> ThresholdSplit:
    """Partition whole contrast groups around a psychometric threshold.

    A contrast goes ``above`` when ``contrast / 100 > threshold`` and
    ``below`` otherwise, so a contrast equal to the threshold counts as
    below. Groups without a trial matrix or time vector are skipped with
    a warning.
    """

    above: List[np.ndarray] = []
    below: List[np.ndarray] = []
    above_contrasts: List[int] = []
    below_contrasts: List[int] = []
    n_samples: Optional[int] = None

    for contrast in sorted(groups):
        group = groups[contrast]
        if group is None or not group.complete:
            logger.warning("%s: missing data fields for contrast %s%%. Skipping.", label or "Session", contrast)
            continue
        if n_samples is None:
            n_samples = group.zall.shape[1]
        elif group.zall.shape[1] != n_samples:
            raise ValueError(
                f"Contrast {contrast}% has {group.zall.shape[1]} samples, expected {n_samples}"
            )
        if contrast / 100.0 > threshold:
            above.append(np.array(group.zall))
            above_contrasts.append(int(contrast))
        else:
            below.append(np.array(group.zall))
            below_contrasts.append(int(contrast))

    split = ThresholdSplit(
        above=_stack(above, n_samples or 0),
        below=_stack(below, n_samples or 0),
        above_contrasts=above_contrasts,
        below_contrasts=below_contrasts,
        threshold=float(threshold),
    )
    logger.debug(
        "%s: threshold %.3f -> %d rows above %s, %d rows below %s",
        label or "Session",
        threshold,
        split.n_above,
        above_contrasts,
        split.n_below,
        below_contrasts,
    )
    return split


class OrderSplit(NamedTuple):
    early: np.ndarray
    late: np.ndarray


def split_by_order(zall: np.ndarray, min_trials: int = 4) -> OrderSplit:
    """Split rows into the first ``floor(N/2)`` and the remaining trials."""

    zall = np.atleast_2d(np.asarray(zall, dtype=np.float64))
    n_trials = zall.shape[0]
    if n_trials < min_trials:
        raise InsufficientTrialsError(f"Insufficient trials (minimum {min_trials} needed), got {n_trials}")
    half = n_trials // 2
    return OrderSplit(early=zall[:half].copy(), late=zall[half:].copy())


class MedianSplit(NamedTuple):
    median_time: float
    early: np.ndarray
    late: np.ndarray


def split_by_median_time(timestamps: Sequence[float] | np.ndarray, min_trials: int = 4) -> MedianSplit:
    """Median of ``timestamps`` and the masks of entries before / from it.

    ``early`` is ``timestamps < median`` and ``late`` is
    ``timestamps >= median``; both masks follow the input order.
    """

    times = np.asarray(timestamps, dtype=np.float64).ravel()
    if times.size < min_trials:
        raise InsufficientTrialsError(f"Not enough trials for a median split ({times.size} < {min_trials})")
    median_time = float(np.median(np.sort(times)))
    return MedianSplit(median_time=median_time, early=times < median_time, late=times >= median_time)


class RowSelection(NamedTuple):
    rows: np.ndarray
    matched: bool


def match_rows_to_timestamps(
    zall: np.ndarray,
    timestamps: Sequence[float] | np.ndarray,
    median_time: float,
    period: str,
    policy: str = "skip",
    label: str = "",
) -> RowSelection:
    """Select the trial rows of one period (``"early"`` or ``"late"``).

    Rows line up with ``timestamps`` only when both have the same length.
    Otherwise ``policy="skip"`` raises ``MissingFieldError`` and
    ``policy="all_trials"`` returns every row with ``matched=False`` after
    logging a warning.
    """

    if period not in (EARLY, LATE):
        raise ValueError(f"period must be '{EARLY}' or '{LATE}', got '{period}'")
    zall = np.atleast_2d(np.asarray(zall, dtype=np.float64))
    times = np.asarray(timestamps, dtype=np.float64).ravel()
    if zall.shape[0] == times.size:
        mask = times < median_time if period == EARLY else times >= median_time
        return RowSelection(rows=zall[mask].copy(), matched=True)
    if policy == "all_trials":
        logger.warning(
            "%s: cannot match %d trial rows to %d timestamps - using all trials",
            label or "Trial group",
            zall.shape[0],
            times.size,
        )
        return RowSelection(rows=zall.copy(), matched=False)
    raise MissingFieldError(
        f"{label or 'Trial group'}: cannot match {zall.shape[0]} trial rows to {times.size} timestamps"
    )


__all__ = [
    "EARLY",
    "LATE",
    "ThresholdSplit",
    "OrderSplit",
    "MedianSplit",
    "RowSelection",
    "resolve_threshold",
    "split_by_threshold",
    "split_by_order",
    "split_by_median_time",
    "match_rows_to_timestamps",
]
