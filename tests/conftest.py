from __future__ import annotations

import numpy as np
import pytest

from da_contrast_analysis.store import FALSE_ALARM, HIT, MISS, BehaviorRecord, ContrastTrialGroup, Session, TrialKey

TS = np.round(np.arange(-0.5, 2.0 + 1e-9, 0.01), 2)


def bump(ts: np.ndarray, centre: float, height: float, width: float = 0.05) -> np.ndarray:
    return height * np.exp(-0.5 * ((ts - centre) / width) ** 2)


def response_trials(n_trials: int, cs_height: float, us_height: float = 1.0, ts: np.ndarray = TS) -> np.ndarray:
    """Noise-free trials with a CS bump at 0.5 s and a US bump at 1.2 s."""

    trace = bump(ts, 0.5, cs_height) + bump(ts, 1.2, us_height)
    return np.tile(trace, (n_trials, 1)) + np.linspace(0.0, 0.01, n_trials)[:, None]


def make_session(
    index: int = 1,
    contrasts: dict | None = None,
    threshold: float | None = 0.1,
    date: str = "2024-01-01",
    behavior: BehaviorRecord | None = None,
    with_categories: bool = True,
    ts: np.ndarray = TS,
) -> Session:
    """Session whose CS response grows linearly with contrast.

    ``contrasts`` maps contrast percent to trial count.
    """

    contrasts = contrasts if contrasts is not None else {0: 4, 5: 4, 15: 5, 50: 6, 100: 6}
    groups = {}
    hit_rows = []
    for contrast, n_trials in contrasts.items():
        zall = response_trials(n_trials, cs_height=0.2 + contrast / 100.0, ts=ts)
        groups[TrialKey(HIT, contrast)] = ContrastTrialGroup(HIT, contrast, zall, ts)
        hit_rows.append(zall)
    if with_categories:
        groups[TrialKey(HIT)] = ContrastTrialGroup(HIT, None, np.vstack(hit_rows), ts)
        groups[TrialKey(MISS)] = ContrastTrialGroup(MISS, None, response_trials(5, cs_height=0.1, us_height=0.2, ts=ts), ts)
        groups[TrialKey(FALSE_ALARM)] = ContrastTrialGroup(
            FALSE_ALARM, None, response_trials(3, cs_height=0.05, us_height=0.1, ts=ts), ts
        )
    return Session(
        index=index,
        groups=groups,
        date=date,
        behavior=behavior or BehaviorRecord(),
        threshold=threshold,
    )


@pytest.fixture
def ts() -> np.ndarray:
    return TS.copy()


@pytest.fixture
def session() -> Session:
    return make_session()


@pytest.fixture
def sessions() -> list:
    return [make_session(index=i, threshold=0.1 + 0.02 * i) for i in range(1, 5)]
