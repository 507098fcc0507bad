import numpy as np
import pytest

from conftest import TS, make_session
from da_contrast_analysis.analysis.comparisons import (
    category_traces,
    contrast_across_sessions,
    reaction_time_vs_peak,
)
from da_contrast_analysis.errors import MissingFieldError
from da_contrast_analysis.store import FALSE_ALARM, HIT, BehaviorRecord, Session, TrialKey


def test_category_traces(session):
    traces = category_traces(session, smooth_window=45)
    assert traces.hit.n_trials == 25
    assert traces.miss.n_trials == 5
    assert traces.false_alarm.n_trials == 3
    assert traces.hit.smoothed_mean.shape == traces.ts.shape


def test_category_traces_without_false_alarms(session):
    groups = {k: g for k, g in session.groups.items() if k != TrialKey(FALSE_ALARM)}
    traces = category_traces(Session(index=1, groups=groups))
    assert traces.false_alarm is None


def test_category_traces_need_hits_and_misses():
    with pytest.raises(MissingFieldError):
        category_traces(make_session(with_categories=False))


def test_contrast_across_sessions(sessions):
    sessions = sessions + [make_session(index=5, contrasts={5: 4})]
    batch = contrast_across_sessions(sessions, 50)
    assert sorted(batch.results) == [1, 2, 3, 4]
    assert 5 in batch.skipped
    trace = batch.results[1]
    assert trace.normalization == pytest.approx(1.205)
    assert trace.stat.mean[np.argmin(np.abs(TS - 0.5))] == pytest.approx(0.705 / 1.205)
    raw = contrast_across_sessions(sessions[:1], 50, normalize=False).results[1]
    assert raw.normalization == 1.0
    assert raw.n_trials == 6


def _with_reaction_times(session, reaction_times):
    return Session(
        index=session.index,
        groups=session.groups,
        behavior=BehaviorRecord(reaction_times_ms=reaction_times),
        threshold=session.threshold,
    )


def test_reaction_time_vs_peak(session):
    reaction_times = 300.0 + 10.0 * np.arange(session.lookup(HIT).unwrap().trial_count)
    result = reaction_time_vs_peak(_with_reaction_times(session, reaction_times))
    assert result.peaks.shape == reaction_times.shape
    assert result.fit is not None
    assert result.fit.n == 25


def test_reaction_time_length_mismatch(session):
    with pytest.raises(MissingFieldError):
        reaction_time_vs_peak(_with_reaction_times(session, np.ones(3)))
    with pytest.raises(MissingFieldError):
        reaction_time_vs_peak(session)


def test_reaction_time_vs_peak_time(session):
    reaction_times = 300.0 + 10.0 * np.arange(session.lookup(HIT).unwrap().trial_count)
    result = reaction_time_vs_peak(_with_reaction_times(session, reaction_times))
    np.testing.assert_allclose(result.peak_times, 0.5)
    assert result.time_fit is not None
    assert result.time_fit.n == 25
    assert result.time_fit.slope == pytest.approx(0.0, abs=1e-12)
