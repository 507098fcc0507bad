import logging

import numpy as np
import pytest

from conftest import TS, make_session
from da_contrast_analysis.analysis.early_late import (
    early_late_across_sessions,
    early_late_session,
    early_late_traces,
    hit_rate_table,
    order_split_across_sessions,
    order_split_contrast,
)
from da_contrast_analysis.config import AnalysisConfig
from da_contrast_analysis.errors import InsufficientTrialsError
from da_contrast_analysis.splits import EARLY, LATE
from da_contrast_analysis.store import BehaviorRecord


def _behavior(hits_50=(3.0, 4.0, 9.0, 10.0)):
    return BehaviorRecord(
        hit_times=[1.0, 2.0, 3.0, 4.0, 7.0, 8.0, 9.0, 10.0],
        miss_times=[5.0, 6.0, 11.0, 12.0],
        hit_times_by_contrast={5: [1.0, 2.0, 7.0, 8.0], 50: list(hits_50), 100: []},
        miss_times_by_contrast={5: [5.0, 11.0], 50: [6.0, 12.0]},
    )


def _session(**kwargs):
    return make_session(contrasts={5: 4, 50: 4}, behavior=_behavior(**kwargs))


def test_order_split_contrast(session):
    comparison = order_split_contrast(session, 15)
    assert comparison.n_early == 2
    assert comparison.n_late == 3
    assert comparison.early.smoothed_mean is not None


def test_order_split_needs_four_trials():
    with pytest.raises(InsufficientTrialsError):
        order_split_contrast(make_session(contrasts={5: 3}), 5)


def test_order_split_across_sessions_skips_missing_contrast(session):
    other = make_session(index=2, contrasts={5: 4})
    batch = order_split_across_sessions([session, other], 15)
    assert list(batch.results) == [1]
    assert 2 in batch.skipped


def test_hit_rate_table():
    rates = hit_rate_table(_session())
    assert rates.median_time == pytest.approx(6.5)
    table = rates.table.set_index("contrast")
    assert table.loc[5, "early_hits"] == 2
    assert table.loc[5, "early_misses"] == 1
    assert table.loc[5, "late_hits"] == 2
    assert table.loc[5, "early_hit_rate"] == pytest.approx(2 / 3)
    assert np.isnan(table.loc[100, "early_hit_rate"])
    assert np.isnan(table.loc[100, "late_hit_rate"])


def test_early_late_traces_are_normalised():
    traces = early_late_traces(_session(), EARLY)
    assert traces.normalization == pytest.approx(0.705)
    assert sorted(traces.traces) == [5, 50]
    trace = traces.traces[50]
    assert trace.matched
    assert trace.n_trials == 2
    assert trace.stat.mean[np.argmin(np.abs(TS - 0.5))] == pytest.approx(1.0, abs=0.01)


def test_unmatched_rows_skip_by_default(caplog):
    with caplog.at_level(logging.WARNING):
        traces = early_late_traces(_session(hits_50=(3.0, 4.0, 9.0)), LATE)
    assert sorted(traces.traces) == [5]
    assert "cannot match 4 trial rows to 3 timestamps" in caplog.text


def test_unmatched_rows_can_use_all_trials():
    config = AnalysisConfig(unmatched_rows="all_trials")
    traces = early_late_traces(_session(hits_50=(3.0, 4.0, 9.0)), LATE, config)
    assert not traces.traces[50].matched
    assert traces.traces[50].n_trials == 4
    assert traces.traces[5].matched


def test_early_late_session_and_batch():
    result = early_late_session(_session())
    assert result.early.period == EARLY
    assert result.late.period == LATE
    no_behavior = make_session(index=2, contrasts={5: 4, 50: 4})
    batch = early_late_across_sessions([_session(), no_behavior])
    assert list(batch.results) == [1]
    assert 2 in batch.skipped
