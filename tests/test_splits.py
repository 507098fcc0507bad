import logging

import numpy as np
import pytest

from da_contrast_analysis.errors import InsufficientTrialsError, InvalidThresholdError, MissingFieldError
from da_contrast_analysis.splits import (
    EARLY,
    LATE,
    match_rows_to_timestamps,
    resolve_threshold,
    split_by_median_time,
    split_by_order,
    split_by_threshold,
)
from da_contrast_analysis.store import HIT, ContrastTrialGroup

TS = np.array([0.0, 1.0, 2.0])


def _group(contrast, n_rows, fill=None):
    zall = np.full((n_rows, TS.size), contrast if fill is None else fill, dtype=float)
    return ContrastTrialGroup(HIT, contrast, zall, TS)


def test_split_by_threshold_partitions_groups():
    groups = {5: _group(5, 2), 15: _group(15, 3)}
    split = split_by_threshold(groups, 0.1)
    assert split.n_above == 3 and split.n_below == 2
    assert split.above_contrasts == [15]
    assert split.below_contrasts == [5]
    assert np.all(split.above == 15)


def test_split_by_threshold_contrast_equal_to_threshold_goes_below():
    split = split_by_threshold({10: _group(10, 2), 20: _group(20, 1)}, 0.1)
    assert split.below_contrasts == [10]
    assert split.above_contrasts == [20]


def test_split_by_threshold_rows_are_conserved():
    groups = {c: _group(c, n) for c, n in [(0, 4), (5, 2), (12, 3), (50, 5), (100, 1)]}
    split = split_by_threshold(groups, 0.12)
    assert split.n_above + split.n_below == sum(g.trial_count for g in groups.values())


def test_split_by_threshold_skips_incomplete_groups(caplog):
    groups = {5: _group(5, 2), 50: ContrastTrialGroup(HIT, 50, None, None)}
    with caplog.at_level(logging.WARNING):
        split = split_by_threshold(groups, 0.1, label="Session 3")
    assert split.n_above == 0
    assert split.above.shape == (0, TS.size)
    assert "Session 3" in caplog.text
    assert "contrast 50%" in caplog.text


def test_resolve_threshold_default_and_strict(caplog):
    assert resolve_threshold(0.2) == 0.2
    with caplog.at_level(logging.WARNING):
        assert resolve_threshold(None, label="Session 2") == 0.1
        assert resolve_threshold(1.5, default=0.2) == 0.2
    assert "Using default threshold" in caplog.text
    with pytest.raises(InvalidThresholdError):
        resolve_threshold(np.nan, allow_default=False)


def test_split_by_order_floor_half():
    zall = np.arange(10.0).reshape(5, 2)
    halves = split_by_order(zall)
    assert halves.early.shape[0] == 2
    assert halves.late.shape[0] == 3
    np.testing.assert_array_equal(np.vstack([halves.early, halves.late]), zall)


def test_split_by_order_requires_minimum_trials():
    with pytest.raises(InsufficientTrialsError):
        split_by_order(np.ones((3, 2)))


def test_split_by_median_time():
    split = split_by_median_time([5.0, 1.0, 3.0, 7.0])
    assert split.median_time == 4.0
    assert split.early.tolist() == [False, True, True, False]
    assert split.late.tolist() == [True, False, False, True]
    with pytest.raises(InsufficientTrialsError):
        split_by_median_time([1.0, 2.0])


def test_match_rows_to_timestamps_selects_period():
    zall = np.arange(8.0).reshape(4, 2)
    times = np.array([1.0, 6.0, 2.0, 8.0])
    early = match_rows_to_timestamps(zall, times, 4.0, EARLY)
    late = match_rows_to_timestamps(zall, times, 4.0, LATE)
    assert early.matched and late.matched
    np.testing.assert_array_equal(early.rows, zall[[0, 2]])
    np.testing.assert_array_equal(late.rows, zall[[1, 3]])


def test_match_rows_to_timestamps_unmatched_policies(caplog):
    zall = np.ones((3, 2))
    times = np.array([1.0, 2.0])
    with pytest.raises(MissingFieldError):
        match_rows_to_timestamps(zall, times, 1.5, EARLY)
    with caplog.at_level(logging.WARNING):
        selection = match_rows_to_timestamps(zall, times, 1.5, EARLY, policy="all_trials", label="Contrast 5%")
    assert not selection.matched
    assert selection.rows.shape == (3, 2)
    assert "using all trials" in caplog.text


def test_match_rows_to_timestamps_rejects_unknown_period():
    with pytest.raises(ValueError):
        match_rows_to_timestamps(np.ones((2, 2)), [1.0, 2.0], 1.5, "middle")
