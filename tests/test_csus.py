import logging

import numpy as np
import pytest

from conftest import TS, make_session
from da_contrast_analysis.analysis.csus import csus_ratio_by_contrast, session_ratios, trial_ratios
from da_contrast_analysis.store import HIT, ContrastTrialGroup, Session, TrialKey


def test_session_ratios_exclude_zero_contrast(session):
    df = session_ratios(session)
    assert df["contrast"].tolist() == [5, 15, 50, 100]
    assert (df["n_valid"] == df["n_trials"]).all()
    assert df["mean_ratio"].is_monotonic_increasing
    assert df.loc[df["contrast"] == 100, "mean_ratio"].iloc[0] == pytest.approx(1.2, abs=0.01)
    assert 0 in trial_ratios(session)


def test_combined_ratios_across_identical_sessions(sessions):
    report = csus_ratio_by_contrast(sessions)
    assert len(report.per_session) == 4 * 4
    combined = report.combined
    assert combined["n_sessions"].tolist() == [4, 4, 4, 4]
    np.testing.assert_allclose(combined["sem_ratio"], 0.0, atol=1e-12)


def test_incomplete_contrast_is_skipped(caplog):
    base = make_session(contrasts={5: 4, 50: 4}, with_categories=False)
    groups = dict(base.groups)
    groups[TrialKey(HIT, 15)] = ContrastTrialGroup(HIT, 15, None, None)
    s = Session(index=3, groups=groups)
    with caplog.at_level(logging.WARNING):
        df = session_ratios(s)
    assert df["contrast"].tolist() == [5, 50]
    assert "contrast 15%" in caplog.text


def test_session_without_usable_contrast_is_skipped():
    zero_only = make_session(index=2, contrasts={0: 4}, with_categories=False)
    report = csus_ratio_by_contrast([zero_only, make_session(index=3)])
    assert 2 in report.batch.skipped
    assert set(report.per_session["session"]) == {3}


def test_zero_us_response_gives_nan_ratio():
    zall = np.zeros((2, TS.size))
    zall[0, (TS > 0.4) & (TS < 0.6)] = 1.0
    s = Session(index=1, groups={TrialKey(HIT, 50): ContrastTrialGroup(HIT, 50, zall, TS)})
    assert np.isnan(trial_ratios(s)[50]).all()
