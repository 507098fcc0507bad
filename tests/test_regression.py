import numpy as np
import pytest

from da_contrast_analysis.errors import InsufficientDataError, SingularDesignError
from da_contrast_analysis.regression import fit_line_through, fit_linear, fit_normal


def test_exact_line_recovers_coefficients():
    x = np.array([0.0, 1.0, 2.0, 3.0])
    result = fit_linear(x, 2.0 + 3.0 * x)
    assert result.intercept == pytest.approx(2.0)
    assert result.slope == pytest.approx(3.0)
    assert result.residual_variance == 0.0
    assert result.p_value == 0.0
    assert result.significant
    assert result.n == 4


def test_constant_response_has_zero_slope_and_unit_p():
    result = fit_linear([1.0, 2.0, 3.0, 4.0], [5.0, 5.0, 5.0, 5.0])
    assert result.slope == 0.0
    assert result.wald_stat == 0.0
    assert result.p_value == 1.0
    assert not result.significant


def test_noisy_fit_matches_polyfit_and_wald_test():
    rng = np.random.default_rng(0)
    x = np.linspace(0.0, 1.0, 30)
    y = 1.0 + 0.5 * x + rng.normal(0.0, 0.1, x.size)
    result = fit_linear(x, y, alpha=0.05)
    slope, intercept = np.polyfit(x, y, 1)
    assert result.slope == pytest.approx(slope)
    assert result.intercept == pytest.approx(intercept)
    assert result.wald_stat == pytest.approx((result.slope / result.slope_se) ** 2)
    assert 0.0 <= result.p_value <= 1.0
    assert result.significant == (result.p_value < 0.05)
    np.testing.assert_allclose(result.predict([0.0, 1.0]), [intercept, intercept + slope])


def test_fit_linear_rejects_bad_input():
    with pytest.raises(InsufficientDataError):
        fit_linear([1.0, 2.0], [1.0, 2.0])
    with pytest.raises(SingularDesignError):
        fit_linear([2.0, 2.0, 2.0], [1.0, 2.0, 3.0])
    with pytest.raises(ValueError):
        fit_linear([1.0, 2.0, 3.0], [1.0, 2.0])
    with pytest.raises(ValueError):
        fit_linear([1.0, 2.0, 3.0], [1.0, np.nan, 2.0])


def test_fit_normal_ignores_non_finite():
    fit = fit_normal([1.0, 2.0, 3.0, np.nan])
    assert fit.mean == pytest.approx(2.0)
    assert fit.std == pytest.approx(1.0)
    assert fit.n == 3
    with pytest.raises(InsufficientDataError):
        fit_normal([1.0, np.inf])


def test_line_through_two_points_has_no_inference():
    result = fit_line_through([0.5, 1.0], [2.0, 3.0])
    assert result.slope == pytest.approx(2.0)
    assert result.intercept == pytest.approx(1.0)
    assert float(result.predict(0.0)) == pytest.approx(1.0)
    assert np.isnan(result.p_value) and np.isnan(result.wald_stat)
    assert not result.significant
    with pytest.raises(SingularDesignError):
        fit_line_through([1.0, 1.0], [2.0, 3.0])
    with pytest.raises(InsufficientDataError):
        fit_line_through([1.0, 2.0, 3.0], [1.0, 2.0, 3.0])
