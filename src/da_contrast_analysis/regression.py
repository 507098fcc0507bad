"""Ordinary least squares with a Wald test on the slope, and normal fits."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import NamedTuple, Sequence

import numpy as np
import scipy.stats

from .errors import InsufficientDataError, SingularDesignError

logger = logging.getLogger(__name__)

# Relative size below which residuals or slope contributions count as zero.
_EXACT_FIT_RTOL = 1e-10


@dataclass(frozen=True)
class RegressionResult:
    """Straight-line fit ``y = intercept + slope * x`` with slope inference."""

    intercept: float
    slope: float
    residual_variance: float
    slope_se: float
    wald_stat: float
    p_value: float
    significant: bool
    n: int

    def predict(self, x: Sequence[float] | np.ndarray | float) -> np.ndarray:
        return self.intercept + self.slope * np.asarray(x, dtype=np.float64)


def fit_linear(x: Sequence[float] | np.ndarray, y: Sequence[float] | np.ndarray, alpha: float = 0.05) -> RegressionResult:
    """Fit ``y`` on ``[1, x]`` via the normal equations.

    The residual variance uses ``n - 2`` degrees of freedom, the Wald
    statistic is ``(slope / se(slope)) ** 2`` and the p-value is the upper
    tail of a chi-squared distribution with one degree of freedom.

    Raises
    ------
    InsufficientDataError
        Fewer than three points.
    SingularDesignError
        All ``x`` values are identical.
    """

    x = np.asarray(x, dtype=np.float64).ravel()
    y = np.asarray(y, dtype=np.float64).ravel()
    if x.shape != y.shape:
        raise ValueError(f"x and y must have equal length, got {x.size} and {y.size}")
    if not (np.all(np.isfinite(x)) and np.all(np.isfinite(y))):
        raise ValueError("x and y must be finite")
    n = x.size
    if n < 3:
        raise InsufficientDataError(f"Linear regression needs at least 3 points, got {n}")
    if np.ptp(x) == 0:
        raise SingularDesignError(f"All {n} predictor values equal {x[0]}")

    design = np.column_stack([np.ones(n), x])
    xtx = design.T @ design
    try:
        xtx_inv = np.linalg.inv(xtx)
        beta = np.linalg.solve(xtx, design.T @ y)
    except np.linalg.LinAlgError as exc:
        raise SingularDesignError(f"Design matrix is singular: {exc}") from exc
    intercept, slope = float(beta[0]), float(beta[1])

    residuals = y - design @ beta
    residual_variance = float(np.sum(residuals**2) / (n - 2))
    slope_se = float(np.sqrt(residual_variance * xtx_inv[1, 1]))

    scale = max(float(np.max(np.abs(y))), np.finfo(float).tiny)
    exact_fit = np.sqrt(residual_variance) <= _EXACT_FIT_RTOL * scale
    if exact_fit:
        residual_variance = 0.0
        slope_se = 0.0
        if abs(slope) * np.ptp(x) <= _EXACT_FIT_RTOL * scale:
            slope, wald_stat = 0.0, 0.0
        else:
            wald_stat = np.inf
    else:
        wald_stat = (slope / slope_se) ** 2

    p_value = float(scipy.stats.chi2.sf(wald_stat, 1))
    result = RegressionResult(
        intercept=intercept,
        slope=slope,
        residual_variance=residual_variance,
        slope_se=slope_se,
        wald_stat=float(wald_stat),
        p_value=p_value,
        significant=p_value < alpha,
        n=n,
    )
    logger.debug("Linear fit n=%d: y = %.3f + %.3f*x (p = %.3g)", n, intercept, slope, p_value)
    return result


def fit_line_through(x: Sequence[float] | np.ndarray, y: Sequence[float] | np.ndarray) -> RegressionResult:
    """Line through exactly two points, without slope inference.

    The Wald statistic, p-value, residual variance and slope SE are NaN
    and the fit is never significant.
    """

    x = np.asarray(x, dtype=np.float64).ravel()
    y = np.asarray(y, dtype=np.float64).ravel()
    if x.size != 2 or y.size != 2:
        raise InsufficientDataError(f"A two-point line needs exactly 2 points, got {x.size} and {y.size}")
    if not (np.all(np.isfinite(x)) and np.all(np.isfinite(y))):
        raise ValueError("x and y must be finite")
    if x[0] == x[1]:
        raise SingularDesignError(f"Both predictor values equal {x[0]}")
    slope = float((y[1] - y[0]) / (x[1] - x[0]))
    return RegressionResult(
        intercept=float(y[0] - slope * x[0]),
        slope=slope,
        residual_variance=np.nan,
        slope_se=np.nan,
        wald_stat=np.nan,
        p_value=np.nan,
        significant=False,
        n=2,
    )


class NormalFit(NamedTuple):
    mean: float
    std: float
    n: int


def fit_normal(samples: Sequence[float] | np.ndarray) -> NormalFit:
    """Normal fit of the finite samples: mean and sample standard deviation (``ddof=1``)."""

    values = np.asarray(samples, dtype=np.float64).ravel()
    values = values[np.isfinite(values)]
    if values.size < 2:
        raise InsufficientDataError(f"Normal fit needs at least 2 samples, got {values.size}")
    return NormalFit(mean=float(values.mean()), std=float(values.std(ddof=1)), n=int(values.size))


__all__ = ["NormalFit", "RegressionResult", "fit_line_through", "fit_linear", "fit_normal"]
