from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType

import numpy as np
import pandas as pd

from ._exceptions import DegenerateSplitError, InsufficientDataError, InvalidInputError
from .align import correlation, is_constant
from .estimators.regression import RegressionEstimate, extract_estimate, fit_iv, fit_ols

logger = logging.getLogger(__name__)

CORRELATION_FLOOR = 0.01
MIN_OBSERVATIONS = 3

_Y, _A, _B = "outcome", "latent_a", "latent_b"


class CorrectionMethod(Enum):
    """The three measurement-error corrections computed from a pair of split estimates."""

    IV = "iv"
    ERROR_VARIANCE = "error_variance"
    CORRELATION = "correlation"


@dataclass(frozen=True)
class CorrectionResult:
    """
    Everything the correction step derives from two split estimates and the outcome.

    ``corrections`` maps each :class:`CorrectionMethod` to its combined
    coefficient. Only the IV correction carries a t-statistic, and that one
    is an approximation (see :func:`compute_corrections`).
    """

    corrections: Mapping[CorrectionMethod, RegressionEstimate]
    baseline_iv: RegressionEstimate
    ols_a: RegressionEstimate
    ols_b: RegressionEstimate
    split_correlation: float
    measurement_error_variance: float
    first_stage_f: float

    def __getitem__(self, method: CorrectionMethod) -> RegressionEstimate:
        return self.corrections[method]


def measurement_error_variance(latent_a: np.ndarray, latent_b: np.ndarray) -> float:
    """
    Half the sample variance of ``A - B``.

    If both splits measure the same latent value with independent errors of
    equal variance, ``Var(A - B) = 2 * Var(u)``.
    """
    return float(np.var(np.asarray(latent_a) - np.asarray(latent_b), ddof=1) / 2.0)


def floored_root(r: float) -> float:
    """``sqrt(max(0.01, r))``: the shared scaling term of the correlation and IV corrections."""
    return float(np.sqrt(max(CORRELATION_FLOOR, r)))


def _check_inputs(latent_a, latent_b, outcome) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    arrays = []
    for label, values in [("Split A estimate", latent_a), ("Split B estimate", latent_b), ("Outcome", outcome)]:
        arr = np.asarray(values, dtype=float)
        if arr.ndim != 1:
            raise InvalidInputError(f"{label} must be one-dimensional, got shape {arr.shape}.")
        if not np.isfinite(arr).all():
            raise InvalidInputError(f"{label} contains missing or non-finite values.")
        arrays.append(arr)

    a, b, y = arrays
    if not len(a) == len(b) == len(y):
        raise InvalidInputError(
            f"Length mismatch: split A {len(a)}, split B {len(b)}, outcome {len(y)}."
        )
    if len(y) < MIN_OBSERVATIONS:
        raise InsufficientDataError(
            f"{len(y)} observation(s); at least {MIN_OBSERVATIONS} are needed to "
            f"identify a slope and its standard error."
        )
    for label, arr in [("Split A", a), ("Split B", b)]:
        if is_constant(arr):
            raise DegenerateSplitError(f"{label} latent estimate has zero variance.")
    return a, b, y


def compute_corrections(latent_a, latent_b, outcome) -> CorrectionResult:
    """
    Compute the IV-, error-variance- and correlation-based corrections.

    Each correction is computed once with each split as the predictor and the
    two split-specific values are averaged:

    - **error variance**: OLS slope × ``sqrt(1 + MEV)``, where
      ``MEV = Var(A - B) / 2``.
    - **correlation**: OLS slope / ``sqrt(max(0.01, corr(A, B)))``. The floor
      caps the inflation factor at 10.
    - **IV**: 2SLS slope with the other split as instrument ×
      ``sqrt(max(0.01, corr(A, B)))``.

    The baseline IV estimate is ``outcome ~ B`` instrumented by ``A``. The
    corrected IV t-statistic divides the corrected IV coefficient by the
    *baseline* IV standard error. Numerator and denominator describe
    different estimators, so treat it as a rough guide only; no corrected
    standard errors are derived.

    Raises
    ------
    InvalidInputError
        If the vectors differ in length, are not 1-D, or are not finite.
    InsufficientDataError
        If fewer than three observations are given.
    DegenerateSplitError
        If either split estimate has zero variance.
    """
    a, b, y = _check_inputs(latent_a, latent_b, outcome)
    data = pd.DataFrame({_Y: y, _A: a, _B: b})

    r = correlation(a, b)
    mev = measurement_error_variance(a, b)
    if r <= CORRELATION_FLOOR:
        logger.warning(
            "Split estimates correlate at %.4f; the %.2f floor caps the correction factor at %.0f",
            r, CORRELATION_FLOOR, 1.0 / floored_root(r),
        )

    ols_a = extract_estimate(fit_ols(data, _Y, _A), _A)
    ols_b = extract_estimate(fit_ols(data, _Y, _B), _B)

    inflation = float(np.sqrt(1.0 + mev))
    error_variance_coef = (ols_a.coef * inflation + ols_b.coef * inflation) / 2.0

    factor = 1.0 / floored_root(r)
    correlation_coef = (ols_a.coef * factor + ols_b.coef * factor) / 2.0

    iv_b_by_a = fit_iv(data, _Y, endogenous=_B, instrument=_A)
    iv_a_by_b = fit_iv(data, _Y, endogenous=_A, instrument=_B)
    baseline_iv = extract_estimate(iv_b_by_a, _B)
    damping = floored_root(r)
    iv_coef = (float(iv_b_by_a.params[_B]) * damping + float(iv_a_by_b.params[_A]) * damping) / 2.0
    iv_tstat = iv_coef / baseline_iv.std_err if baseline_iv.std_err else None

    first_stage = fit_ols(data, _B, _A)
    first_stage_f = float(first_stage.tvalues[_A] ** 2)

    corrections = {
        CorrectionMethod.IV: RegressionEstimate(coef=iv_coef, std_err=None, tstat=iv_tstat),
        CorrectionMethod.ERROR_VARIANCE: RegressionEstimate(coef=error_variance_coef),
        CorrectionMethod.CORRELATION: RegressionEstimate(coef=correlation_coef),
    }
    logger.debug(
        "Corrections: corr(A,B)=%.4f MEV=%.4f iv=%.4f error_variance=%.4f correlation=%.4f",
        r, mev, iv_coef, error_variance_coef, correlation_coef,
    )
    return CorrectionResult(
        corrections=MappingProxyType(corrections),
        baseline_iv=baseline_iv,
        ols_a=ols_a,
        ols_b=ols_b,
        split_correlation=r,
        measurement_error_variance=mev,
        first_stage_f=first_stage_f,
    )
