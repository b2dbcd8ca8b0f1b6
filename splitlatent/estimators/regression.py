from __future__ import annotations

from dataclasses import dataclass

import pandas as pd
import statsmodels.api as sm
import statsmodels.formula.api as smf
from statsmodels.sandbox.regression.gmm import IV2SLS as _IV2SLS


@dataclass(frozen=True)
class RegressionEstimate:
    """
    Coefficient, standard error and t-statistic of one predictor.

    ``std_err`` and ``tstat`` are ``None`` when no valid value is derivable,
    as for the measurement-error-corrected coefficients.
    """

    coef: float
    std_err: float | None = None
    tstat: float | None = None

    def fmt(self) -> str:
        """Fixed-width ``coef (SE, t)`` rendering for summary tables."""
        se = "n/a" if self.std_err is None else f"{self.std_err:.4f}"
        t = "n/a" if self.tstat is None else f"{self.tstat:.2f}"
        return f"{self.coef:>10.4f}  (SE {se}, t {t})"


def fit_ols(data: pd.DataFrame, outcome: str, predictor: str):
    """Single-predictor OLS with intercept: ``outcome ~ predictor``."""
    return smf.ols(f"{outcome} ~ {predictor}", data=data).fit()


def fit_iv(data: pd.DataFrame, outcome: str, endogenous: str, instrument: str):
    """
    Just-identified 2SLS of ``outcome`` on ``endogenous``, instrumented by ``instrument``.

    Both design matrices carry a constant; the instrument column is renamed to
    the endogenous regressor so the result is indexed by ``endogenous``.
    """
    X = sm.add_constant(data[[endogenous]], prepend=True, has_constant="add")
    Z = sm.add_constant(data[[instrument]], prepend=True, has_constant="add")
    Z.columns = X.columns
    return _IV2SLS(endog=data[outcome], exog=X, instrument=Z).fit()


def extract_estimate(result, predictor: str) -> RegressionEstimate:
    """Pull the ``(coef, SE, t)`` triple of ``predictor`` out of a statsmodels result."""
    return RegressionEstimate(
        coef=float(result.params[predictor]),
        std_err=float(result.bse[predictor]),
        tstat=float(result.tvalues[predictor]),
    )
