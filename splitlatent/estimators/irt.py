from __future__ import annotations

import logging
import time
from typing import Protocol

import numpy as np
from scipy.special import log_ndtr

from .._exceptions import InvalidInputError, NonConvergenceError
from ..align import is_constant
from ..config import IRTControl

logger = logging.getLogger(__name__)

_LOG_SQRT_2PI = 0.5 * np.log(2.0 * np.pi)


class LatentEstimator(Protocol):
    """
    Anything that turns an indicator matrix into one latent position per row.

    Implementations must return a finite length-N vector whose sign puts
    row ``anchor`` on the positive side, or raise ``NonConvergenceError``.
    """

    def estimate(
        self,
        responses: np.ndarray,
        start: np.ndarray,
        anchor: int,
        rng: np.random.Generator,
    ) -> np.ndarray:
        ...


def _corr_distance(old: np.ndarray, new: np.ndarray) -> float:
    """``1 - corr(old, new)``, with constant vectors compared directly."""
    if is_constant(old) or is_constant(new):
        return 0.0 if np.allclose(old, new) else 1.0
    return 1.0 - float(np.corrcoef(old, new)[0, 1])


def _augmented_responses(responses: np.ndarray, mu: np.ndarray) -> np.ndarray:
    """
    E-step: expected latent utilities given the observed 0/1 responses.

    Truncated-normal means, computed through log-CDFs so that large ``|mu|``
    stay finite. Missing responses contribute their prior mean ``mu``.
    """
    log_pdf = -0.5 * mu**2 - _LOG_SQRT_2PI
    upper = mu + np.exp(log_pdf - log_ndtr(mu))
    lower = mu - np.exp(log_pdf - log_ndtr(-mu))
    return np.where(responses == 1.0, upper, np.where(responses == 0.0, lower, mu))


class BinaryIRT:
    """
    One-dimensional probit ideal-point model fitted by EM.

    Each response is modelled as ``y_ij = 1{alpha_j + beta_j * x_i + e_ij > 0}``
    with standard normal ``e_ij``, normal priors on the item parameters
    ``(alpha_j, beta_j)`` and on the latent positions ``x_i``. The EM
    alternates the truncated-normal E-step with closed-form ridge updates of
    the positions and of the item parameters, and stops once successive
    iterates of both agree to within ``control.thresh`` in correlation.

    The latent scale is only identified up to sign; the returned positions
    are flipped if needed so that ``x[anchor] > 0``.

    Example::

        x = BinaryIRT().estimate(responses, start, anchor=int(start.argmax()), rng=rng)
    """

    def __init__(self, control: IRTControl | None = None) -> None:
        self._control = control if control is not None else IRTControl()

    @property
    def control(self) -> IRTControl:
        return self._control

    def estimate(
        self,
        responses: np.ndarray,
        start: np.ndarray,
        anchor: int,
        rng: np.random.Generator,
    ) -> np.ndarray:
        """
        Fit the model and return the posterior-mode latent position of each row.

        Parameters
        ----------
        responses : np.ndarray
            N×K matrix of 0/1 responses, ``NaN`` where missing.
        start : np.ndarray
            Starting latent positions, one per row.
        anchor : int
            Row whose latent position is forced positive.
        rng : np.random.Generator
            Source of the item-parameter starting values.

        Raises
        ------
        NonConvergenceError
            If the EM has not converged after ``max_iter`` iterations, runs
            past ``timeout``, or produces non-finite values.
        """
        responses = np.asarray(responses, dtype=float)
        x = np.asarray(start, dtype=float).copy()
        if responses.ndim != 2 or responses.shape[1] == 0:
            raise InvalidInputError("responses must be a non-empty 2-D matrix.")
        n, k = responses.shape
        if x.shape != (n,):
            raise InvalidInputError(f"start has shape {x.shape}, expected ({n},).")
        if not 0 <= anchor < n:
            raise InvalidInputError(f"anchor index {anchor} is out of range for {n} rows.")

        ctl = self._control
        if not is_constant(x):
            x = (x - x.mean()) / x.std()
        else:
            x = x - x.mean()
        items = rng.normal(size=(2, k))  # rows: alpha, beta
        item_penalty = np.eye(2) / ctl.item_prior_var
        started = time.perf_counter()

        for iteration in range(1, ctl.max_iter + 1):
            mu = items[0][None, :] + x[:, None] * items[1][None, :]
            ystar = _augmented_responses(responses, mu)

            alpha, beta = items
            x_new = ((ystar - alpha[None, :]) @ beta) / (beta @ beta + 1.0 / ctl.latent_prior_var)

            design = np.column_stack([np.ones(n), x_new])
            items_new = np.linalg.solve(design.T @ design + item_penalty, design.T @ ystar)

            if not (np.isfinite(x_new).all() and np.isfinite(items_new).all()):
                raise NonConvergenceError(
                    f"EM produced non-finite values at iteration {iteration}."
                )

            distance = max(
                _corr_distance(x, x_new),
                _corr_distance(items.ravel(), items_new.ravel()),
            )
            x, items = x_new, items_new

            if distance < ctl.thresh:
                logger.debug("EM converged after %d iterations (1 - corr = %.2e)", iteration, distance)
                break
            if ctl.timeout is not None and time.perf_counter() - started > ctl.timeout:
                raise NonConvergenceError(
                    f"EM exceeded its {ctl.timeout:g}s budget after {iteration} iterations "
                    f"(1 - corr = {distance:.2e}, threshold {ctl.thresh:.0e})."
                )
        else:
            raise NonConvergenceError(
                f"EM did not converge within {ctl.max_iter} iterations "
                f"(1 - corr = {distance:.2e}, threshold {ctl.thresh:.0e})."
            )

        if x[anchor] < 0:
            x = -x
        return x
