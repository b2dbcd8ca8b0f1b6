"""
Run-time configuration shared across the package.

Estimator-specific settings live on the estimator constructors; this module
holds the knobs of the default latent estimator and the caller-side seed
policy.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

logger = logging.getLogger(__name__)

SEED_RANGE: tuple[int, int] = (1, 10_000)


@dataclass(frozen=True)
class IRTControl:
    """
    Convergence budget and priors for :class:`~splitlatent.estimators.irt.BinaryIRT`.

    The EM stops once ``1 - corr`` between successive iterates of both the
    latent positions and the item parameters falls below ``thresh``.
    """

    max_iter: int = 5000
    """Maximum number of EM iterations before ``NonConvergenceError``."""

    thresh: float = 1e-6
    """Convergence threshold on ``1 - correlation`` between iterates."""

    item_prior_var: float = 25.0
    """Prior variance of the item difficulty and discrimination parameters."""

    latent_prior_var: float = 1.0
    """Prior variance of each latent position (prior mean is zero)."""

    timeout: float | None = None
    """Optional wall-clock budget in seconds for one estimation."""

    def __post_init__(self) -> None:
        if self.max_iter < 1:
            raise ValueError("max_iter must be at least 1.")
        if self.thresh <= 0:
            raise ValueError("thresh must be positive.")
        if self.item_prior_var <= 0 or self.latent_prior_var <= 0:
            raise ValueError("Prior variances must be positive.")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be positive when given.")


def draw_default_seed(rng: np.random.Generator | None = None) -> int:
    """
    Draw a seed uniformly from ``SEED_RANGE`` (inclusive).

    Only the caller-side convenience entry point uses this; the estimator
    classes always take an explicit seed. The drawn value is logged so the
    run can be reproduced.
    """
    rng = np.random.default_rng() if rng is None else rng
    lo, hi = SEED_RANGE
    seed = int(rng.integers(lo, hi, endpoint=True))
    logger.info("No seed supplied; drew seed=%d from [%d, %d]", seed, lo, hi)
    return seed
