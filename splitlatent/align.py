"""
Sign and scale normalisation of latent estimates.

A latent dimension estimated from indicators is identified only up to sign
and scale. Before two estimates can be compared, or regressed on, each is
oriented against a reference vector and then standardised.
"""
from __future__ import annotations

import logging

import numpy as np

from ._exceptions import DegenerateSplitError

logger = logging.getLogger(__name__)

_CONSTANT_RTOL = 1e-12


def is_constant(values: np.ndarray) -> bool:
    """
    ``True`` if ``values`` has fewer than two entries or no spread beyond rounding.

    The range is compared against ``1e-12`` times the largest magnitude (at
    least 1), so a vector like ``np.full(n, 0.1)``, whose floating-point
    standard deviation is about 1e-17 rather than 0, counts as constant.
    """
    values = np.asarray(values, dtype=float)
    if values.size < 2:
        return True
    scale = max(1.0, float(np.abs(values).max()))
    return float(np.ptp(values)) <= _CONSTANT_RTOL * scale


def correlation(a: np.ndarray, b: np.ndarray) -> float:
    """
    Pearson correlation over the rows where both vectors are finite.

    Returns ``nan`` when either vector is constant over those rows.
    """
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    ok = np.isfinite(a) & np.isfinite(b)
    a, b = a[ok], b[ok]
    if is_constant(a) or is_constant(b):
        return float("nan")
    return float(np.corrcoef(a, b)[0, 1])


def orient(values: np.ndarray, reference: np.ndarray, label: str) -> tuple[np.ndarray, bool]:
    """
    Flip ``values`` if and only if its correlation with ``reference`` is negative.

    A zero or undefined correlation leaves the sign unchanged and is logged,
    since the orientation is then arbitrary. Returns the oriented vector and
    whether it was flipped.
    """
    r = correlation(values, reference)
    if np.isnan(r) or r == 0:
        logger.warning("%s: correlation with its reference is %s; sign left unchanged", label, r)
        return values, False
    if r < 0:
        logger.debug("%s: flipping sign (correlation with reference %.4f)", label, r)
        return -values, True
    return values, False


def standardize(values: np.ndarray, label: str) -> np.ndarray:
    """Centre to zero mean and scale to unit sample variance (``ddof=1``)."""
    if is_constant(values):
        raise DegenerateSplitError(f"{label} latent estimate has zero variance.")
    return (values - values.mean()) / values.std(ddof=1)
