from __future__ import annotations

import logging

import numpy as np

from ..align import correlation
from ..correction import CORRELATION_FLOOR
from ..partition import IndicatorPartition
from ._check import RefutationCheck, RefutationReport

logger = logging.getLogger(__name__)

_FIRST_STAGE_F_THRESHOLD = 10.0


def _check_split_agreement(split_correlation: float) -> RefutationCheck:
    """
    The two split estimates must agree by more than the correlation floor.

    At or below the floor the correction factor is capped at 10, so the
    corrected coefficients understate whatever attenuation remains.
    """
    passed = split_correlation > CORRELATION_FLOOR
    if passed:
        detail = f"corr(A, B) = {split_correlation:.4f}  (> {CORRELATION_FLOOR:.2f})"
    else:
        detail = (
            f"corr(A, B) = {split_correlation:.4f}  (≤ {CORRELATION_FLOOR:.2f})  "
            f"The two halves barely measure the same trait; the correction "
            f"factor is capped at {1 / np.sqrt(CORRELATION_FLOOR):.0f}."
        )
    return RefutationCheck(
        name="Split agreement", passed=passed, detail=detail, statistic=split_correlation
    )


def _check_first_stage_f(
    first_stage_f: float, threshold: float = _FIRST_STAGE_F_THRESHOLD
) -> RefutationCheck:
    """
    F-statistic of split A in the first stage ``B ~ A``.

    Each split instruments the other in the IV correction; ``F < 10``
    flags a weak instrument (Stock & Yogo, 2005).
    """
    passed = first_stage_f >= threshold
    if passed:
        detail = f"F = {first_stage_f:.2f}  (threshold: F ≥ {threshold:.0f})"
    else:
        logger.warning("Weak first stage: F = %.2f", first_stage_f)
        detail = (
            f"F = {first_stage_f:.2f}  (threshold: F ≥ {threshold:.0f})  "
            f"Weak instrument detected: one split explains little of the "
            f"other, so the IV correction may be badly biased."
        )
    return RefutationCheck(
        name="First-stage F-statistic", passed=passed, detail=detail, statistic=first_stage_f
    )


def _check_outcome_orientation(latent_full: np.ndarray, outcome: np.ndarray) -> RefutationCheck:
    """The full-sample estimate needs a non-zero correlation with the outcome to fix its sign."""
    r = correlation(latent_full, outcome)
    passed = bool(np.isfinite(r) and r != 0)
    if passed:
        detail = f"corr(full, outcome) = {r:.4f}"
    else:
        detail = (
            f"corr(full, outcome) = {r}  The sign of the latent scale could "
            f"not be tied to the outcome and is arbitrary."
        )
    return RefutationCheck(name="Outcome orientation", passed=passed, detail=detail, statistic=r)


class SplitSampleRefutationReport(RefutationReport):
    """
    Results of refutation checks run against a split-sample correction.

    Obtain via ``SplitSampleResult.refute()``.

    Example::

        result = SplitSampleCorrection(outcome="turnout", seed=123).fit(df)
        report = result.refute()
        print(report.summary())
    """

    def __init__(
        self,
        checks: list[RefutationCheck],
        outcome: str,
        seed: int | None = None,
        partition: IndicatorPartition | None = None,
    ) -> None:
        super().__init__(checks)
        self._outcome = outcome
        self._seed = seed
        self._partition = partition

    def _header_lines(self) -> list[str]:
        lines = [f"Split-Sample Refutation Report: latent trait → {self._outcome}"]
        run = []
        if self._seed is not None:
            run.append(f"seed {self._seed}")
        if self._partition is not None:
            run.append(
                f"{len(self._partition.split_a)} group(s) in split A, "
                f"{len(self._partition.split_b)} in split B"
            )
        if run:
            lines.append("  " + "; ".join(run))
        return lines
