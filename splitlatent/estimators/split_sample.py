from __future__ import annotations

import logging
from collections.abc import Hashable, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from numbers import Integral
from types import MappingProxyType

import numpy as np
import pandas as pd

from .._exceptions import (
    InsufficientDataError,
    InvalidInputError,
    NonConvergenceError,
    SplitSampleError,
    Stage,
)
from ..align import orient, standardize
from ..config import draw_default_seed
from ..correction import MIN_OBSERVATIONS, CorrectionMethod, CorrectionResult, compute_corrections
from ..indicators import as_binary_matrix, check_no_empty_rows, expand_categories, initial_positions
from ..partition import IndicatorPartition, Split, partition_groups
from ..refutations._check import Assumption
from .irt import BinaryIRT, LatentEstimator
from .regression import RegressionEstimate, extract_estimate, fit_ols

logger = logging.getLogger(__name__)

SPLIT_SAMPLE_ASSUMPTIONS: list[Assumption] = [
    Assumption("Both halves of the battery measure the same latent trait", testable=False),
    Assumption("Measurement errors of the two halves are independent", testable=False),
    Assumption("Measurement errors of the two halves have equal variance", testable=False),
    Assumption("Measurement error is classical: additive and unrelated to the outcome", testable=False),
    Assumption("Relevance: each split estimate predicts the other", testable=True),
]

_STAGES = {
    Split.FULL: Stage.FULL_ESTIMATION,
    Split.SPLIT_A: Stage.SPLIT_A_ESTIMATION,
    Split.SPLIT_B: Stage.SPLIT_B_ESTIMATION,
}
_LABELS = {Split.FULL: "Full sample", Split.SPLIT_A: "Split A", Split.SPLIT_B: "Split B"}


@contextmanager
def _stage(stage: Stage):
    """Stamp ``stage`` on any split-sample error escaping the block."""
    try:
        yield
    except SplitSampleError as exc:
        if exc.stage is None:
            exc.stage = stage
        raise


def _read_only(values: np.ndarray) -> np.ndarray:
    values = np.array(values, dtype=float)
    values.flags.writeable = False
    return values


@dataclass(frozen=True, eq=False)
class LatentEstimate:
    """
    The latent trait as estimated from one split of the indicator battery.

    ``raw`` is the estimator's output; ``values`` is the same vector after
    sign alignment and standardisation, and is what every regression uses.
    """

    split: Split
    columns: tuple[str, ...]
    start: np.ndarray
    raw: np.ndarray
    values: np.ndarray
    flipped: bool


@dataclass(frozen=True, eq=False)
class SplitSampleResult:
    """
    The result of a split-sample measurement-error correction.

    Holds the naive OLS estimate (outcome on the full-battery latent
    estimate), the baseline IV estimate, the three corrected coefficients,
    the per-split latent estimates and the measurement-error variance.
    Corrected coefficients carry no standard error; only the corrected IV
    coefficient has an (approximate) t-statistic.
    """

    outcome: str
    seed: int
    partition: IndicatorPartition
    estimates: Mapping[Split, LatentEstimate]
    ols: RegressionEstimate
    correction: CorrectionResult
    outcome_values: np.ndarray

    @property
    def iv(self) -> RegressionEstimate:
        """Uncorrected 2SLS estimate: outcome on split B, instrumented by split A."""
        return self.correction.baseline_iv

    @property
    def corrections(self) -> Mapping[CorrectionMethod, RegressionEstimate]:
        """Corrected coefficient per correction method."""
        return self.correction.corrections

    @property
    def corrected_ols(self) -> RegressionEstimate:
        """Correlation-based correction: split OLS slopes / ``sqrt(max(0.01, corr(A, B)))``."""
        return self.corrections[CorrectionMethod.CORRELATION]

    @property
    def corrected_ols_alt(self) -> RegressionEstimate:
        """Error-variance-based correction: split OLS slopes × ``sqrt(1 + MEV)``."""
        return self.corrections[CorrectionMethod.ERROR_VARIANCE]

    @property
    def corrected_iv(self) -> RegressionEstimate:
        """IV-based correction. Its t-statistic uses the uncorrected IV standard error."""
        return self.corrections[CorrectionMethod.IV]

    @property
    def latent_full(self) -> np.ndarray:
        return self.estimates[Split.FULL].values

    @property
    def latent_a(self) -> np.ndarray:
        return self.estimates[Split.SPLIT_A].values

    @property
    def latent_b(self) -> np.ndarray:
        return self.estimates[Split.SPLIT_B].values

    @property
    def measurement_error_variance(self) -> float:
        """``Var(A - B) / 2``: estimated error variance of one split estimate."""
        return self.correction.measurement_error_variance

    @property
    def split_correlation(self) -> float:
        return self.correction.split_correlation

    @property
    def assumptions(self) -> list[Assumption]:
        """Modelling assumptions the correction relies on."""
        return list(SPLIT_SAMPLE_ASSUMPTIONS)

    def refute(self):
        """
        Run refutation checks against this correction.

        Returns a ``SplitSampleRefutationReport`` with one ``RefutationCheck``
        per test:

        - **Split agreement**: ``corr(A, B)`` must exceed the 0.01 floor.
        - **First-stage F-statistic**: ``F < 10`` flags a weak instrument.
        - **Outcome orientation**: the full-sample estimate must correlate
          with the outcome for its sign to be meaningful.
        """
        from ..refutations.split_sample import (
            SplitSampleRefutationReport,
            _check_first_stage_f,
            _check_outcome_orientation,
            _check_split_agreement,
        )

        checks = [
            _check_split_agreement(self.split_correlation),
            _check_first_stage_f(self.correction.first_stage_f),
            _check_outcome_orientation(self.latent_full, self.outcome_values),
        ]
        return SplitSampleRefutationReport(
            checks=checks, outcome=self.outcome, seed=self.seed, partition=self.partition
        )

    def to_dict(self) -> dict:
        """Flat mapping in the layout of the reference output; unavailable values are ``None``."""
        return {
            "OLSCoef": self.ols.coef,
            "OLSSE": self.ols.std_err,
            "OLSTstat": self.ols.tstat,
            "Corrected_OLSCoef": self.corrected_ols.coef,
            "Corrected_OLSSE": self.corrected_ols.std_err,
            "Corrected_OLSTstat": self.corrected_ols.tstat,
            "Corrected_OLSCoef_alt": self.corrected_ols_alt.coef,
            "IVRegCoef": self.iv.coef,
            "IVRegSE": self.iv.std_err,
            "IVRegTstat": self.iv.tstat,
            "x.est1": np.array(self.latent_a),
            "x.est2": np.array(self.latent_b),
            "Corrected_IVRegCoef": self.corrected_iv.coef,
            "Corrected_IVRegSE": self.corrected_iv.std_err,
            "Corrected_IVRegTstat": self.corrected_iv.tstat,
            "VarEst_split": self.measurement_error_variance,
        }

    def summary(self) -> str:
        p = self.partition
        lines = [
            "",
            f"Split-Sample Measurement Error Correction: latent trait → {self.outcome}",
            f"  Indicator groups: {len(p.groups)} (split A: {len(p.split_a)}, "
            f"split B: {len(p.split_b)})   seed: {self.seed}",
            "─" * 50,
            f"  Naive OLS (full)       : {self.ols.fmt()}",
            f"  IV (B instrumented by A): {self.iv.fmt()}",
            "",
            f"  Corrected, correlation : {self.corrected_ols.fmt()}",
            f"  Corrected, error var.  : {self.corrected_ols_alt.fmt()}",
            f"  Corrected IV           : {self.corrected_iv.fmt()}",
            "",
            f"  corr(A, B)             : {self.split_correlation:>10.4f}",
            f"  Meas. error variance   : {self.measurement_error_variance:>10.4f}",
            "",
            "  Assumptions",
            "  " + "┄" * 48,
        ]
        for a in SPLIT_SAMPLE_ASSUMPTIONS:
            lines.append(f"  {a.fmt_tag()}  {a.name}")
        lines.append("")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return self.summary()


class SplitSampleCorrection:
    """
    Measurement-error-corrected effect of a latent trait on an outcome.

    The indicator battery is split at random, by group, into two halves. The
    latent trait is estimated three times (full battery, split A, split B);
    the disagreement between the two split estimates measures the error in
    each, which drives three corrections of the attenuated OLS slope:

    1. **Correlation-based**: split OLS slopes / ``sqrt(max(0.01, corr(A, B)))``.
    2. **Error-variance-based**: split OLS slopes × ``sqrt(1 + Var(A - B) / 2)``.
    3. **IV-based**: each split instruments the other, damped by
       ``sqrt(max(0.01, corr(A, B)))``.

    Signs are aligned before anything is compared: the full-sample estimate
    with the outcome, split A with the full-sample estimate and split B with
    split A.

    Example::

        result = SplitSampleCorrection(outcome="turnout", seed=123).fit(df)
        print(result.summary())

    Parameters
    ----------
    outcome : str
        Name of the outcome column.
    seed : int
        Seed for the partition and the estimator's starting values. Required;
        use :func:`split_sample_correct` for a drawn default.
    indicators : list of str, optional
        Indicator columns. Defaults to every column other than ``outcome``.
    groupings : mapping or sequence, optional
        Group id per indicator (a mapping keyed by column, or a sequence in
        indicator order). Indicators sharing a group always land in the same
        split. Defaults to one group per indicator.
    expand_categories : bool
        Dummy-expand each indicator (dropping its first level) before
        estimation, instead of requiring 0/1 responses.
    estimator : LatentEstimator, optional
        Latent-trait estimator. Defaults to :class:`BinaryIRT`.
    """

    def __init__(
        self,
        outcome: str,
        seed: int,
        indicators: list[str] | None = None,
        groupings: Mapping[str, Hashable] | Sequence[Hashable] | None = None,
        expand_categories: bool = False,
        estimator: LatentEstimator | None = None,
    ) -> None:
        self._outcome = outcome
        self._seed = seed
        self._indicators = list(indicators) if indicators is not None else None
        self._groupings = groupings
        self._expand_categories = expand_categories
        self._estimator = estimator if estimator is not None else BinaryIRT()
        with _stage(Stage.INPUT):
            self._validate_inputs()

    def _validate_inputs(self) -> None:
        if isinstance(self._seed, bool) or not isinstance(self._seed, Integral):
            raise InvalidInputError(f"seed must be an integer, got {self._seed!r}.")
        if self._indicators is not None:
            if not self._indicators:
                raise InvalidInputError("At least one indicator column is required.")
            if self._outcome in self._indicators:
                raise InvalidInputError(
                    f"Outcome '{self._outcome}' cannot also be an indicator."
                )
            if len(set(self._indicators)) != len(self._indicators):
                raise InvalidInputError("Indicator columns must be unique.")
        if not callable(getattr(self._estimator, "estimate", None)):
            raise InvalidInputError("estimator must provide an estimate() method.")

    def _resolve_groupings(self, indicators: list[str]) -> dict[str, Hashable]:
        groupings = self._groupings
        if groupings is None:
            return {c: c for c in indicators}
        if isinstance(groupings, Mapping):
            missing = [c for c in indicators if c not in groupings]
            if missing:
                raise InvalidInputError(f"No group given for indicator(s) {missing}.")
            return {c: groupings[c] for c in indicators}
        groupings = list(groupings)
        if len(groupings) != len(indicators):
            raise InvalidInputError(
                f"{len(groupings)} groupings given for {len(indicators)} indicators."
            )
        return dict(zip(indicators, groupings))

    def _prepare(self, data: pd.DataFrame) -> tuple[np.ndarray, pd.DataFrame, dict[str, Hashable]]:
        """Validate ``data``; return the outcome, response matrix and column groups."""
        if self._outcome not in data.columns:
            raise InvalidInputError(f"Outcome column '{self._outcome}' not found in dataframe.")

        indicators = self._indicators
        if indicators is None:
            indicators = [c for c in data.columns if c != self._outcome]
            if not indicators:
                raise InvalidInputError("The dataframe has no indicator columns.")
        missing = [c for c in indicators if c not in data.columns]
        if missing:
            raise InvalidInputError(f"Indicator column(s) {missing} not found in dataframe.")
        groupings = self._resolve_groupings(indicators)

        try:
            y = data[self._outcome].to_numpy(dtype=float)
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(f"Outcome '{self._outcome}' must be numeric ({exc}).") from exc
        if not np.isfinite(y).all():
            raise InvalidInputError(f"Outcome '{self._outcome}' contains missing or non-finite values.")
        if len(y) < MIN_OBSERVATIONS:
            raise InsufficientDataError(
                f"{len(y)} observation(s); at least {MIN_OBSERVATIONS} are needed."
            )

        frame = data[indicators]
        check_no_empty_rows(frame)
        if self._expand_categories:
            responses, source = expand_categories(frame)
            column_groups = {c: groupings[source[c]] for c in responses.columns}
        else:
            responses = as_binary_matrix(frame)
            column_groups = {c: groupings[c] for c in responses.columns}
        return y, responses, column_groups

    def _estimate_split(
        self,
        split: Split,
        responses: pd.DataFrame,
        column_groups: dict[str, Hashable],
        partition: IndicatorPartition,
        reference: np.ndarray,
        previous_start: np.ndarray | None,
        rng: np.random.Generator,
    ) -> LatentEstimate:
        label = _LABELS[split]
        groups = set(partition.groups_for(split))
        columns = [c for c in responses.columns if column_groups[c] in groups]
        if not columns:
            raise InvalidInputError(f"{label} has no indicator columns.")

        matrix = responses[columns].to_numpy(dtype=float)
        start = initial_positions(matrix)
        if previous_start is not None:
            start, _ = orient(start, previous_start, f"{label} start")
        anchor = int(np.argmax(start))

        raw = np.asarray(self._estimator.estimate(matrix, start, anchor, rng), dtype=float)
        if raw.shape != (matrix.shape[0],):
            raise InvalidInputError(
                f"Estimator returned shape {raw.shape}, expected ({matrix.shape[0]},)."
            )
        if not np.isfinite(raw).all():
            raise NonConvergenceError(f"{label} latent estimate contains non-finite values.")

        oriented, flipped = orient(raw, reference, label)
        values = standardize(oriented, label)
        logger.debug("%s: %d indicator columns, flipped=%s", label, len(columns), flipped)
        return LatentEstimate(
            split=split,
            columns=tuple(columns),
            start=_read_only(start),
            raw=_read_only(raw),
            values=_read_only(values),
            flipped=flipped,
        )

    def fit(self, data: pd.DataFrame) -> SplitSampleResult:
        """
        Partition the indicators, estimate the latent trait per split and correct.

        Parameters
        ----------
        data : pd.DataFrame
            Must contain the outcome and indicator columns. Indicators are 0/1
            (``NaN`` = missing) unless ``expand_categories`` is set.

        Raises
        ------
        InvalidInputError
            If columns are missing, responses are not 0/1, a row has no
            observed indicator, or fewer than two indicator groups exist.
        InsufficientDataError
            If there are fewer than three observations.
        NonConvergenceError
            If the latent estimator fails to converge for any split.
        DegenerateSplitError
            If a latent estimate has zero variance.

        Every error carries the ``stage`` at which the run stopped.
        """
        with _stage(Stage.INPUT):
            y, responses, column_groups = self._prepare(data)
        logger.info(
            "Split-sample correction: N=%d, %d indicator columns, seed=%d",
            len(y), responses.shape[1], self._seed,
        )

        rng = np.random.default_rng(self._seed)
        with _stage(Stage.PARTITION):
            partition = partition_groups(column_groups.values(), rng)

        estimates: dict[Split, LatentEstimate] = {}
        previous: LatentEstimate | None = None
        for split in Split:
            with _stage(_STAGES[split]):
                estimates[split] = self._estimate_split(
                    split,
                    responses,
                    column_groups,
                    partition,
                    reference=y if previous is None else previous.values,
                    previous_start=None if previous is None else previous.start,
                    rng=rng,
                )
            previous = estimates[split]

        with _stage(Stage.CORRECTION):
            full = pd.DataFrame({"outcome": y, "latent": estimates[Split.FULL].values})
            ols = extract_estimate(fit_ols(full, "outcome", "latent"), "latent")
            correction = compute_corrections(
                estimates[Split.SPLIT_A].values, estimates[Split.SPLIT_B].values, y
            )

        result = SplitSampleResult(
            outcome=self._outcome,
            seed=int(self._seed),
            partition=partition,
            estimates=MappingProxyType(estimates),
            ols=ols,
            correction=correction,
            outcome_values=_read_only(y),
        )
        logger.info(
            "OLS %.4f -> corrected %.4f (correlation), %.4f (error variance), %.4f (IV)",
            ols.coef, result.corrected_ols.coef, result.corrected_ols_alt.coef, result.corrected_iv.coef,
        )
        return result


def split_sample_correct(
    outcome,
    indicators,
    groupings: Mapping[Hashable, Hashable] | Sequence[Hashable] | None = None,
    expand_categories: bool = False,
    seed: int | None = None,
    estimator: LatentEstimator | None = None,
) -> SplitSampleResult:
    """
    Run a split-sample correction on an outcome vector and an indicator matrix.

    A thin wrapper around :class:`SplitSampleCorrection` for array inputs.
    When ``seed`` is ``None`` one is drawn with
    :func:`~splitlatent.config.draw_default_seed` and logged; pass a seed
    explicitly for reproducible results.

    Parameters
    ----------
    outcome : array-like
        Length-N outcome vector.
    indicators : pd.DataFrame or array-like
        N×P indicator matrix. Array columns are named ``item0``, ``item1``, …
    groupings : mapping or sequence, optional
        Group id per indicator column; see :class:`SplitSampleCorrection`.
    """
    if isinstance(indicators, pd.DataFrame):
        frame = indicators.reset_index(drop=True)
    else:
        matrix = np.asarray(indicators, dtype=object)
        if matrix.ndim != 2:
            raise InvalidInputError(
                f"indicators must be a 2-D matrix, got shape {matrix.shape}.", stage=Stage.INPUT
            )
        frame = pd.DataFrame(matrix, columns=[f"item{j}" for j in range(matrix.shape[1])])
        frame = frame.infer_objects()

    y = np.asarray(outcome, dtype=float)
    if y.ndim != 1 or len(y) != len(frame):
        raise InvalidInputError(
            f"outcome has shape {y.shape}, expected ({len(frame)},).", stage=Stage.INPUT
        )

    name = "outcome"
    while name in frame.columns:
        name = "_" + name

    if seed is None:
        seed = draw_default_seed()
    return SplitSampleCorrection(
        outcome=name,
        seed=seed,
        indicators=list(frame.columns),
        groupings=groupings,
        expand_categories=expand_categories,
        estimator=estimator,
    ).fit(frame.assign(**{name: y}))
