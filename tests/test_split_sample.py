import numpy as np
import pandas as pd
import pytest
from scipy.stats import norm

from splitlatent import (
    CorrectionMethod,
    DegenerateSplitError,
    InsufficientDataError,
    InvalidInputError,
    IRTControl,
    BinaryIRT,
    NonConvergenceError,
    Split,
    SplitSampleCorrection,
    SplitSampleResult,
    Stage,
    split_sample_correct,
)


def make_data(n=100, n_items=10, true_effect=1.0, seed=0):
    """
    Ground truth DGP:
      x      ~ N(0, 1)                                  [latent trait, unobserved]
      q_j    = 1{alpha_j + beta_j * x + e > 0}          [binary indicators]
               alpha_j ~ N(0, 0.5^2), beta_j ~ U(1, 2)
      y      = true_effect * x + N(0, 1)
    """
    rng = np.random.default_rng(seed)
    x = rng.normal(size=n)
    alpha = rng.normal(scale=0.5, size=n_items)
    beta = rng.uniform(1.0, 2.0, size=n_items)
    p = norm.cdf(alpha[None, :] + x[:, None] * beta[None, :])
    items = (rng.uniform(size=p.shape) < p).astype(float)
    df = pd.DataFrame(items, columns=[f"q{j}" for j in range(n_items)])
    df["y"] = true_effect * x + rng.normal(size=n)
    return df


def make_categorical_data(n=300, n_items=6, seed=0):
    """Three-level ordinal indicators cut from a latent trait that also drives y."""
    rng = np.random.default_rng(seed)
    x = rng.normal(size=n)
    cols = {}
    for j in range(n_items):
        score = x + rng.normal(scale=0.7, size=n)
        cols[f"c{j}"] = np.where(score < -0.5, "low", np.where(score < 0.5, "mid", "high"))
    df = pd.DataFrame(cols)
    df["y"] = 0.8 * x + rng.normal(size=n)
    return df


class RowMeanEstimator:
    """Returns the start vector unchanged: a fast stand-in for the EM fit."""

    def __init__(self):
        self.calls = 0

    def estimate(self, responses, start, anchor, rng):
        self.calls += 1
        x = np.array(start, dtype=float)
        return x if x[anchor] >= 0 else -x


class ConstantOnCall(RowMeanEstimator):
    """Returns a constant vector on the given (1-based) call."""

    def __init__(self, call, fill=1.0):
        super().__init__()
        self._call = call
        self._fill = fill

    def estimate(self, responses, start, anchor, rng):
        x = super().estimate(responses, start, anchor, rng)
        return np.full_like(x, self._fill) if self.calls == self._call else x


class TestSplitSampleValidation:
    def test_seed_is_required_integer(self):
        with pytest.raises(InvalidInputError, match="seed must be an integer") as exc:
            SplitSampleCorrection(outcome="y", seed=1.5)
        assert exc.value.stage is Stage.INPUT

    def test_outcome_cannot_be_indicator(self):
        with pytest.raises(InvalidInputError, match="cannot also be an indicator"):
            SplitSampleCorrection(outcome="y", seed=1, indicators=["q0", "y"])

    def test_missing_outcome_column_raises(self):
        df = make_data().drop(columns=["y"])
        with pytest.raises(InvalidInputError, match="Outcome column 'y' not found"):
            SplitSampleCorrection(outcome="y", seed=1).fit(df)

    def test_missing_indicator_column_raises(self):
        with pytest.raises(InvalidInputError, match="not found"):
            SplitSampleCorrection(outcome="y", seed=1, indicators=["q0", "zz"]).fit(make_data())

    def test_ungrouped_indicator_raises(self):
        with pytest.raises(InvalidInputError, match="No group given"):
            SplitSampleCorrection(outcome="y", seed=1, groupings={"q0": "g"}).fit(make_data())

    def test_non_binary_without_expansion_raises(self):
        df = make_categorical_data()
        with pytest.raises(InvalidInputError, match="expand_categories") as exc:
            SplitSampleCorrection(outcome="y", seed=1).fit(df)
        assert exc.value.stage is Stage.INPUT

    def test_empty_indicator_row_raises(self):
        df = make_data()
        df.loc[3, [f"q{j}" for j in range(10)]] = np.nan
        with pytest.raises(InvalidInputError, match="no observed indicator"):
            SplitSampleCorrection(outcome="y", seed=1).fit(df)

    def test_too_few_observations_raises(self):
        df = make_data().head(2)
        with pytest.raises(InsufficientDataError):
            SplitSampleCorrection(outcome="y", seed=1, estimator=RowMeanEstimator()).fit(df)

    def test_single_group_raises_before_estimation(self):
        df = make_data()
        estimator = RowMeanEstimator()
        groupings = {f"q{j}": "all" for j in range(10)}
        with pytest.raises(InvalidInputError, match="partition failed") as exc:
            SplitSampleCorrection(
                outcome="y", seed=1, groupings=groupings, estimator=estimator
            ).fit(df)
        assert exc.value.stage is Stage.PARTITION
        assert estimator.calls == 0


class TestSplitSampleErrorsByStage:
    def test_non_convergence_names_full_sample_stage(self):
        estimator = BinaryIRT(IRTControl(max_iter=2, thresh=1e-15))
        with pytest.raises(NonConvergenceError, match="full-sample estimation failed") as exc:
            SplitSampleCorrection(outcome="y", seed=1, estimator=estimator).fit(make_data())
        assert exc.value.stage is Stage.FULL_ESTIMATION

    def test_degenerate_split_b_names_its_stage(self):
        estimator = ConstantOnCall(call=3)
        with pytest.raises(DegenerateSplitError, match="split-B estimation failed") as exc:
            SplitSampleCorrection(outcome="y", seed=1, estimator=estimator).fit(make_data())
        assert exc.value.stage is Stage.SPLIT_B_ESTIMATION

    def test_degenerate_split_a_names_its_stage(self):
        estimator = ConstantOnCall(call=2)
        with pytest.raises(DegenerateSplitError) as exc:
            SplitSampleCorrection(outcome="y", seed=1, estimator=estimator).fit(make_data())
        assert exc.value.stage is Stage.SPLIT_A_ESTIMATION

    def test_inexact_constant_split_is_degenerate(self):
        # 0.1 is not representable, so the sample sd is rounding noise, not 0
        estimator = ConstantOnCall(call=3, fill=0.1)
        with pytest.raises(DegenerateSplitError, match="zero variance") as exc:
            SplitSampleCorrection(outcome="y", seed=1, estimator=estimator).fit(make_data())
        assert exc.value.stage is Stage.SPLIT_B_ESTIMATION


class TestSplitSampleEstimation:
    def test_reference_scenario(self):
        """N=100, ten binary indicators in ten groups, seed 123."""
        df = make_data(n=100, n_items=10)
        result = SplitSampleCorrection(outcome="y", seed=123).fit(df)
        assert isinstance(result, SplitSampleResult)
        assert len(result.partition.split_a) == 5
        assert len(result.partition.split_b) == 5
        for est in (result.ols, result.iv, result.corrected_ols, result.corrected_ols_alt, result.corrected_iv):
            assert est.coef is not None and np.isfinite(est.coef)
        assert np.isfinite(result.measurement_error_variance)
        assert result.measurement_error_variance >= 0

    def test_sign_alignment(self):
        result = SplitSampleCorrection(outcome="y", seed=123).fit(make_data(n=200))
        y = make_data(n=200)["y"].to_numpy()
        assert np.corrcoef(result.latent_full, y)[0, 1] >= 0
        assert np.corrcoef(result.latent_a, result.latent_b)[0, 1] >= 0

    def test_latent_estimates_are_standardized(self):
        result = SplitSampleCorrection(outcome="y", seed=5, estimator=RowMeanEstimator()).fit(make_data())
        for split in Split:
            values = result.estimates[split].values
            assert values.mean() == pytest.approx(0.0, abs=1e-10)
            assert values.std(ddof=1) == pytest.approx(1.0)

    def test_same_seed_is_deterministic(self):
        df = make_data(n=150)
        r1 = SplitSampleCorrection(outcome="y", seed=42).fit(df)
        r2 = SplitSampleCorrection(outcome="y", seed=42).fit(df)
        assert r1.partition == r2.partition
        assert np.array_equal(r1.latent_a, r2.latent_a)
        assert np.array_equal(r1.latent_b, r2.latent_b)
        for method in CorrectionMethod:
            assert r1.corrections[method].coef == r2.corrections[method].coef

    def test_splits_use_their_own_indicators(self):
        result = SplitSampleCorrection(outcome="y", seed=9, estimator=RowMeanEstimator()).fit(make_data())
        cols_a = set(result.estimates[Split.SPLIT_A].columns)
        cols_b = set(result.estimates[Split.SPLIT_B].columns)
        assert cols_a.isdisjoint(cols_b)
        assert cols_a | cols_b == set(result.estimates[Split.FULL].columns)
        assert cols_a == set(result.partition.split_a)

    def test_groups_keep_indicators_together(self):
        groupings = {f"q{j}": f"g{j // 2}" for j in range(10)}
        result = SplitSampleCorrection(
            outcome="y", seed=3, groupings=groupings, estimator=RowMeanEstimator()
        ).fit(make_data())
        cols_a = result.estimates[Split.SPLIT_A].columns
        groups_a = {groupings[c] for c in cols_a}
        assert len(cols_a) == 2 * len(groups_a)
        assert len(result.partition.groups) == 5
        assert len(result.partition.split_a) == 2

    def test_expanded_dummies_stay_with_their_indicator(self):
        df = make_categorical_data()
        result = SplitSampleCorrection(
            outcome="y", seed=4, expand_categories=True, estimator=RowMeanEstimator()
        ).fit(df)
        cols_a = result.estimates[Split.SPLIT_A].columns
        sources = {c.split("=")[0] for c in cols_a}
        assert len(cols_a) == 2 * len(sources)
        assert sources == set(result.partition.split_a)

    def test_corrections_exceed_split_ols(self):
        result = SplitSampleCorrection(outcome="y", seed=8).fit(make_data(n=400, true_effect=1.0))
        naive = (result.correction.ols_a.coef + result.correction.ols_b.coef) / 2
        assert result.corrected_ols.coef >= naive
        assert result.corrected_ols_alt.coef >= naive

    def test_latent_vectors_are_read_only(self):
        result = SplitSampleCorrection(outcome="y", seed=1, estimator=RowMeanEstimator()).fit(make_data())
        with pytest.raises(ValueError):
            result.latent_a[0] = 1.0

    def test_to_dict_layout(self):
        result = SplitSampleCorrection(outcome="y", seed=1, estimator=RowMeanEstimator()).fit(make_data())
        out = result.to_dict()
        assert out["OLSCoef"] == result.ols.coef
        assert out["IVRegSE"] == result.iv.std_err
        assert out["Corrected_OLSSE"] is None
        assert out["Corrected_OLSTstat"] is None
        assert out["Corrected_IVRegSE"] is None
        assert out["Corrected_IVRegTstat"] == pytest.approx(
            result.corrected_iv.coef / result.iv.std_err
        )
        assert out["VarEst_split"] == result.measurement_error_variance
        assert np.array_equal(out["x.est1"], result.latent_a)

    def test_summary_mentions_estimates(self):
        result = SplitSampleCorrection(outcome="y", seed=1, estimator=RowMeanEstimator()).fit(make_data())
        text = result.summary()
        assert "latent trait → y" in text
        assert "Corrected, correlation" in text
        assert "seed: 1" in text
        assert repr(result) == text


class TestSplitSampleCorrectFunction:
    def test_array_inputs(self):
        df = make_data()
        result = split_sample_correct(
            df["y"].to_numpy(), df.drop(columns="y").to_numpy(), seed=7, estimator=RowMeanEstimator()
        )
        assert result.seed == 7
        assert result.estimates[Split.FULL].columns[0] == "item0"

    def test_positional_groupings(self):
        df = make_data()
        groupings = ["a", "a", "b", "b", "c", "c", "d", "d", "e", "e"]
        result = split_sample_correct(
            df["y"], df.drop(columns="y"), groupings=groupings, seed=2, estimator=RowMeanEstimator()
        )
        assert set(result.partition.groups) == set("abcde")

    def test_default_seed_is_drawn(self):
        df = make_data()
        result = split_sample_correct(df["y"], df.drop(columns="y"), estimator=RowMeanEstimator())
        assert 1 <= result.seed <= 10_000

    def test_outcome_length_mismatch_raises(self):
        df = make_data()
        with pytest.raises(InvalidInputError, match="outcome has shape"):
            split_sample_correct(df["y"].to_numpy()[:-1], df.drop(columns="y"), seed=1)
