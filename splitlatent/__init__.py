from .estimators.split_sample import LatentEstimate, SplitSampleCorrection, SplitSampleResult, split_sample_correct
from .estimators.irt import BinaryIRT, LatentEstimator
from .estimators.regression import RegressionEstimate
from .config import IRTControl, draw_default_seed
from .correction import CorrectionMethod, CorrectionResult, compute_corrections, measurement_error_variance
from .partition import IndicatorPartition, Split, partition_groups
from .refutations import SplitSampleRefutationReport, RefutationCheck
from .refutations._check import Assumption
from ._exceptions import (
    DegenerateSplitError,
    InsufficientDataError,
    InvalidInputError,
    NonConvergenceError,
    SplitSampleError,
    Stage,
)

__all__ = [
    "SplitSampleCorrection", "SplitSampleResult", "LatentEstimate", "split_sample_correct",
    "BinaryIRT", "LatentEstimator", "IRTControl", "draw_default_seed",
    "RegressionEstimate",
    "CorrectionMethod", "CorrectionResult", "compute_corrections", "measurement_error_variance",
    "IndicatorPartition", "Split", "partition_groups",
    "SplitSampleRefutationReport", "RefutationCheck", "Assumption",
    "SplitSampleError", "InvalidInputError", "NonConvergenceError",
    "DegenerateSplitError", "InsufficientDataError", "Stage",
]
