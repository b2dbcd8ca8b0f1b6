from .irt import BinaryIRT, LatentEstimator
from .regression import RegressionEstimate
from .split_sample import SplitSampleCorrection, SplitSampleResult, split_sample_correct

__all__ = [
    "BinaryIRT", "LatentEstimator", "RegressionEstimate",
    "SplitSampleCorrection", "SplitSampleResult", "split_sample_correct",
]
