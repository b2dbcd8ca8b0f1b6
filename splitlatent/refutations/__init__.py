from .split_sample import SplitSampleRefutationReport
from ._check import Assumption, RefutationCheck

__all__ = ["SplitSampleRefutationReport", "Assumption", "RefutationCheck"]
