from __future__ import annotations

from enum import Enum


class Stage(Enum):
    """The stage of a split-sample run in which an error surfaced."""

    INPUT = "input validation"
    PARTITION = "partition"
    FULL_ESTIMATION = "full-sample estimation"
    SPLIT_A_ESTIMATION = "split-A estimation"
    SPLIT_B_ESTIMATION = "split-B estimation"
    CORRECTION = "correction computation"


class SplitSampleError(Exception):
    """
    Base class for every error raised by a split-sample run.

    ``stage`` is filled in by the orchestrator if the raising code did not
    set it, so the message always says where the run stopped.
    """

    def __init__(self, message: str, stage: Stage | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self) -> str:
        if self.stage is None:
            return self.message
        return f"{self.stage.value} failed: {self.message}"


class InvalidInputError(SplitSampleError, ValueError):
    """Raised when the data or arguments cannot support a split-sample run."""
    pass


class NonConvergenceError(SplitSampleError, RuntimeError):
    """Raised when the latent estimator does not converge within its budget."""
    pass


class DegenerateSplitError(SplitSampleError, ArithmeticError):
    """Raised when a latent estimate has zero variance, leaving correlations undefined."""
    pass


class InsufficientDataError(SplitSampleError, ValueError):
    """Raised when there are too few observations to identify the regressions."""
    pass
