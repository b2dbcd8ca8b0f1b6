"""
Preparation of the indicator battery before latent estimation.

Indicators enter the latent estimator as a float matrix with ``NaN`` for
missing responses. Binary batteries are checked and passed through;
categorical batteries are expanded into first-level-dropped dummies, each
dummy keeping the name of the indicator it came from so that partitioning
by group keeps an indicator's dummies together.
"""
from __future__ import annotations

import numpy as np
import pandas as pd

from ._exceptions import InvalidInputError


def as_binary_matrix(frame: pd.DataFrame) -> pd.DataFrame:
    """
    Return ``frame`` as floats, checking that every response is 0, 1 or missing.

    Raises
    ------
    InvalidInputError
        If a column is non-numeric or holds values other than 0 and 1.
    """
    try:
        numeric = frame.astype(float)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(
            f"Indicators must be numeric 0/1 responses ({exc}). "
            f"Pass expand_categories=True to dummy-expand categorical indicators."
        ) from exc

    values = numeric.to_numpy()
    observed = values[~np.isnan(values)]
    if not np.isin(observed, (0.0, 1.0)).all():
        bad = [
            c for c in numeric.columns
            if not numeric[c].dropna().isin((0.0, 1.0)).all()
        ]
        raise InvalidInputError(
            f"Indicators {bad} hold values other than 0/1. "
            f"Pass expand_categories=True to dummy-expand categorical indicators."
        )
    return numeric


def expand_categories(frame: pd.DataFrame) -> tuple[pd.DataFrame, dict[str, str]]:
    """
    Dummy-expand every indicator, dropping its first (sorted) level.

    Returns the expanded float frame and a mapping from each dummy column to
    the indicator it was built from. Rows where the indicator is missing are
    missing in all of its dummies. An indicator with a single observed level
    contributes no columns.
    """
    blocks: list[pd.DataFrame] = []
    source: dict[str, str] = {}
    for name in frame.columns:
        column = frame[name]
        dummies = pd.get_dummies(
            pd.Categorical(column),
            prefix=str(name),
            prefix_sep="=",
            drop_first=True,
            dtype=float,
        )
        dummies.index = frame.index
        dummies.loc[column.isna().to_numpy(), :] = np.nan
        for dummy in dummies.columns:
            source[dummy] = name
        blocks.append(dummies)

    if not blocks:
        return pd.DataFrame(index=frame.index), source
    return pd.concat(blocks, axis=1), source


def check_no_empty_rows(frame: pd.DataFrame) -> None:
    """Raise ``InvalidInputError`` if any observation has no observed indicator."""
    empty = frame.isna().all(axis=1)
    if empty.any():
        rows = list(frame.index[empty][:5])
        raise InvalidInputError(
            f"{int(empty.sum())} observation(s) have no observed indicator "
            f"(first rows: {rows})."
        )


def initial_positions(responses: np.ndarray) -> np.ndarray:
    """
    Row-wise mean of the observed responses: the latent estimator's start.

    Rows with nothing observed in this submatrix start at the mean of the
    other rows.
    """
    observed = ~np.isnan(responses)
    counts = observed.sum(axis=1)
    sums = np.where(observed, responses, 0.0).sum(axis=1)

    start = np.full(responses.shape[0], np.nan)
    np.divide(sums, counts, out=start, where=counts > 0)
    if not (counts > 0).any():
        raise InvalidInputError("The indicator submatrix has no observed responses.")
    start[counts == 0] = start[counts > 0].mean()
    return start
