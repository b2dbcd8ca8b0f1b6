from __future__ import annotations

import logging
from collections.abc import Hashable, Iterable
from dataclasses import dataclass
from enum import Enum

import numpy as np

from ._exceptions import InvalidInputError

logger = logging.getLogger(__name__)


class Split(Enum):
    """The three indicator sets a latent trait is estimated from, in run order."""

    FULL = "full"
    SPLIT_A = "split_a"
    SPLIT_B = "split_b"


@dataclass(frozen=True)
class IndicatorPartition:
    """
    A partition of indicator groups into two disjoint halves.

    ``split_a`` holds ``floor(len(groups) / 2)`` groups and ``split_b`` the
    rest, so an odd group count leaves split B one group larger.
    """

    groups: tuple[Hashable, ...]
    split_a: tuple[Hashable, ...]
    split_b: tuple[Hashable, ...]

    def groups_for(self, split: Split) -> tuple[Hashable, ...]:
        """The group ids whose indicators feed the given split."""
        if split is Split.FULL:
            return self.groups
        if split is Split.SPLIT_A:
            return self.split_a
        return self.split_b


def unique_groups(groupings: Iterable[Hashable]) -> list[Hashable]:
    """Distinct group ids in order of first appearance."""
    seen: dict[Hashable, None] = {}
    for g in groupings:
        seen.setdefault(g, None)
    return list(seen)


def partition_groups(groups: Iterable[Hashable], rng: np.random.Generator) -> IndicatorPartition:
    """
    Randomly assign half of the distinct groups to split A, the rest to split B.

    Membership of split A is drawn without replacement from ``rng``; both
    halves keep the order in which the groups were given.

    Raises
    ------
    InvalidInputError
        If fewer than two distinct groups exist, so no split is possible.
    """
    distinct = unique_groups(groups)
    n_groups = len(distinct)
    if n_groups < 2:
        raise InvalidInputError(
            f"At least 2 distinct indicator groups are needed to split the "
            f"battery, got {n_groups}."
        )

    n_a = n_groups // 2
    chosen = set(rng.choice(n_groups, size=n_a, replace=False).tolist())
    split_a = tuple(g for i, g in enumerate(distinct) if i in chosen)
    split_b = tuple(g for i, g in enumerate(distinct) if i not in chosen)

    logger.info("Partitioned %d indicator groups into %d / %d", n_groups, len(split_a), len(split_b))
    return IndicatorPartition(groups=tuple(distinct), split_a=split_a, split_b=split_b)
