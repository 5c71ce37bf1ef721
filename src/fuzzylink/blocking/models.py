"""Data models for blocks produced by the blocking filter."""

from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from typing import Any

import pandas as pd


@dataclass(frozen=True)
class Block:
    """Items from both datasets sharing identical blocking-key values.

    Attributes
    ----------
    block_id : int
        Sequential block identifier (order of first appearance in A).
    key : tuple[Any, ...]
        Blocking-key values shared by every row in the block. Empty for
        the universal block used when no blocking keys are configured.
    items_a : tuple[str, ...]
        Distinct join-field values from dataset A, in order of appearance.
    items_b : tuple[str, ...]
        Distinct join-field values from dataset B, in order of appearance.
    """

    block_id: int
    key: tuple[Any, ...]
    items_a: tuple[str, ...]
    items_b: tuple[str, ...]

    @property
    def is_empty(self) -> bool:
        """True when one side has no items, so no pair can be formed."""
        return not self.items_a or not self.items_b

    @property
    def n_pairs(self) -> int:
        """Size of the within-block cross product."""
        return len(self.items_a) * len(self.items_b)


@dataclass
class BlockingStats:
    """Counters collected while blocking.

    Attributes
    ----------
    rows_a : int
        Dataset A rows kept after dropping missing values.
    rows_b : int
        Dataset B rows kept after dropping missing values.
    dropped_a : int
        Dataset A rows dropped for missing join/blocking values.
    dropped_b : int
        Dataset B rows dropped for missing join/blocking values.
    blocks : int
        Total blocks (one per distinct A key combination).
    empty_blocks : int
        Blocks with no B rows.
    candidate_pairs : int
        Sum of within-block cross products (before cross-block dedup).
    """

    rows_a: int = 0
    rows_b: int = 0
    dropped_a: int = 0
    dropped_b: int = 0
    blocks: int = 0
    empty_blocks: int = 0
    candidate_pairs: int = 0

    def to_dict(self) -> dict[str, int]:
        """Serialise to a plain dict."""
        return asdict(self)


@dataclass
class BlockingResult:
    """Blocks plus the cleaned datasets they were built from.

    Attributes
    ----------
    blocks : list[Block]
        One block per distinct blocking-key combination in A.
    data_a : pandas.DataFrame
        Dataset A without rows missing join/blocking values, with a
        ``block`` column holding each row's block id.
    data_b : pandas.DataFrame
        Dataset B rows that fall in some block, with a ``block`` column.
    stats : BlockingStats
        Blocking counters.
    """

    blocks: list[Block]
    data_a: pd.DataFrame
    data_b: pd.DataFrame
    stats: BlockingStats = field(default_factory=BlockingStats)

    def distinct_items(self) -> list[str]:
        """Distinct items across all non-empty blocks, A side first."""
        return distinct_items(self.blocks)


def distinct_items(blocks: Sequence[Block]) -> list[str]:
    """Distinct items across non-empty blocks, A side first, in first-seen order."""
    active = [block for block in blocks if not block.is_empty]
    seen: dict[str, None] = {}
    for block in active:
        seen.update(dict.fromkeys(block.items_a))
    for block in active:
        seen.update(dict.fromkeys(block.items_b))
    return list(seen)
