"""Blocking filter: exact-key partitioning of the two datasets."""

from fuzzylink.blocking.filter import BLOCK_COLUMN, build_blocks
from fuzzylink.blocking.models import Block, BlockingResult, BlockingStats, distinct_items

__all__ = [
    "BLOCK_COLUMN",
    "Block",
    "BlockingResult",
    "BlockingStats",
    "build_blocks",
    "distinct_items",
]
