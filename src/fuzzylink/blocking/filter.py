"""Blocking filter.

Partitions the two datasets into independent blocks of rows that agree
exactly on every blocking variable. Only within-block pairs are ever
compared; with no blocking variables a single universal block holds
everything.
"""

from __future__ import annotations

import time
import warnings
from collections.abc import Sequence
from typing import Any

import pandas as pd

from fuzzylink.audit.logger import AuditLogger
from fuzzylink.blocking.models import Block, BlockingResult, BlockingStats
from fuzzylink.errors import ConfigurationError, DataQualityWarning

BLOCK_COLUMN = "block"
STAGE_NAME = "blocking"


def build_blocks(
    df_a: pd.DataFrame,
    df_b: pd.DataFrame,
    by: str,
    blocking_variables: Sequence[str] | None = None,
    *,
    logger: AuditLogger | None = None,
) -> BlockingResult:
    """Partition datasets A and B into blocks.

    Parameters
    ----------
    df_a : pd.DataFrame
        Left dataset (every row appears in the final output).
    df_b : pd.DataFrame
        Right dataset.
    by : str
        Join field holding the strings to match.
    blocking_variables : Sequence[str] | None, optional
        Fields that must agree exactly for two rows to be compared.
    logger : AuditLogger | None, optional
        Audit logger for observability events.

    Returns
    -------
    BlockingResult
        One block per distinct blocking-key combination present in A,
        plus the cleaned datasets annotated with their block ids.

    Raises
    ------
    ConfigurationError
        If a field is missing from either dataset, or if blocking
        variables were supplied and no block contains any B row.
    """
    start = time.perf_counter()
    keys = list(blocking_variables or [])

    _check_columns(df_a, "A", by, keys)
    _check_columns(df_b, "B", by, keys)

    if logger:
        logger.stage_started(STAGE_NAME, expected_items=len(df_a))

    stats = BlockingStats()
    data_a, stats.dropped_a = _drop_missing(df_a, [by, *keys], "A", logger)
    data_b, stats.dropped_b = _drop_missing(df_b, [by, *keys], "B", logger)
    data_a[by] = data_a[by].astype(str)
    data_b[by] = data_b[by].astype(str)

    if keys:
        blocks, data_a, data_b = _partition(data_a, data_b, by, keys, logger)
    else:
        blocks = [
            Block(
                block_id=0,
                key=(),
                items_a=tuple(dict.fromkeys(data_a[by])),
                items_b=tuple(dict.fromkeys(data_b[by])),
            )
        ]
        data_a[BLOCK_COLUMN] = 0
        data_b[BLOCK_COLUMN] = 0

    stats.rows_a = len(data_a)
    stats.rows_b = len(data_b)
    stats.blocks = len(blocks)
    stats.empty_blocks = sum(1 for b in blocks if b.is_empty)
    stats.candidate_pairs = sum(b.n_pairs for b in blocks)

    if keys and stats.empty_blocks == stats.blocks:
        raise ConfigurationError(
            f"No rows in dataset B share blocking values {keys} with dataset A. "
            "Check the blocking variables."
        )

    if logger:
        logger.stage_finished(
            STAGE_NAME,
            duration_seconds=time.perf_counter() - start,
            counters=stats.to_dict(),
        )

    return BlockingResult(blocks=blocks, data_a=data_a, data_b=data_b, stats=stats)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _check_columns(df: pd.DataFrame, side: str, by: str, keys: list[str]) -> None:
    if by in keys:
        raise ConfigurationError(f"Join field {by!r} cannot also be a blocking variable")
    if BLOCK_COLUMN in df.columns:
        raise ConfigurationError(
            f"Dataset {side} has a column named {BLOCK_COLUMN!r}, which is reserved"
        )
    missing = [col for col in [by, *keys] if col not in df.columns]
    if missing:
        raise ConfigurationError(f"Dataset {side} is missing field(s): {', '.join(missing)}")


def _drop_missing(
    df: pd.DataFrame,
    columns: list[str],
    side: str,
    logger: AuditLogger | None,
) -> tuple[pd.DataFrame, int]:
    """Drop rows with missing join/blocking values, warning when any are dropped."""
    missing = df[columns].isna().any(axis=1)
    dropped = int(missing.sum())

    if dropped:
        message = (
            f"Dropped {dropped} row(s) from dataset {side} with missing values "
            f"in {', '.join(columns)}"
        )
        warnings.warn(message, DataQualityWarning, stacklevel=3)
        if logger:
            logger.warning(
                "rows_dropped",
                data={"dataset": side, "rows": dropped, "fields": columns},
            )

    return df.loc[~missing].reset_index(drop=True).copy(), dropped


def _row_keys(df: pd.DataFrame, keys: list[str]) -> list[tuple[Any, ...]]:
    return list(df[keys].itertuples(index=False, name=None))


def _partition(
    data_a: pd.DataFrame,
    data_b: pd.DataFrame,
    by: str,
    keys: list[str],
    logger: AuditLogger | None,
) -> tuple[list[Block], pd.DataFrame, pd.DataFrame]:
    """Group rows by exact key combination, keyed on the combinations in A."""
    combos_a = _row_keys(data_a, keys)
    combos_b = _row_keys(data_b, keys)

    block_ids: dict[tuple[Any, ...], int] = {}
    for combo in combos_a:
        block_ids.setdefault(combo, len(block_ids))

    items_a: list[dict[str, None]] = [{} for _ in block_ids]
    items_b: list[dict[str, None]] = [{} for _ in block_ids]

    ids_a = [block_ids[combo] for combo in combos_a]
    for block_id, item in zip(ids_a, data_a[by], strict=True):
        items_a[block_id][item] = None

    ids_b = [block_ids.get(combo) for combo in combos_b]
    for block_id, item in zip(ids_b, data_b[by], strict=True):
        if block_id is not None:
            items_b[block_id][item] = None

    blocks = [
        Block(
            block_id=block_id,
            key=combo,
            items_a=tuple(items_a[block_id]),
            items_b=tuple(items_b[block_id]),
        )
        for combo, block_id in block_ids.items()
    ]

    if logger:
        for block in blocks:
            if block.is_empty:
                logger.warning(
                    "empty_block",
                    data={"block": block.block_id, "key": list(block.key)},
                )

    data_a = data_a.assign(**{BLOCK_COLUMN: ids_a})
    in_block = [block_id is not None for block_id in ids_b]
    data_b = data_b.assign(**{BLOCK_COLUMN: ids_b}).loc[in_block].reset_index(drop=True)
    data_b[BLOCK_COLUMN] = data_b[BLOCK_COLUMN].astype(int)

    return blocks, data_a, data_b
