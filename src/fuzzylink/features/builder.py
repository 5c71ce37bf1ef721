"""Similarity feature builder.

Turns the blocked items into one feature row per distinct (A item, B item)
pair: the cosine similarity of their embeddings plus a set of lexical
similarities. The embedding provider is called once for the full set of
distinct items, never per block.
"""

from __future__ import annotations

import time
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from fuzzylink.audit.logger import AuditLogger
from fuzzylink.blocking.models import Block, distinct_items
from fuzzylink.errors import ProviderError
from fuzzylink.features.lexical import LexicalMetric, get_metrics
from fuzzylink.providers.base import EmbeddingProvider

EMBEDDING_FEATURE = "sim"
STAGE_NAME = "features"


@dataclass
class PairTable:
    """Deduplicated candidate pairs and their features.

    A pair that recurs in several blocks occupies a single row; blocks
    hold only row references.

    Attributes
    ----------
    frame : pd.DataFrame
        Columns ``A``, ``B`` and one column per feature.
    feature_names : tuple[str, ...]
        Feature columns, embedding similarity first.
    index : dict[tuple[str, str], int]
        Row position of each (A item, B item) pair.
    memberships : list[tuple[int, ...]]
        Block ids each row belongs to.
    block_rows : dict[int, np.ndarray]
        Row positions of each block's pairs.
    """

    frame: pd.DataFrame
    feature_names: tuple[str, ...]
    index: dict[tuple[str, str], int] = field(default_factory=dict)
    memberships: list[tuple[int, ...]] = field(default_factory=list)
    block_rows: dict[int, np.ndarray] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.frame)

    @property
    def items_a(self) -> np.ndarray:
        """A item of every row."""
        return self.frame["A"].to_numpy()

    @property
    def items_b(self) -> np.ndarray:
        """B item of every row."""
        return self.frame["B"].to_numpy()

    @property
    def exact_mask(self) -> np.ndarray:
        """Rows whose two items are identical strings."""
        return self.items_a == self.items_b

    def row(self, item_a: str, item_b: str) -> int | None:
        """Row position of a pair, or None if it was never a candidate."""
        return self.index.get((item_a, item_b))

    def features(self, names: Sequence[str] | None = None) -> np.ndarray:
        """Feature matrix restricted to ``names`` (all features if None)."""
        columns = list(names) if names is not None else list(self.feature_names)
        return self.frame[columns].to_numpy(dtype=np.float64)

    def pairs(self, rows: Sequence[int] | np.ndarray) -> list[tuple[str, str]]:
        """(A item, B item) tuples for the given row positions."""
        items_a = self.items_a
        items_b = self.items_b
        return [(str(items_a[r]), str(items_b[r])) for r in rows]


def normalize_rows(matrix: np.ndarray) -> np.ndarray:
    """Scale each row to unit L2 norm; all-zero rows are left as zeros."""
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return matrix / norms


def build_pair_table(
    blocks: Sequence[Block],
    embedder: EmbeddingProvider,
    *,
    metrics: Sequence[str] | None = None,
    logger: AuditLogger | None = None,
) -> PairTable:
    """Compute features for every within-block candidate pair.

    Parameters
    ----------
    blocks : Sequence[Block]
        Blocks from the blocking filter.
    embedder : EmbeddingProvider
        Embedding collaborator, called exactly once (or not at all when
        no block can form a pair).
    metrics : Sequence[str] | None, optional
        Lexical metric names; None selects every registered metric.
    logger : AuditLogger | None, optional
        Audit logger for observability events.

    Returns
    -------
    PairTable
        Deduplicated pair table.

    Raises
    ------
    ProviderError
        If the provider fails or returns a matrix of the wrong shape.
    """
    start = time.perf_counter()
    lexical = get_metrics(metrics)
    feature_names = (EMBEDDING_FEATURE, *(m.name for m in lexical))
    active = [block for block in blocks if not block.is_empty]

    if logger:
        logger.stage_started(STAGE_NAME, expected_items=sum(b.n_pairs for b in active))

    if not active:
        empty = pd.DataFrame({name: pd.Series(dtype=float) for name in feature_names})
        empty.insert(0, "B", pd.Series(dtype=str))
        empty.insert(0, "A", pd.Series(dtype=str))
        if logger:
            logger.stage_finished(
                STAGE_NAME,
                duration_seconds=time.perf_counter() - start,
                counters={"items_embedded": 0, "distinct_pairs": 0},
            )
        return PairTable(frame=empty, feature_names=feature_names)

    items = distinct_items(active)
    embeddings = _embed(embedder, items)
    position = {item: i for i, item in enumerate(items)}

    long = pd.concat(
        [_block_frame(block, embeddings, position, lexical) for block in active],
        ignore_index=True,
    )
    table = _deduplicate(long, feature_names)

    if logger:
        logger.stage_finished(
            STAGE_NAME,
            duration_seconds=time.perf_counter() - start,
            counters={
                "items_embedded": len(items),
                "block_pairs": len(long),
                "distinct_pairs": len(table),
                "exact_pairs": int(table.exact_mask.sum()),
            },
        )

    return table


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _embed(embedder: EmbeddingProvider, items: list[str]) -> np.ndarray:
    matrix = np.asarray(embedder.embed(items), dtype=np.float64)
    if matrix.ndim != 2 or matrix.shape[0] != len(items):
        raise ProviderError(
            f"Embedding provider returned shape {matrix.shape} for {len(items)} strings"
        )
    return normalize_rows(matrix)


def _block_frame(
    block: Block,
    embeddings: np.ndarray,
    position: dict[str, int],
    lexical: list[LexicalMetric],
) -> pd.DataFrame:
    """Long-format features for one block's full cross product."""
    emb_a = embeddings[[position[a] for a in block.items_a]]
    emb_b = embeddings[[position[b] for b in block.items_b]]
    sim = np.clip(emb_a @ emb_b.T, -1.0, 1.0)

    n_a = len(block.items_a)
    n_b = len(block.items_b)
    columns: dict[str, object] = {
        "A": np.repeat(np.asarray(block.items_a, dtype=object), n_b),
        "B": np.tile(np.asarray(block.items_b, dtype=object), n_a),
        "block": np.full(n_a * n_b, block.block_id),
        EMBEDDING_FEATURE: sim.ravel(),
    }
    for metric in lexical:
        columns[metric.name] = metric.matrix(block.items_a, block.items_b).ravel()
    return pd.DataFrame(columns)


def _deduplicate(long: pd.DataFrame, feature_names: tuple[str, ...]) -> PairTable:
    """Collapse pairs repeated across blocks, keeping the first feature row."""
    index: dict[tuple[str, str], int] = {}
    memberships: list[list[int]] = []
    keep = np.zeros(len(long), dtype=bool)

    for pos, (a, b, block_id) in enumerate(
        zip(long["A"], long["B"], long["block"], strict=True)
    ):
        row = index.get((a, b))
        if row is None:
            index[(a, b)] = len(memberships)
            memberships.append([int(block_id)])
            keep[pos] = True
        else:
            memberships[row].append(int(block_id))

    block_rows: dict[int, list[int]] = defaultdict(list)
    for row, block_ids in enumerate(memberships):
        for block_id in block_ids:
            block_rows[block_id].append(row)

    frame = long.loc[keep, ["A", "B", *feature_names]].reset_index(drop=True)
    return PairTable(
        frame=frame,
        feature_names=feature_names,
        index=index,
        memberships=[tuple(ids) for ids in memberships],
        block_rows={k: np.asarray(v, dtype=np.intp) for k, v in block_rows.items()},
    )
