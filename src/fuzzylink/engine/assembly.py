"""Final output assembly.

Joins every dataset-A row to its kept candidate pairs and then to the
dataset-B rows those pairs point at. A rows without a kept pair appear
once with empty pair and B columns.
"""

from __future__ import annotations

import time
from collections.abc import Sequence

import numpy as np
import pandas as pd

from fuzzylink.audit.logger import AuditLogger
from fuzzylink.blocking.filter import BLOCK_COLUMN
from fuzzylink.blocking.models import BlockingResult
from fuzzylink.decision.models import CutoffResult
from fuzzylink.features.builder import PairTable
from fuzzylink.labels.models import Label
from fuzzylink.labels.store import LabelStore

STAGE_NAME = "assembly"

PROBABILITY_COLUMN = "match_probability"
LABEL_COLUMN = "label"
SOURCE_COLUMN = "label_source"


def scored_pairs(
    pairs: PairTable,
    probabilities: np.ndarray,
    store: LabelStore,
) -> pd.DataFrame:
    """One row per (pair, block membership) with probability and label.

    Returns
    -------
    pd.DataFrame
        Columns ``A``, ``B``, ``block``, features, ``match_probability``,
        ``label`` and ``label_source``.
    """
    frame = pairs.frame.copy()
    frame[PROBABILITY_COLUMN] = np.asarray(probabilities, dtype=np.float64)

    labels: list[str | None] = [None] * len(frame)
    sources: list[str | None] = [None] * len(frame)
    for entry in store:
        row = pairs.row(entry.item_a, entry.item_b)
        if row is not None:
            labels[row] = str(entry.label)
            sources[row] = str(entry.source)
    frame[LABEL_COLUMN] = pd.Series(labels, dtype=object)
    frame[SOURCE_COLUMN] = pd.Series(sources, dtype=object)

    frame.insert(2, BLOCK_COLUMN, pd.Series(pairs.memberships, dtype=object))
    frame = frame.explode(BLOCK_COLUMN, ignore_index=True)
    frame[BLOCK_COLUMN] = frame[BLOCK_COLUMN].astype(np.int64)
    return frame


def keep_mask(frame: pd.DataFrame, cutoff: CutoffResult) -> np.ndarray:
    """Rows reported as matches.

    Confirmed matches are always kept. Unconfirmed pairs are kept when a
    cutoff is defined and their probability exceeds it.
    """
    label = frame[LABEL_COLUMN]
    keep = (label == str(Label.MATCH)).to_numpy(copy=True)
    if cutoff.is_defined:
        unconfirmed = ~label.isin([str(Label.MATCH), str(Label.NON_MATCH)]).to_numpy()
        above = (frame[PROBABILITY_COLUMN] > cutoff.cutoff).to_numpy()
        keep = keep | (unconfirmed & above)
    return keep


def assemble_output(
    blocking: BlockingResult,
    pairs: PairTable,
    probabilities: np.ndarray,
    store: LabelStore,
    cutoff: CutoffResult,
    *,
    by: str,
    blocking_variables: Sequence[str] = (),
    return_all_pairs: bool = False,
    logger: AuditLogger | None = None,
) -> pd.DataFrame:
    """Build the linked table.

    Parameters
    ----------
    blocking : BlockingResult
        Cleaned datasets with block ids.
    pairs : PairTable
        Candidate pair universe.
    probabilities : np.ndarray
        Final probability per pair-table row (confirmed labels substituted).
    store : LabelStore
        Labels collected during the run.
    cutoff : CutoffResult
        Selected cutoff.
    by : str
        Join field.
    blocking_variables : Sequence[str], optional
        Blocking fields, dropped from the B side.
    return_all_pairs : bool, optional
        Keep every candidate pair regardless of probability.
    logger : AuditLogger | None, optional
        Audit logger for observability events.

    Returns
    -------
    pd.DataFrame
        Dataset-A columns, then ``A``, ``B``, ``block``, features,
        ``match_probability``, ``label``, ``label_source``, then
        dataset-B columns (name collisions suffixed ``_B``).
    """
    start = time.perf_counter()
    if logger:
        logger.stage_started(STAGE_NAME, expected_items=len(blocking.data_a))

    scored = scored_pairs(pairs, probabilities, store)
    kept = scored if return_all_pairs else scored.loc[keep_mask(scored, cutoff)]
    pair_columns = list(scored.columns)

    linked = blocking.data_a.merge(
        kept,
        how="left",
        left_on=[by, BLOCK_COLUMN],
        right_on=["A", BLOCK_COLUMN],
        suffixes=("_A", ""),
    )
    a_columns = [c for c in linked.columns if c not in pair_columns]
    linked = linked[[*a_columns, *pair_columns]].astype({"B": object})

    b_side = blocking.data_b.drop(columns=list(blocking_variables))
    renames = {
        c: f"{c}_B"
        for c in b_side.columns
        if c not in (by, BLOCK_COLUMN) and c in linked.columns
    }
    renames[by] = "B"
    b_side = b_side.rename(columns=renames)
    linked = linked.merge(b_side, how="left", on=["B", BLOCK_COLUMN])

    if logger:
        matched = linked["B"].notna()
        logger.stage_finished(
            STAGE_NAME,
            duration_seconds=time.perf_counter() - start,
            counters={
                "rows": len(linked),
                "matched_rows": int(matched.sum()),
                "unmatched_rows": int((~matched).sum()),
                "kept_pairs": len(kept),
            },
        )
    return linked
