"""Recall search loop.

Looks for A items the active-learning loop left without a confident
match ("orphans") and labels their most uncertain candidates. The
classifier is not refitted here; only the label store grows.
"""

from __future__ import annotations

import time

import numpy as np
import pandas as pd

from fuzzylink.audit.logger import AuditLogger
from fuzzylink.decision.cutoff import select_cutoff
from fuzzylink.labels.models import Label, LabelSource
from fuzzylink.learning.models import RecallOutcome, StopReason
from fuzzylink.learning.sampling import uncertainty_weights, weighted_draw
from fuzzylink.learning.session import LabelingSession

STAGE_NAME = "recall_search"


def label_mask(labels: np.ndarray, label: Label) -> np.ndarray:
    """Boolean mask of rows holding ``label``."""
    return np.asarray([value == label for value in labels], dtype=bool)


def effective_probabilities(probabilities: np.ndarray, labels: np.ndarray) -> np.ndarray:
    """Probabilities with confirmed labels substituted (Match 1.0, NonMatch 0.0)."""
    effective = np.asarray(probabilities, dtype=np.float64).copy()
    effective[label_mask(labels, Label.MATCH)] = 1.0
    effective[label_mask(labels, Label.NON_MATCH)] = 0.0
    return effective


def orphan_rows(
    session: LabelingSession,
    probabilities: np.ndarray,
    threshold: float,
) -> np.ndarray:
    """Eligible candidate rows of every orphaned (block, A item).

    An A item is orphaned within a block when none of its candidates there
    is labeled Match and its best candidate probability is below
    ``threshold``.

    Returns
    -------
    np.ndarray
        Sorted, unique pair-table row positions still eligible for the oracle.
    """
    pairs = session.pairs
    if not pairs.block_rows:
        return np.empty(0, dtype=np.intp)

    labels = session.label_array()
    effective = effective_probabilities(probabilities, labels)
    is_match = label_mask(labels, Label.MATCH)
    eligible = session.eligible_mask()

    rows = np.concatenate(list(pairs.block_rows.values()))
    blocks = np.concatenate(
        [np.full(len(members), block_id) for block_id, members in pairs.block_rows.items()]
    )
    membership = pd.DataFrame(
        {
            "block": blocks,
            "A": pairs.items_a[rows],
            "row": rows,
            "p": np.nan_to_num(effective[rows], nan=0.0),
            "match": is_match[rows],
        }
    )
    best = membership.groupby(["block", "A"], sort=False).agg(p=("p", "max"), match=("match", "any"))
    orphans = best.loc[~best["match"] & (best["p"] < threshold)].index

    candidate = membership.set_index(["block", "A"]).index.isin(orphans)
    selected = membership.loc[candidate, "row"].to_numpy()
    selected = selected[eligible[selected]]
    return np.unique(selected).astype(np.intp)


def recall_search(
    session: LabelingSession,
    probabilities: np.ndarray,
    rng: np.random.Generator,
    logger: AuditLogger | None = None,
) -> RecallOutcome:
    """Label uncertain candidates of orphaned A items until none remain.

    Parameters
    ----------
    session : LabelingSession
        Oracle gateway and label store for the run.
    probabilities : np.ndarray
        Probabilities from the converged classifier.
    rng : np.random.Generator
        Random source for sampling.
    logger : AuditLogger | None, optional
        Audit logger for observability events.

    Returns
    -------
    RecallOutcome
        Iterations run, labels added and exit condition.
    """
    start = time.perf_counter()
    settings = session.settings
    outcome = RecallOutcome()
    if logger:
        logger.stage_started(STAGE_NAME)

    while True:
        budget = session.budget_remaining()
        if budget <= 0:
            outcome.stop_reason = StopReason.LABEL_CAP
            break

        cutoff = select_cutoff(probabilities, session.label_array(), settings.cutoff_range)
        threshold = cutoff.cutoff if cutoff.is_defined else settings.recall_cutoff_fallback

        candidates = orphan_rows(session, probabilities, threshold)
        weights = np.zeros(len(session.pairs))
        weights[candidates] = uncertainty_weights(probabilities[candidates], settings.kernel_sd)
        rows = weighted_draw(rng, weights, min(settings.batch_size, budget))
        if rows.size == 0:
            outcome.stop_reason = StopReason.NO_CANDIDATES
            break

        labels = session.query(rows, LabelSource.RECALL_SEARCH)
        matches = sum(label is Label.MATCH for label in labels)
        outcome.iterations += 1
        outcome.labels_added += len(labels)
        outcome.matches_found += matches

        if logger:
            logger.event(
                "recall_iteration",
                data={
                    "iteration": outcome.iterations,
                    "threshold": threshold,
                    "orphan_candidates": int(candidates.size),
                    "sampled": int(rows.size),
                    "matches": matches,
                },
            )

    if logger:
        logger.event("recall_stopped", data=outcome.to_dict())
        logger.stage_finished(
            STAGE_NAME,
            duration_seconds=time.perf_counter() - start,
            counters={
                "iterations": outcome.iterations,
                "labels_added": outcome.labels_added,
                "matches_found": outcome.matches_found,
            },
        )
    return outcome
