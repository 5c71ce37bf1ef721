"""Expected-F1 cutoff selection.

Confirmed labels count as known outcomes; every unlabeled pair counts as
``p`` expected true matches and ``1 - p`` expected non-matches. For a
cutoff ``t`` (pairs with ``p > t`` are reported):

    TP(t) = M + sum(p_i for unlabeled p_i > t)
    FP(t) = sum(1 - p_i for unlabeled p_i > t)
    FN(t) = sum(p_i for unlabeled p_i <= t)

where ``M`` is the number of confirmed matches. Confirmed non-matches are
never reported and contribute nothing.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from fuzzylink.audit.logger import AuditLogger
from fuzzylink.decision.models import CutoffResult, CutoffStatus
from fuzzylink.labels.models import Label

STAGE_NAME = "cutoff"


def select_cutoff(
    probabilities: np.ndarray,
    labels: Sequence[Label | None] | np.ndarray,
    cutoff_range: tuple[float, float] = (0.0, 1.0),
    logger: AuditLogger | None = None,
) -> CutoffResult:
    """Find the probability cutoff maximizing expected F1.

    Parameters
    ----------
    probabilities : np.ndarray
        Current match probability per pair.
    labels : Sequence[Label | None] | np.ndarray
        Label per pair; None or ``Label.UNKNOWN`` for unconfirmed pairs.
    cutoff_range : tuple[float, float], optional
        Inclusive range of admissible cutoffs.
    logger : AuditLogger | None, optional
        Audit logger for observability events.

    Returns
    -------
    CutoffResult
        ``status=UNDEFINED`` and ``cutoff=None`` when no confirmed Match
        exists. Ties are broken towards the highest cutoff.

    Raises
    ------
    ValueError
        If the inputs have different lengths or the range is invalid.
    """
    low, high = cutoff_range
    if not 0.0 <= low <= high <= 1.0:
        raise ValueError(f"cutoff_range must satisfy 0 <= low <= high <= 1, got {cutoff_range}")

    probabilities = np.asarray(probabilities, dtype=np.float64)
    labels = list(labels)
    if len(labels) != probabilities.size:
        raise ValueError(f"Got {len(labels)} labels for {probabilities.size} probabilities")

    confirmed_match = np.asarray([label == Label.MATCH for label in labels], dtype=bool)
    confirmed = np.asarray(
        [label is not None and Label(label).is_confirmed for label in labels], dtype=bool
    )
    matches = int(confirmed_match.sum())
    unlabeled = np.sort(probabilities[~confirmed])

    if matches == 0:
        result = CutoffResult(
            status=CutoffStatus.UNDEFINED,
            cutoff=None,
            expected_f1=None,
            expected_precision=None,
            expected_recall=None,
            confirmed_matches=0,
            unlabeled_pairs=int(unlabeled.size),
        )
        if logger:
            logger.warning(
                "cutoff_undefined",
                data={"reason": "no confirmed matches", "unlabeled_pairs": result.unlabeled_pairs},
            )
        return result

    if np.isnan(unlabeled).any():
        raise ValueError("Unlabeled pairs must have a probability")

    thresholds = np.unique(np.concatenate([unlabeled, [low, high]]))
    thresholds = thresholds[(thresholds >= low) & (thresholds <= high)]

    cum_p = np.concatenate([[0.0], np.cumsum(unlabeled)])
    cum_q = np.concatenate([[0.0], np.cumsum(1.0 - unlabeled)])
    at_or_below = np.searchsorted(unlabeled, thresholds, side="right")

    fn = cum_p[at_or_below]
    tp = matches + (cum_p[-1] - fn)
    fp = cum_q[-1] - cum_q[at_or_below]
    f1 = 2.0 * tp / (2.0 * tp + fp + fn)

    best = int(np.flatnonzero(f1 >= f1.max() - 1e-12)[-1])
    result = CutoffResult(
        status=CutoffStatus.DEFINED,
        cutoff=float(thresholds[best]),
        expected_f1=float(f1[best]),
        expected_precision=float(tp[best] / (tp[best] + fp[best])),
        expected_recall=float(tp[best] / (tp[best] + fn[best])),
        confirmed_matches=matches,
        unlabeled_pairs=int(unlabeled.size),
    )
    if logger:
        logger.event("cutoff_selected", data=result.to_dict())
    return result


def expected_f1_at(
    probabilities: np.ndarray,
    labels: Sequence[Label | None] | np.ndarray,
    cutoff: float,
) -> float | None:
    """Expected F1 of a given cutoff, or None when undefined."""
    probabilities = np.asarray(probabilities, dtype=np.float64)
    labels = list(labels)
    matches = sum(label == Label.MATCH for label in labels)
    if matches == 0:
        return None
    confirmed = np.asarray(
        [label is not None and Label(label).is_confirmed for label in labels], dtype=bool
    )
    unlabeled = probabilities[~confirmed]
    above = unlabeled > cutoff
    tp = matches + unlabeled[above].sum()
    fp = (1.0 - unlabeled[above]).sum()
    fn = unlabeled[~above].sum()
    return float(2.0 * tp / (2.0 * tp + fp + fn))
