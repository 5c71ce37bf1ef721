"""Oracle-driven labeling loops.

Main Components
---------------
- LabelingSession: the single writer of oracle labels
- ActiveLearner: bootstrap, uncertainty sampling, convergence
- recall_search: item-centric search for unmatched A items
- uncertainty_weights / weighted_draw: Gaussian uncertainty kernel
"""

from fuzzylink.learning.active import ActiveLearner, bootstrap_rows
from fuzzylink.learning.models import (
    IterationRecord,
    LearnerState,
    LearningOutcome,
    LearningSettings,
    RecallOutcome,
    StopReason,
)
from fuzzylink.learning.recall import effective_probabilities, orphan_rows, recall_search
from fuzzylink.learning.sampling import uncertainty_weights, weighted_draw
from fuzzylink.learning.session import LabelingSession

__all__ = [
    "ActiveLearner",
    "IterationRecord",
    "LabelingSession",
    "LearnerState",
    "LearningOutcome",
    "LearningSettings",
    "RecallOutcome",
    "StopReason",
    "bootstrap_rows",
    "effective_probabilities",
    "orphan_rows",
    "recall_search",
    "uncertainty_weights",
    "weighted_draw",
]
