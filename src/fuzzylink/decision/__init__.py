"""Expected-F1 cutoff selection."""

from fuzzylink.decision.cutoff import expected_f1_at, select_cutoff
from fuzzylink.decision.models import CutoffResult, CutoffStatus

__all__ = [
    "CutoffResult",
    "CutoffStatus",
    "expected_f1_at",
    "select_cutoff",
]
