"""Labels and the versioned label store."""

from fuzzylink.labels.models import Label, LabelEntry, LabelSource
from fuzzylink.labels.store import LabelStore

__all__ = [
    "Label",
    "LabelEntry",
    "LabelSource",
    "LabelStore",
]
