"""Label vocabulary and label-store entries."""

from dataclasses import dataclass
from enum import StrEnum


class Label(StrEnum):
    """Outcome of validating a candidate pair.

    Attributes
    ----------
    MATCH : str
        Both items refer to the same entity.
    NON_MATCH : str
        The items refer to different entities.
    UNKNOWN : str
        The oracle answered but its response could not be normalized.
    """

    MATCH = "Match"
    NON_MATCH = "NonMatch"
    UNKNOWN = "Unknown"

    @property
    def is_confirmed(self) -> bool:
        """Whether the label can be trained on and reported."""
        return self is not Label.UNKNOWN


class LabelSource(StrEnum):
    """Where a label came from.

    Attributes
    ----------
    EXACT : str
        Identical strings, labeled without an oracle call.
    INITIAL_SAMPLE : str
        Bootstrap sample, including widened batches.
    ACTIVE_LEARNING : str
        Uncertainty sampling while refining the classifier.
    RECALL_SEARCH : str
        Item-centric search for unmatched A items.
    """

    EXACT = "exact"
    INITIAL_SAMPLE = "initial-sample"
    ACTIVE_LEARNING = "active-learning"
    RECALL_SEARCH = "recall-search"


@dataclass(frozen=True)
class LabelEntry:
    """One labeled candidate pair.

    Attributes
    ----------
    item_a : str
        Join-field value from dataset A.
    item_b : str
        Join-field value from dataset B.
    features : tuple[float, ...]
        Feature vector aligned with the store's feature names.
    label : Label
        Validation outcome.
    source : LabelSource
        Phase that produced the label.
    version : int
        Store version at the time of insertion.
    """

    item_a: str
    item_b: str
    features: tuple[float, ...]
    label: Label
    source: LabelSource
    version: int

    @property
    def key(self) -> tuple[str, str]:
        """Pair identity."""
        return (self.item_a, self.item_b)
