"""Data models for cutoff selection."""

from dataclasses import asdict, dataclass
from enum import StrEnum
from typing import Any


class CutoffStatus(StrEnum):
    """Outcome of the expected-F1 search.

    Attributes
    ----------
    DEFINED : str
        A cutoff maximizing expected F1 was found.
    UNDEFINED : str
        No confirmed Match exists, so expected F1 is 0/0 at every cutoff.
    """

    DEFINED = "defined"
    UNDEFINED = "undefined"


@dataclass(frozen=True)
class CutoffResult:
    """Selected match-probability cutoff and its expected quality.

    Unlabeled pairs are reported as matches when their probability is
    strictly greater than ``cutoff``.

    Attributes
    ----------
    status : CutoffStatus
        Whether a cutoff could be computed.
    cutoff : float | None
        Selected threshold; None when undefined.
    expected_f1 : float | None
        Expected F1 at the cutoff.
    expected_precision : float | None
        Expected precision at the cutoff.
    expected_recall : float | None
        Expected recall at the cutoff.
    confirmed_matches : int
        Confirmed Match labels used as the true-positive base.
    unlabeled_pairs : int
        Pairs contributing their probability to the estimate.
    """

    status: CutoffStatus
    cutoff: float | None
    expected_f1: float | None
    expected_precision: float | None
    expected_recall: float | None
    confirmed_matches: int
    unlabeled_pairs: int

    @property
    def is_defined(self) -> bool:
        """Whether ``cutoff`` can be used to filter pairs."""
        return self.status is CutoffStatus.DEFINED

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = asdict(self)
        data["status"] = str(self.status)
        return data
