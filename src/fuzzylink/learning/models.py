"""Settings, states and summaries for the labeling loops."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any

import numpy as np

from fuzzylink.model.classifiers import MatchClassifier


class LearnerState(StrEnum):
    """Active-learning state machine.

    Attributes
    ----------
    BOOTSTRAPPING : str
        Labeling the initial sample and fitting the first model.
    REFINING : str
        Uncertainty sampling and refitting.
    CONVERGED : str
        Terminal state; the model is no longer refitted.
    """

    BOOTSTRAPPING = "bootstrapping"
    REFINING = "refining"
    CONVERGED = "converged"


class StopReason(StrEnum):
    """Why a labeling loop exited.

    Attributes
    ----------
    CONVERGED : str
        Mean probability change over the window fell below the threshold.
    NO_CANDIDATES : str
        No unlabeled pair had positive sampling weight.
    LABEL_CAP : str
        Oracle-confirmed labels reached ``max_labels``.
    MAX_ITERATIONS : str
        Iteration limit reached.
    NO_MODEL : str
        Every candidate pair was labeled before a model could be fitted.
    """

    CONVERGED = "converged"
    NO_CANDIDATES = "no_candidates"
    LABEL_CAP = "label_cap"
    MAX_ITERATIONS = "max_iterations"
    NO_MODEL = "no_model"


@dataclass(frozen=True)
class LearningSettings:
    """Parameters shared by bootstrapping, refining and recall search.

    Attributes
    ----------
    record_type : str
        Entity noun forwarded to the oracle.
    instructions : str | None
        Extra oracle guidance.
    initial_sample_size : int
        Bootstrap budget.
    batch_size : int
        Pairs per refining or recall iteration.
    kernel_sd : float
        Standard deviation of the uncertainty kernel.
    window : int
        Number of probability-change estimates averaged for convergence.
    stop_threshold : float | None
        Convergence threshold; None uses the classifier's default.
    max_labels : int
        Hard cap on oracle-confirmed labels for the whole run.
    max_iterations : int | None
        Refining iteration limit; None derives it from the label cap.
    recall_cutoff_fallback : float
        Orphan threshold while the expected-F1 cutoff is undefined.
    cutoff_range : tuple[float, float]
        Search range for the cutoff.
    """

    record_type: str = "entity"
    instructions: str | None = None
    initial_sample_size: int = 500
    batch_size: int = 100
    kernel_sd: float = 0.2
    window: int = 5
    stop_threshold: float | None = None
    max_labels: int = 10_000
    max_iterations: int | None = None
    recall_cutoff_fallback: float = 0.5
    cutoff_range: tuple[float, float] = (0.0, 1.0)

    @property
    def iteration_cap(self) -> int:
        """Refining iteration limit."""
        if self.max_iterations is not None:
            return self.max_iterations
        return math.ceil(self.max_labels / self.batch_size)

    def threshold_for(self, classifier: MatchClassifier) -> float:
        """Convergence threshold for a classifier family."""
        if self.stop_threshold is not None:
            return self.stop_threshold
        return classifier.stopping_threshold


@dataclass(frozen=True)
class IterationRecord:
    """One refining iteration."""

    iteration: int
    sampled: int
    matches: int
    gradient: float
    window_mean: float | None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass
class LearningOutcome:
    """Result of the active-learning loop.

    Attributes
    ----------
    model : MatchClassifier | None
        Final fitted classifier (None if every pair was labeled first).
    probabilities : np.ndarray
        Match probability per pair-table row from ``model``.
    state : LearnerState
        Final state.
    stop_reason : StopReason
        Exit condition.
    history : list[IterationRecord]
        Per-iteration diagnostics.
    bootstrap_labels : int
        Pairs sent to the oracle while bootstrapping (widening included).
    """

    model: MatchClassifier | None
    probabilities: np.ndarray
    state: LearnerState
    stop_reason: StopReason
    history: list[IterationRecord] = field(default_factory=list)
    bootstrap_labels: int = 0

    @property
    def iterations(self) -> int:
        """Refining iterations run."""
        return len(self.history)

    @property
    def converged(self) -> bool:
        """Whether the convergence criterion fired."""
        return self.stop_reason is StopReason.CONVERGED

    def to_dict(self) -> dict[str, Any]:
        """Summary without arrays."""
        return {
            "model": self.model.name if self.model is not None else None,
            "state": str(self.state),
            "stop_reason": str(self.stop_reason),
            "iterations": self.iterations,
            "bootstrap_labels": self.bootstrap_labels,
            "history": [record.to_dict() for record in self.history],
        }


@dataclass
class RecallOutcome:
    """Result of the recall search loop."""

    iterations: int = 0
    labels_added: int = 0
    matches_found: int = 0
    stop_reason: StopReason | None = None
    skipped: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = asdict(self)
        data["stop_reason"] = str(self.stop_reason) if self.stop_reason is not None else None
        return data
