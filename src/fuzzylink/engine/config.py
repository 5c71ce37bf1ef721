"""Linkage configuration and result dataclasses."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

import numpy as np
import pandas as pd

from fuzzylink.blocking.models import BlockingStats
from fuzzylink.decision.models import CutoffResult
from fuzzylink.errors import ConfigurationError
from fuzzylink.features.builder import EMBEDDING_FEATURE, PairTable
from fuzzylink.features.lexical import METRICS
from fuzzylink.labels.store import LabelStore
from fuzzylink.learning.models import LearningOutcome, LearningSettings, RecallOutcome
from fuzzylink.model.factory import CLASSIFIER_REGISTRY, create_classifier


@dataclass
class LinkageConfig:
    """Configuration for one linkage run.

    Attributes
    ----------
    by : str
        Join field holding the strings to match.
    blocking_variables : list[str] | None
        Fields that must agree exactly for two rows to be compared.
    record_type : str
        Singular noun describing the entities, forwarded to the oracle.
    instructions : str | None
        Extra guidance appended to the oracle prompt.
    classifier : str
        Classifier family: 'logistic' or 'forest'.
    metrics : list[str] | None
        Lexical metrics to compute. None computes every registered metric.
    initial_sample_size : int
        Bootstrap budget (default: 500).
    batch_size : int
        Pairs labeled per refining or recall iteration (default: 100).
    kernel_sd : float
        Standard deviation of the uncertainty kernel (default: 0.2).
    window : int
        Iterations averaged by the convergence test (default: 5).
    stop_threshold : float | None
        Convergence threshold. If None, the classifier family's default.
    max_labels : int
        Hard cap on oracle-confirmed labels (default: 10,000).
    max_iterations : int | None
        Refining iteration limit. If None, ceil(max_labels / batch_size).
    recall_search : bool
        Run the recall search after active learning.
    recall_cutoff_fallback : float
        Orphan threshold while no cutoff can be computed.
    cutoff_range : tuple[float, float]
        Range searched for the expected-F1 cutoff.
    return_all_pairs : bool
        Return every scored candidate pair instead of only matches.
    seed : int | None
        Seed for all random sampling.
    """

    by: str
    blocking_variables: list[str] | None = None
    record_type: str = "entity"
    instructions: str | None = None
    classifier: str = "logistic"
    metrics: list[str] | None = None
    initial_sample_size: int = 500
    batch_size: int = 100
    kernel_sd: float = 0.2
    window: int = 5
    stop_threshold: float | None = None
    max_labels: int = 10_000
    max_iterations: int | None = None
    recall_search: bool = True
    recall_cutoff_fallback: float = 0.5
    cutoff_range: tuple[float, float] = (0.0, 1.0)
    return_all_pairs: bool = False
    seed: int | None = None

    def __post_init__(self) -> None:
        """Normalize and validate."""
        self.blocking_variables = list(self.blocking_variables or [])
        self.cutoff_range = (float(self.cutoff_range[0]), float(self.cutoff_range[1]))

        if not self.by:
            raise ConfigurationError("A join field ('by') is required")

        if self.classifier not in CLASSIFIER_REGISTRY:
            valid = ", ".join(sorted(CLASSIFIER_REGISTRY))
            raise ConfigurationError(
                f"Unknown classifier: {self.classifier!r}. Valid classifiers: {valid}"
            )

        if self.metrics is not None:
            self.metrics = list(self.metrics)
            unknown = [m for m in self.metrics if m not in METRICS]
            if unknown:
                raise ConfigurationError(f"Unknown lexical metric(s): {unknown}")

        missing = set(create_classifier(self.classifier).feature_names) - set(
            self.feature_names
        )
        if missing:
            raise ConfigurationError(
                f"Classifier {self.classifier!r} needs feature(s) {sorted(missing)} "
                "that are not among the configured metrics"
            )

        for name in ("initial_sample_size", "batch_size", "window", "max_labels"):
            if getattr(self, name) < 1:
                raise ConfigurationError(f"{name} must be >= 1, got {getattr(self, name)}")

        if self.max_iterations is not None and self.max_iterations < 0:
            raise ConfigurationError(f"max_iterations must be >= 0, got {self.max_iterations}")

        if self.kernel_sd <= 0:
            raise ConfigurationError(f"kernel_sd must be positive, got {self.kernel_sd}")

        if self.stop_threshold is not None and self.stop_threshold < 0:
            raise ConfigurationError(f"stop_threshold must be >= 0, got {self.stop_threshold}")

        if not 0.0 <= self.recall_cutoff_fallback <= 1.0:
            raise ConfigurationError(
                f"recall_cutoff_fallback must be in [0, 1], got {self.recall_cutoff_fallback}"
            )

        low, high = self.cutoff_range
        if not 0.0 <= low <= high <= 1.0:
            raise ConfigurationError(
                f"cutoff_range must satisfy 0 <= low <= high <= 1, got {self.cutoff_range}"
            )

    @property
    def feature_names(self) -> tuple[str, ...]:
        """Feature columns computed for every pair."""
        metrics = self.metrics if self.metrics is not None else list(METRICS)
        return (EMBEDDING_FEATURE, *metrics)

    def learning_settings(self) -> LearningSettings:
        """Parameters for the labeling loops."""
        return LearningSettings(
            record_type=self.record_type,
            instructions=self.instructions,
            initial_sample_size=self.initial_sample_size,
            batch_size=self.batch_size,
            kernel_sd=self.kernel_sd,
            window=self.window,
            stop_threshold=self.stop_threshold,
            max_labels=self.max_labels,
            max_iterations=self.max_iterations,
            recall_cutoff_fallback=self.recall_cutoff_fallback,
            cutoff_range=self.cutoff_range,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = asdict(self)
        data["cutoff_range"] = list(self.cutoff_range)
        return data


@dataclass
class LinkageResult:
    """Results from a linkage run.

    Attributes
    ----------
    data : pd.DataFrame
        Dataset A left-joined to matched pairs and dataset B.
    cutoff : CutoffResult
        Selected expected-F1 cutoff.
    labels : LabelStore
        Every label collected during the run.
    pairs : PairTable
        Candidate pair universe with features.
    probabilities : np.ndarray
        Final match probability per pair-table row.
    blocking : BlockingStats
        Blocking counters.
    learning : LearningOutcome | None
        Active-learning diagnostics (None when there were no pairs).
    recall : RecallOutcome | None
        Recall-search diagnostics (None when skipped).
    oracle_calls : int
        Pairs sent to the oracle.
    labels_total : int
        Oracle-confirmed (Match or NonMatch) labels.
    """

    data: pd.DataFrame
    cutoff: CutoffResult
    labels: LabelStore
    pairs: PairTable
    probabilities: np.ndarray
    blocking: BlockingStats
    learning: LearningOutcome | None = None
    recall: RecallOutcome | None = None
    oracle_calls: int = 0
    labels_total: int = 0

    def to_dict(self) -> dict[str, Any]:
        """JSON-serializable run summary (tables excluded)."""
        return {
            "rows": len(self.data),
            "candidate_pairs": len(self.pairs),
            "blocking": self.blocking.to_dict(),
            "cutoff": self.cutoff.to_dict(),
            "learning": self.learning.to_dict() if self.learning is not None else None,
            "recall": self.recall.to_dict() if self.recall is not None else None,
            "oracle_calls": self.oracle_calls,
            "labels_total": self.labels_total,
        }
