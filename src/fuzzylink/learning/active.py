"""Active learning loop.

Bootstraps a classifier from each A item's most similar candidate, then
repeatedly labels the pairs the model is least certain about and refits
until the predicted probabilities stop moving.
"""

from __future__ import annotations

import time
from collections import deque

import numpy as np
import pandas as pd

from fuzzylink.audit.logger import AuditLogger
from fuzzylink.errors import InsufficientLabels, ModelFitError
from fuzzylink.features.builder import EMBEDDING_FEATURE
from fuzzylink.labels.models import Label, LabelSource
from fuzzylink.learning.models import (
    IterationRecord,
    LearnerState,
    LearningOutcome,
    StopReason,
)
from fuzzylink.learning.sampling import uncertainty_weights, weighted_draw
from fuzzylink.learning.session import LabelingSession
from fuzzylink.model.classifiers import MatchClassifier

STAGE_NAME = "active_learning"


def bootstrap_rows(
    session: LabelingSession,
    size: int,
    rng: np.random.Generator,
) -> np.ndarray:
    """Pick the initial sample: one top-similarity candidate per A item.

    Each A item contributes its highest-similarity pair that is still
    eligible. When there are more A items than ``size``, a random subset
    of them is kept.

    Returns
    -------
    np.ndarray
        Sorted pair-table row positions.
    """
    eligible = session.eligible_mask()
    if size <= 0 or not eligible.any():
        return np.empty(0, dtype=np.intp)

    pairs = session.pairs
    candidates = pd.DataFrame(
        {
            "A": pairs.items_a,
            "sim": pairs.frame[EMBEDDING_FEATURE].to_numpy(),
            "row": np.arange(len(pairs)),
        }
    ).loc[eligible]
    best = (
        candidates.sort_values(["sim", "row"], ascending=[False, True], kind="stable")
        .drop_duplicates("A")["row"]
        .to_numpy()
    )
    best = np.sort(best)
    if best.size > size:
        best = np.sort(rng.choice(best, size=size, replace=False))
    return best.astype(np.intp)


class ActiveLearner:
    """Drives the Bootstrapping -> Refining -> Converged state machine.

    Parameters
    ----------
    session : LabelingSession
        Oracle gateway and label store for the run.
    classifier : MatchClassifier
        Unfitted classifier of the configured family.
    rng : np.random.Generator
        Random source for all sampling.
    logger : AuditLogger | None, optional
        Audit logger for observability events.
    """

    def __init__(
        self,
        session: LabelingSession,
        classifier: MatchClassifier,
        rng: np.random.Generator,
        logger: AuditLogger | None = None,
    ) -> None:
        self.session = session
        self.classifier = classifier
        self.rng = rng
        self.logger = logger
        self.settings = session.settings
        self.state = LearnerState.BOOTSTRAPPING
        self._X = session.pairs.features(classifier.feature_names)

    def run(self) -> LearningOutcome:
        """Run the loop to completion.

        Returns
        -------
        LearningOutcome
            Final model, probabilities and diagnostics.

        Raises
        ------
        ModelFitError
            If no model can be fitted and some pairs remain unlabeled.
        """
        start = time.perf_counter()
        if self.logger:
            self.logger.stage_started(STAGE_NAME, expected_items=len(self.session.pairs))

        calls_before = self.session.oracle_calls
        model = self._bootstrap()
        bootstrap_labels = self.session.oracle_calls - calls_before

        if model is None:
            outcome = LearningOutcome(
                model=None,
                probabilities=np.full(len(self.session.pairs), np.nan),
                state=LearnerState.CONVERGED,
                stop_reason=StopReason.NO_MODEL,
                bootstrap_labels=bootstrap_labels,
            )
        else:
            outcome = self._refine(model)
            outcome.bootstrap_labels = bootstrap_labels

        self.state = outcome.state
        if self.logger:
            self.logger.event(
                "learning_stopped",
                data={
                    "stop_reason": str(outcome.stop_reason),
                    "iterations": outcome.iterations,
                    "oracle_labels": self.session.store.oracle_confirmed_count(),
                },
            )
            self.logger.stage_finished(
                STAGE_NAME,
                duration_seconds=time.perf_counter() - start,
                counters={
                    "iterations": outcome.iterations,
                    "bootstrap_labels": bootstrap_labels,
                    "oracle_calls": self.session.oracle_calls - calls_before,
                },
            )
        return outcome

    # ------------------------------------------------------------------
    # Bootstrapping
    # ------------------------------------------------------------------

    def _bootstrap(self) -> MatchClassifier | None:
        size = min(self.settings.initial_sample_size, self.session.budget_remaining())
        rows = bootstrap_rows(self.session, size, self.rng)
        labels = self.session.query(rows, LabelSource.INITIAL_SAMPLE)
        if self.logger:
            self.logger.event(
                "bootstrap_labeled",
                data={
                    "sampled": len(labels),
                    "matches": sum(label is Label.MATCH for label in labels),
                    "unknown": sum(label is Label.UNKNOWN for label in labels),
                },
            )
        return self._fit_with_widening()

    def _fit_with_widening(self) -> MatchClassifier | None:
        """Fit, labeling extra pairs from the informative end on InsufficientLabels."""
        batch = self.settings.batch_size
        sims = self.session.pairs.frame[EMBEDDING_FEATURE].to_numpy()
        attempt = 0

        while True:
            X, y = self.session.store.training_data(self.classifier.feature_names)
            try:
                return self.classifier.fit(X, y)
            except InsufficientLabels as exc:
                eligible = np.flatnonzero(self.session.eligible_mask())
                size = min(batch, eligible.size, self.session.budget_remaining())
                if size == 0:
                    if self.session.all_confirmed():
                        return None
                    raise ModelFitError(
                        "Could not fit a classifier: the oracle never returned both "
                        "Match and NonMatch labels before the candidate pool or the "
                        "label budget was exhausted"
                    ) from exc

                has_match = bool((y == 1).any())
                order = np.argsort(sims[eligible], kind="stable")
                if not has_match:
                    order = order[::-1]
                rows = np.sort(eligible[order[:size]])

                attempt += 1
                if self.logger:
                    self.logger.warning(
                        "fit_widened",
                        data={
                            "attempt": attempt,
                            "batch": int(rows.size),
                            "missing_class": "NonMatch" if has_match else "Match",
                        },
                    )
                self.session.query(rows, LabelSource.INITIAL_SAMPLE)
                batch *= 2

    # ------------------------------------------------------------------
    # Refining
    # ------------------------------------------------------------------

    def _refine(self, model: MatchClassifier) -> LearningOutcome:
        self.state = LearnerState.REFINING
        threshold = self.settings.threshold_for(model)
        probabilities = model.predict(self._X)
        window: deque[float] = deque(maxlen=self.settings.window)
        history: list[IterationRecord] = []
        stop_reason = StopReason.MAX_ITERATIONS

        for iteration in range(1, self.settings.iteration_cap + 1):
            budget = self.session.budget_remaining()
            if budget <= 0:
                stop_reason = StopReason.LABEL_CAP
                break

            weights = uncertainty_weights(probabilities, self.settings.kernel_sd)
            weights[~self.session.eligible_mask()] = 0.0
            rows = weighted_draw(self.rng, weights, min(self.settings.batch_size, budget))
            if rows.size == 0:
                stop_reason = StopReason.NO_CANDIDATES
                break

            labels = self.session.query(rows, LabelSource.ACTIVE_LEARNING)
            X, y = self.session.store.training_data(model.feature_names)
            model = model.fit(X, y)
            updated = model.predict(self._X)

            if model.gradient_over_unlabeled:
                scope = self.session.unconfirmed_mask()
            else:
                scope = np.ones(len(updated), dtype=bool)
            gradient = float(np.abs(updated - probabilities)[scope].max()) if scope.any() else 0.0
            probabilities = updated
            window.append(gradient)

            window_mean = float(np.mean(window)) if len(window) == window.maxlen else None
            record = IterationRecord(
                iteration=iteration,
                sampled=int(rows.size),
                matches=sum(label is Label.MATCH for label in labels),
                gradient=gradient,
                window_mean=window_mean,
            )
            history.append(record)
            if self.logger:
                self.logger.event("iteration_finished", data=record.to_dict())

            if window_mean is not None and window_mean < threshold:
                stop_reason = StopReason.CONVERGED
                break

        return LearningOutcome(
            model=model,
            probabilities=probabilities,
            state=LearnerState.CONVERGED,
            stop_reason=stop_reason,
            history=history,
        )
