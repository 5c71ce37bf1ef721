"""Tests for the active learning loop."""

from collections import Counter
from dataclasses import dataclass, replace
from typing import ClassVar

import numpy as np
import pandas as pd
import pytest

from fuzzylink.errors import ModelFitError
from fuzzylink.features import EMBEDDING_FEATURE
from fuzzylink.labels import Label, LabelSource
from fuzzylink.learning import (
    ActiveLearner,
    LabelingSession,
    LearnerState,
    LearningSettings,
    StopReason,
    bootstrap_rows,
)
from fuzzylink.model import ForestMatchClassifier, LogisticMatchClassifier, create_classifier


def _learner(session, classifier: str = "logistic", seed: int = 0) -> ActiveLearner:
    return ActiveLearner(
        session, create_classifier(classifier, seed=seed), np.random.default_rng(seed)
    )


@dataclass(frozen=True)
class FlippingClassifier:
    """Predicts 0.5 on unconfirmed pairs; confirmed pairs alternate 0.9 and 0.1 per fit."""

    name: ClassVar[str] = "flipping"
    feature_names: ClassVar[tuple[str, ...]] = ("sim", "jw")

    session: LabelingSession
    gradient_over_unlabeled: bool = False
    stopping_threshold: float = 0.01
    fits: int = 0

    @property
    def is_fitted(self) -> bool:
        return self.fits > 0

    def fit(self, X: np.ndarray, y: np.ndarray) -> "FlippingClassifier":
        return replace(self, fits=self.fits + 1)

    def predict(self, X: np.ndarray) -> np.ndarray:
        p = np.full(X.shape[0], 0.5)
        p[~self.session.unconfirmed_mask()] = 0.9 if self.fits % 2 else 0.1
        return p


# ---------------------------------------------------------------------------
# Bootstrapping
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_bootstrap_takes_best_candidate_per_item(make_session, make_oracle, people) -> None:
    """Test each A item contributes its most similar eligible candidate."""
    df_a, df_b, matches = people
    session = make_session(df_a, df_b, make_oracle(matches), ["state"])

    rows = bootstrap_rows(session, size=500, rng=np.random.default_rng(0))

    pairs = session.pairs
    sims = pairs.frame[EMBEDDING_FEATURE].to_numpy()
    eligible = session.eligible_mask()
    assert sorted(pairs.items_a[rows]) == sorted(df_a["name"])
    for row in rows:
        same_item = eligible & (pairs.items_a == pairs.items_a[row])
        assert sims[row] == sims[same_item].max()
    assert not pairs.exact_mask[rows].any()


@pytest.mark.unit
def test_bootstrap_subsamples_items_over_budget(make_session, make_oracle, people) -> None:
    """Test the sample is capped at the bootstrap budget, one row per item."""
    df_a, df_b, matches = people
    session = make_session(df_a, df_b, make_oracle(matches), ["state"])

    rows = bootstrap_rows(session, size=3, rng=np.random.default_rng(0))

    assert rows.size == 3
    assert len(set(session.pairs.items_a[rows])) == 3


# ---------------------------------------------------------------------------
# Full loop
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.parametrize("classifier", ["logistic", "forest"])
def test_run_fits_a_model_and_labels_with_sources(
    make_session, make_oracle, people, classifier: str
) -> None:
    """Test a run ends converged with a fitted model and tagged labels."""
    df_a, df_b, matches = people
    oracle = make_oracle(matches)
    session = make_session(df_a, df_b, oracle, ["state"], batch_size=2, window=2)

    outcome = _learner(session, classifier).run()

    assert outcome.model is not None
    assert outcome.model.is_fitted
    assert outcome.state is LearnerState.CONVERGED
    assert outcome.stop_reason in set(StopReason) - {StopReason.NO_MODEL}
    assert outcome.probabilities.shape == (len(session.pairs),)
    assert np.all((outcome.probabilities >= 0.0) & (outcome.probabilities <= 1.0))
    assert outcome.bootstrap_labels >= len(df_a)

    sources = {entry.source for entry in session.store}
    assert LabelSource.INITIAL_SAMPLE in sources
    assert LabelSource.EXACT in sources


@pytest.mark.unit
def test_oracle_never_sees_exact_or_repeated_pairs(make_session, make_oracle, people) -> None:
    """Test every oracle query is a fresh, non-identical pair."""
    df_a, df_b, matches = people
    oracle = make_oracle(matches)
    session = make_session(df_a, df_b, oracle, ["state"], batch_size=2)

    _learner(session).run()

    asked = oracle.asked
    assert all(a != b for a, b in asked)
    assert max(Counter(asked).values()) == 1
    assert session.oracle_calls == len(asked)


@pytest.mark.unit
def test_labels_come_only_from_oracle_or_exact(make_session, make_oracle, people) -> None:
    """Test every confirmed label was produced by the oracle or the exact rule."""
    df_a, df_b, matches = people
    oracle = make_oracle(matches)
    session = make_session(df_a, df_b, oracle, ["state"], batch_size=2)

    _learner(session).run()

    asked = set(oracle.asked)
    for entry in session.store:
        if entry.source is LabelSource.EXACT:
            assert entry.item_a == entry.item_b
        else:
            assert entry.key in asked
            expected = Label.MATCH if entry.key in set(matches) else Label.NON_MATCH
            assert entry.label is expected


@pytest.mark.unit
def test_max_iterations_zero_skips_refining(make_session, make_oracle, people) -> None:
    """Test an iteration limit of zero stops right after bootstrapping."""
    df_a, df_b, matches = people
    session = make_session(
        df_a, df_b, make_oracle(matches), ["state"], batch_size=2, max_iterations=0
    )

    outcome = _learner(session).run()

    assert outcome.iterations == 0
    assert outcome.stop_reason is StopReason.MAX_ITERATIONS
    assert outcome.model is not None


@pytest.mark.unit
def test_label_cap_bounds_oracle_labels(make_session, make_oracle, people) -> None:
    """Test the confirmed-label cap is never exceeded."""
    df_a, df_b, matches = people
    session = make_session(
        df_a, df_b, make_oracle(matches), ["state"], batch_size=2, max_labels=12
    )

    outcome = _learner(session).run()

    assert session.store.oracle_confirmed_count() <= 12
    assert outcome.stop_reason in {StopReason.LABEL_CAP, StopReason.NO_CANDIDATES}


@pytest.mark.unit
def test_history_records_gradients(make_session, make_oracle, people) -> None:
    """Test each refining iteration records a probability change."""
    df_a, df_b, matches = people
    session = make_session(df_a, df_b, make_oracle(matches), ["state"], batch_size=1, window=2)

    outcome = _learner(session).run()

    for record in outcome.history:
        assert 0.0 <= record.gradient <= 1.0
        assert record.sampled == 1
    for record in outcome.history[1:]:
        assert record.window_mean is not None
    if outcome.stop_reason is StopReason.CONVERGED:
        assert outcome.history[-1].window_mean < 0.01


@pytest.mark.unit
@pytest.mark.parametrize("window", [1, 3])
def test_converges_once_window_fills(make_session, make_oracle, people, window: int) -> None:
    """Test a model that stops moving converges exactly when the window fills."""
    df_a, df_b, matches = people
    session = make_session(df_a, df_b, make_oracle(matches), batch_size=2, window=window)
    model = FlippingClassifier(session, gradient_over_unlabeled=True)

    outcome = ActiveLearner(session, model, np.random.default_rng(0)).run()

    assert outcome.stop_reason is StopReason.CONVERGED
    assert outcome.converged
    assert outcome.iterations == window
    assert [r.window_mean is None for r in outcome.history] == [True] * (window - 1) + [False]
    assert outcome.history[-1].window_mean < model.stopping_threshold


@pytest.mark.unit
def test_logistic_run_converges_under_loose_threshold(make_session, make_oracle, people) -> None:
    """Test a real classifier converges after the window fills, not before."""
    df_a, df_b, matches = people
    session = make_session(
        df_a, df_b, make_oracle(matches), batch_size=2, window=3, kernel_sd=5.0, stop_threshold=1.01
    )

    outcome = _learner(session, seed=1).run()

    assert outcome.stop_reason is StopReason.CONVERGED
    assert len(outcome.history) == 3
    assert outcome.history[0].window_mean is None
    assert outcome.history[1].window_mean is None
    assert outcome.history[-1].window_mean < 1.01


# ---------------------------------------------------------------------------
# Convergence scope
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_gradient_over_unlabeled_ignores_confirmed_rows(make_session, make_oracle, people) -> None:
    """Test changes on labeled pairs do not count when measuring over unlabeled pairs."""
    df_a, df_b, matches = people
    session = make_session(df_a, df_b, make_oracle(matches), batch_size=2, max_iterations=4)
    model = FlippingClassifier(session, gradient_over_unlabeled=True)

    outcome = ActiveLearner(session, model, np.random.default_rng(0)).run()

    assert outcome.stop_reason is StopReason.MAX_ITERATIONS
    assert [r.gradient for r in outcome.history] == [0.0] * 4


@pytest.mark.unit
def test_gradient_over_all_rows_sees_confirmed_changes(make_session, make_oracle, people) -> None:
    """Test flipping labeled-pair probabilities moves the gradient over all rows."""
    df_a, df_b, matches = people
    session = make_session(df_a, df_b, make_oracle(matches), batch_size=2, max_iterations=4)
    model = FlippingClassifier(session, gradient_over_unlabeled=False)

    outcome = ActiveLearner(session, model, np.random.default_rng(0)).run()

    assert outcome.stop_reason is StopReason.MAX_ITERATIONS
    assert [r.gradient for r in outcome.history] == pytest.approx([0.8] * 4)


@pytest.mark.unit
def test_threshold_follows_classifier_family() -> None:
    """Test the forest uses a looser default threshold than logistic regression."""
    settings = LearningSettings()

    assert settings.threshold_for(LogisticMatchClassifier()) == 0.01
    assert settings.threshold_for(ForestMatchClassifier()) == 0.1
    assert LearningSettings(stop_threshold=0.05).threshold_for(ForestMatchClassifier()) == 0.05


# ---------------------------------------------------------------------------
# Degenerate label sets
# ---------------------------------------------------------------------------


@pytest.fixture
def tiny() -> tuple[pd.DataFrame, pd.DataFrame]:
    return pd.DataFrame({"name": ["Ann", "Bob"]}), pd.DataFrame({"name": ["Anne", "Rob"]})


@pytest.mark.unit
def test_single_class_widens_then_gives_up_without_model(make_session, make_oracle, tiny) -> None:
    """Test an all-Match oracle labels every pair and yields no model."""
    oracle = make_oracle(default=Label.MATCH)
    session = make_session(*tiny, oracle)

    outcome = _learner(session).run()

    assert outcome.model is None
    assert outcome.stop_reason is StopReason.NO_MODEL
    assert np.isnan(outcome.probabilities).all()
    assert session.all_confirmed()
    assert len(oracle.asked) == 4


@pytest.mark.unit
def test_widening_supplies_missing_class(make_session, make_oracle, tiny) -> None:
    """Test a single-class bootstrap is widened until both classes exist."""
    oracle = make_oracle(matches=[("Ann", "Anne"), ("Bob", "Rob")])
    session = make_session(*tiny, oracle, batch_size=1)

    outcome = _learner(session).run()

    assert outcome.model is not None
    assert session.store.count(label=Label.NON_MATCH) >= 1
    assert session.store.count(label=Label.MATCH) >= 1


@pytest.mark.unit
def test_unknown_answers_cannot_fit_a_model(make_session, make_oracle, tiny) -> None:
    """Test an oracle that never commits raises ModelFitError."""
    session = make_session(*tiny, make_oracle(default=Label.UNKNOWN))

    with pytest.raises(ModelFitError, match="classifier"):
        _learner(session).run()
