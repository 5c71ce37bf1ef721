"""Tests for match-probability classifiers and their factory."""

import numpy as np
import pytest

from fuzzylink.errors import ConfigurationError, InsufficientLabels, ModelFitError
from fuzzylink.model import (
    CLASSIFIER_REGISTRY,
    ForestMatchClassifier,
    LogisticMatchClassifier,
    create_classifier,
    logit,
    sigmoid,
)
from fuzzylink.model.classifiers import _SklearnClassifier


def _training_data(n_features: int, seed: int = 0) -> tuple[np.ndarray, np.ndarray]:
    rng = np.random.default_rng(seed)
    matches = rng.uniform(0.7, 1.0, size=(20, n_features))
    non_matches = rng.uniform(0.0, 0.4, size=(20, n_features))
    X = np.vstack([matches, non_matches])
    y = np.array([1] * 20 + [0] * 20)
    return X, y


# ---------------------------------------------------------------------------
# Link functions
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_sigmoid_inverts_logit() -> None:
    """Test sigmoid(logit(p)) == p away from the clipping bounds."""
    p = np.array([0.01, 0.25, 0.5, 0.9])
    np.testing.assert_allclose(sigmoid(logit(p)), p)


@pytest.mark.unit
def test_logit_clips_extremes() -> None:
    """Test logit stays finite at 0 and 1."""
    values = logit(np.array([0.0, 1.0]))

    assert np.all(np.isfinite(values))
    assert values[0] == pytest.approx(-values[1])


@pytest.mark.unit
def test_sigmoid_is_stable_for_large_inputs() -> None:
    """Test no overflow for large magnitude inputs."""
    out = sigmoid(np.array([-1000.0, 0.0, 1000.0]))

    np.testing.assert_allclose(out, [0.0, 0.5, 1.0])


# ---------------------------------------------------------------------------
# Fit / predict
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.parametrize("cls", [LogisticMatchClassifier, ForestMatchClassifier])
def test_fit_returns_new_fitted_instance(cls) -> None:
    """Test fitting leaves the original classifier untouched."""
    model = cls(seed=1)
    X, y = _training_data(len(model.feature_names))

    fitted = model.fit(X, y)

    assert fitted is not model
    assert fitted.is_fitted
    assert not model.is_fitted
    assert fitted.feature_names == model.feature_names


@pytest.mark.unit
@pytest.mark.parametrize("cls", [LogisticMatchClassifier, ForestMatchClassifier])
def test_predict_separates_classes(cls) -> None:
    """Test probabilities are higher for match-like rows."""
    model = cls(seed=1)
    k = len(model.feature_names)
    fitted = model.fit(*_training_data(k))

    p = fitted.predict(np.array([[0.95] * k, [0.05] * k]))

    assert p.shape == (2,)
    assert np.all((p >= 0.0) & (p <= 1.0))
    assert p[0] > 0.5 > p[1]


@pytest.mark.unit
def test_single_class_raises_insufficient_labels() -> None:
    """Test fitting on one label class fails with InsufficientLabels."""
    X = np.array([[0.9, 0.9], [0.8, 0.7]])

    with pytest.raises(InsufficientLabels):
        LogisticMatchClassifier().fit(X, np.array([1, 1]))


@pytest.mark.unit
def test_insufficient_labels_is_model_fit_error() -> None:
    """Test InsufficientLabels belongs to the ModelFitError family."""
    assert issubclass(InsufficientLabels, ModelFitError)


@pytest.mark.unit
def test_separable_data_is_not_an_error() -> None:
    """Test perfectly separable data fits and predicts near 0/1."""
    X = np.array([[0.1, 0.1], [0.9, 0.9]])
    fitted = LogisticMatchClassifier().fit(X, np.array([0, 1]))

    p = fitted.predict(X)

    assert p[0] < 0.5 < p[1]


@pytest.mark.unit
def test_wrong_feature_count_rejected() -> None:
    """Test the training matrix must match the classifier's features."""
    X, y = _training_data(3)

    with pytest.raises(ModelFitError, match="feature"):
        LogisticMatchClassifier().fit(X, y)


@pytest.mark.unit
def test_predict_before_fit_raises() -> None:
    """Test predicting with an unfitted classifier fails."""
    with pytest.raises(ModelFitError, match="not been fitted"):
        LogisticMatchClassifier().predict(np.zeros((1, 2)))


@pytest.mark.unit
def test_predict_on_empty_matrix() -> None:
    """Test predicting zero rows returns an empty array."""
    fitted = LogisticMatchClassifier().fit(*_training_data(2))

    assert fitted.predict(np.empty((0, 2))).shape == (0,)


@pytest.mark.unit
def test_family_defaults() -> None:
    """Test each family's features and convergence settings."""
    assert LogisticMatchClassifier.stopping_threshold == 0.01
    assert not LogisticMatchClassifier.gradient_over_unlabeled
    assert LogisticMatchClassifier().feature_names == ("sim", "jw")

    assert ForestMatchClassifier.stopping_threshold == 0.1
    assert ForestMatchClassifier.gradient_over_unlabeled
    assert len(ForestMatchClassifier().feature_names) == 7


@pytest.mark.unit
def test_shared_base_requires_an_estimator_factory() -> None:
    """Test the scikit-learn base cannot be used without a concrete estimator."""
    with pytest.raises(TypeError, match="_new_estimator"):
        _SklearnClassifier(feature_names=("sim",))


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_create_classifier_by_name() -> None:
    """Test registry lookup returns unfitted classifiers."""
    assert set(CLASSIFIER_REGISTRY) == {"logistic", "forest"}
    model = create_classifier("forest", seed=7)

    assert isinstance(model, ForestMatchClassifier)
    assert model.seed == 7
    assert not model.is_fitted


@pytest.mark.unit
def test_create_classifier_feature_override() -> None:
    """Test feature columns can be overridden."""
    model = create_classifier("logistic", feature_names=["sim", "levenshtein"])

    assert model.feature_names == ("sim", "levenshtein")


@pytest.mark.unit
def test_create_classifier_unknown_name() -> None:
    """Test unknown families raise ConfigurationError."""
    with pytest.raises(ConfigurationError, match="Unknown classifier"):
        create_classifier("svm")
