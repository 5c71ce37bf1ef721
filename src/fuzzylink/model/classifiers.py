"""Match-probability classifiers.

Both families share the ``MatchClassifier`` interface. ``fit`` never
mutates the receiver: it returns a new fitted instance so the previous
model stays usable for computing probability changes between refits.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, ClassVar, Protocol

import numpy as np
from sklearn.ensemble import RandomForestClassifier
from sklearn.linear_model import LogisticRegression

from fuzzylink.errors import InsufficientLabels, ModelFitError

# Probabilities are clipped to [EPS, 1 - EPS] before taking logits.
EPS = 1e-6


def sigmoid(x: np.ndarray) -> np.ndarray:
    """Numerically stable logistic function.

    Notes
    -----
    sigmoid(x) = 1 / (1 + exp(-x))
    """
    x = np.asarray(x, dtype=np.float64)
    out = np.empty_like(x)
    positive = x >= 0
    out[positive] = 1.0 / (1.0 + np.exp(-x[positive]))
    exp_x = np.exp(x[~positive])
    out[~positive] = exp_x / (1.0 + exp_x)
    return out


def logit(p: np.ndarray, eps: float = EPS) -> np.ndarray:
    """Log-odds of probabilities clipped away from 0 and 1.

    Notes
    -----
    logit(p) = log(p / (1 - p))
    """
    p = np.clip(np.asarray(p, dtype=np.float64), eps, 1.0 - eps)
    return np.log(p / (1.0 - p))


class MatchClassifier(Protocol):
    """Binary match-probability model.

    Attributes
    ----------
    name : str
        Registry key.
    feature_names : tuple[str, ...]
        Feature columns the model is trained on, in order.
    stopping_threshold : float
        Default convergence threshold for the active-learning loop.
    gradient_over_unlabeled : bool
        Whether probability changes should be measured on unlabeled
        pairs only.
    """

    name: ClassVar[str]
    feature_names: tuple[str, ...]
    stopping_threshold: ClassVar[float]
    gradient_over_unlabeled: ClassVar[bool]

    @property
    def is_fitted(self) -> bool: ...

    def fit(self, X: np.ndarray, y: np.ndarray) -> MatchClassifier: ...

    def predict(self, X: np.ndarray) -> np.ndarray: ...


def _check_training_data(X: np.ndarray, y: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    X = np.asarray(X, dtype=np.float64)
    y = np.asarray(y, dtype=int)
    if X.ndim != 2 or X.shape[0] != y.shape[0]:
        raise ModelFitError(f"Training matrix shape {X.shape} does not match {y.shape[0]} labels")
    classes = np.unique(y)
    if classes.size < 2:
        raise InsufficientLabels(
            f"Need both Match and NonMatch labels to fit; got {y.size} row(s) "
            f"with classes {classes.tolist()}"
        )
    return X, y


@dataclass(frozen=True)
class _SklearnClassifier(ABC):
    """Shared fit/predict for scikit-learn estimators with ``predict_proba``."""

    feature_names: tuple[str, ...]
    seed: int | None = None
    estimator: Any = field(default=None, repr=False, compare=False)

    @property
    def is_fitted(self) -> bool:
        """Whether ``predict`` can be called."""
        return self.estimator is not None

    @abstractmethod
    def _new_estimator(self) -> Any:
        """Unfitted scikit-learn estimator for one ``fit`` call."""

    def fit(self, X: np.ndarray, y: np.ndarray) -> _SklearnClassifier:
        """Fit a fresh estimator and return a new classifier holding it.

        Raises
        ------
        InsufficientLabels
            If ``y`` holds fewer than two distinct classes.
        """
        X, y = _check_training_data(X, y)
        if X.shape[1] != len(self.feature_names):
            raise ModelFitError(
                f"Expected {len(self.feature_names)} feature column(s), got {X.shape[1]}"
            )
        estimator = self._new_estimator()
        estimator.fit(X, y)
        return replace(self, estimator=estimator)

    def predict(self, X: np.ndarray) -> np.ndarray:
        """Match probability for every row of ``X``."""
        if self.estimator is None:
            raise ModelFitError(f"{type(self).__name__} has not been fitted")
        X = np.asarray(X, dtype=np.float64)
        if X.shape[0] == 0:
            return np.empty(0)
        match_column = list(self.estimator.classes_).index(1)
        return self.estimator.predict_proba(X)[:, match_column]


@dataclass(frozen=True)
class LogisticMatchClassifier(_SklearnClassifier):
    """Logistic regression on embedding and Jaro-Winkler similarity."""

    name: ClassVar[str] = "logistic"
    stopping_threshold: ClassVar[float] = 0.01
    gradient_over_unlabeled: ClassVar[bool] = False

    feature_names: tuple[str, ...] = ("sim", "jw")
    C: float = 100.0

    def _new_estimator(self) -> LogisticRegression:
        return LogisticRegression(C=self.C, max_iter=1000)


@dataclass(frozen=True)
class ForestMatchClassifier(_SklearnClassifier):
    """Random forest over the full feature set.

    Probabilities from a forest move in steps, so convergence is judged
    with a looser threshold and only on pairs that are still unlabeled.
    """

    name: ClassVar[str] = "forest"
    stopping_threshold: ClassVar[float] = 0.1
    gradient_over_unlabeled: ClassVar[bool] = True

    feature_names: tuple[str, ...] = ("sim", "jw", "levenshtein", "lcs", "jaccard", "qgram", "phonetic")
    n_estimators: int = 200
    min_samples_leaf: int = 1

    def _new_estimator(self) -> RandomForestClassifier:
        return RandomForestClassifier(
            n_estimators=self.n_estimators,
            min_samples_leaf=self.min_samples_leaf,
            random_state=self.seed,
        )
