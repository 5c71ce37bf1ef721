"""Registry-based factory for classifier families.

New families are added by extending ``CLASSIFIER_REGISTRY``.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from fuzzylink.errors import ConfigurationError
from fuzzylink.model.classifiers import (
    ForestMatchClassifier,
    LogisticMatchClassifier,
    MatchClassifier,
)

CLASSIFIER_REGISTRY: dict[str, type] = {
    "logistic": LogisticMatchClassifier,
    "forest": ForestMatchClassifier,
}


def create_classifier(
    name: str,
    *,
    seed: int | None = None,
    feature_names: Sequence[str] | None = None,
    **params: Any,
) -> MatchClassifier:
    """Instantiate an unfitted classifier.

    Parameters
    ----------
    name : str
        Key in ``CLASSIFIER_REGISTRY``.
    seed : int | None, optional
        Random state for stochastic estimators.
    feature_names : Sequence[str] | None, optional
        Override the family's default feature columns.
    **params
        Extra keyword arguments for the classifier.

    Raises
    ------
    ConfigurationError
        If ``name`` is not registered.
    """
    cls = CLASSIFIER_REGISTRY.get(name)
    if cls is None:
        valid = ", ".join(sorted(CLASSIFIER_REGISTRY))
        raise ConfigurationError(f"Unknown classifier: {name!r}. Valid classifiers: {valid}")
    if feature_names is not None:
        params["feature_names"] = tuple(feature_names)
    return cls(seed=seed, **params)  # type: ignore[no-any-return]
