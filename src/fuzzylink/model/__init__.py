"""Pluggable match-probability classifiers."""

from fuzzylink.model.classifiers import (
    ForestMatchClassifier,
    LogisticMatchClassifier,
    MatchClassifier,
    logit,
    sigmoid,
)
from fuzzylink.model.factory import CLASSIFIER_REGISTRY, create_classifier

__all__ = [
    "CLASSIFIER_REGISTRY",
    "ForestMatchClassifier",
    "LogisticMatchClassifier",
    "MatchClassifier",
    "create_classifier",
    "logit",
    "sigmoid",
]
