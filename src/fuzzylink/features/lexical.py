"""Lexical string-similarity metrics.

Each metric lower-cases its inputs and returns a similarity in [0, 1].
Metrics backed by rapidfuzz compute whole blocks at once with
``rapidfuzz.process.cdist``; the others fall back to a pairwise loop.

New metrics are added by extending ``METRICS``.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import jellyfish
import numpy as np
from rapidfuzz import process
from rapidfuzz.distance import JaroWinkler, LCSseq, Levenshtein

QGRAM_SIZE = 2


# ============================================================================
# Pure helpers
# ============================================================================


def _tokens(text: str) -> set[str]:
    return set(text.split())


def _qgrams(text: str, q: int = QGRAM_SIZE) -> Counter[str]:
    if len(text) < q:
        return Counter([text]) if text else Counter()
    return Counter(text[i : i + q] for i in range(len(text) - q + 1))


def token_jaccard(a: str, b: str) -> float:
    """Jaccard similarity of whitespace token sets."""
    tokens_a = _tokens(a)
    tokens_b = _tokens(b)
    if not tokens_a and not tokens_b:
        return 1.0
    return len(tokens_a & tokens_b) / len(tokens_a | tokens_b)


def qgram_similarity(a: str, b: str, q: int = QGRAM_SIZE) -> float:
    """Jaccard similarity of character q-gram multisets."""
    grams_a = _qgrams(a, q)
    grams_b = _qgrams(b, q)
    union = sum((grams_a | grams_b).values())
    if union == 0:
        return 1.0
    return sum((grams_a & grams_b).values()) / union


def phonetic_code(text: str) -> str:
    """Space-joined Metaphone codes of each token."""
    return " ".join(jellyfish.metaphone(token) for token in text.split())


def phonetic_similarity(a: str, b: str) -> float:
    """Normalized edit similarity between phonetic codes."""
    return Levenshtein.normalized_similarity(phonetic_code(a), phonetic_code(b))


# ============================================================================
# Metric registry
# ============================================================================


@dataclass(frozen=True)
class LexicalMetric:
    """A named string-similarity measure.

    Attributes
    ----------
    name : str
        Feature column name.
    scorer : Callable[[str, str], float]
        Similarity function on lower-cased strings.
    vectorized : bool
        Whether ``scorer`` is a rapidfuzz scorer usable with ``cdist``.
    """

    name: str
    scorer: Callable[[str, str], float]
    vectorized: bool = False

    def similarity(self, a: str, b: str) -> float:
        """Similarity of two strings in [0, 1]."""
        return float(self.scorer(a.lower(), b.lower()))

    def matrix(self, items_a: Sequence[str], items_b: Sequence[str]) -> np.ndarray:
        """Similarity of every A item against every B item.

        Returns
        -------
        np.ndarray
            Array of shape ``(len(items_a), len(items_b))``.
        """
        lower_a = [s.lower() for s in items_a]
        lower_b = [s.lower() for s in items_b]
        if not lower_a or not lower_b:
            return np.zeros((len(lower_a), len(lower_b)))

        if self.vectorized:
            return np.asarray(
                process.cdist(lower_a, lower_b, scorer=self.scorer, dtype=np.float64),
                dtype=np.float64,
            )

        out = np.empty((len(lower_a), len(lower_b)))
        for i, a in enumerate(lower_a):
            for j, b in enumerate(lower_b):
                out[i, j] = self.scorer(a, b)
        return out


METRICS: dict[str, LexicalMetric] = {
    "jw": LexicalMetric("jw", JaroWinkler.normalized_similarity, vectorized=True),
    "levenshtein": LexicalMetric(
        "levenshtein", Levenshtein.normalized_similarity, vectorized=True
    ),
    "lcs": LexicalMetric("lcs", LCSseq.normalized_similarity, vectorized=True),
    "jaccard": LexicalMetric("jaccard", token_jaccard),
    "qgram": LexicalMetric("qgram", qgram_similarity),
    "phonetic": LexicalMetric("phonetic", phonetic_similarity),
}


def get_metrics(names: Sequence[str] | None = None) -> list[LexicalMetric]:
    """Look up metrics by name, preserving order.

    Parameters
    ----------
    names : Sequence[str] | None, optional
        Metric names; None selects every registered metric.

    Returns
    -------
    list[LexicalMetric]
        Requested metrics.

    Raises
    ------
    ValueError
        If a name is not in the registry.
    """
    if names is None:
        return list(METRICS.values())

    unknown = [name for name in names if name not in METRICS]
    if unknown:
        valid = ", ".join(sorted(METRICS))
        raise ValueError(f"Unknown lexical metric(s): {unknown}. Valid metrics: {valid}")
    return [METRICS[name] for name in names]
