"""Pairwise similarity features.

Main Components
---------------
- METRICS / LexicalMetric: lexical similarity registry
- build_pair_table: embedding + lexical features for every candidate pair
- PairTable: deduplicated pair universe
"""

from fuzzylink.features.builder import (
    EMBEDDING_FEATURE,
    PairTable,
    build_pair_table,
    normalize_rows,
)
from fuzzylink.features.lexical import METRICS, LexicalMetric, get_metrics

__all__ = [
    "EMBEDDING_FEATURE",
    "METRICS",
    "LexicalMetric",
    "PairTable",
    "build_pair_table",
    "get_metrics",
    "normalize_rows",
]
