"""Probabilistic record linkage with embeddings and active learning.

This package provides:
- Blocking (fuzzylink.blocking) — exact-key partitioning
- Features (fuzzylink.features) — embedding and lexical similarity
- Labels (fuzzylink.labels) — the versioned label store
- Model (fuzzylink.model) — match-probability classifiers
- Learning (fuzzylink.learning) — active learning and recall search
- Decision (fuzzylink.decision) — expected-F1 cutoff selection
- Providers (fuzzylink.providers) — embedding and oracle adapters
- Engine (fuzzylink.engine) — linkage orchestration
- Audit (fuzzylink.audit) — structured event logging
- CLI (fuzzylink.cli) — command-line interface
- Public API (fuzzylink.api) — high-level convenience functions
"""

__version__ = "0.1.0"
__license__ = "MIT"

from fuzzylink.api import fuzzylink, read_dataset, read_examples, write_dataset
from fuzzylink.engine import LinkageConfig, LinkageResult, run_linkage
from fuzzylink.errors import (
    ConfigurationError,
    DataQualityWarning,
    FuzzyLinkError,
    LabelConflictError,
    ModelFitError,
    ProviderError,
)
from fuzzylink.labels import Label, LabelSource
from fuzzylink.providers import OpenAIEmbeddings, OpenAIOracle

__all__ = [
    "__version__",
    "__license__",
    "ConfigurationError",
    "DataQualityWarning",
    "FuzzyLinkError",
    "Label",
    "LabelConflictError",
    "LabelSource",
    "LinkageConfig",
    "LinkageResult",
    "ModelFitError",
    "OpenAIEmbeddings",
    "OpenAIOracle",
    "ProviderError",
    "fuzzylink",
    "read_dataset",
    "read_examples",
    "run_linkage",
    "write_dataset",
]
