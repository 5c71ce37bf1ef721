"""Embedding and oracle collaborators.

Main Components
---------------
- EmbeddingProvider / MatchOracle: collaborator protocols
- RetryPolicy: tenacity-backed backoff for transient failures
- run_concurrently: bounded worker pool
- OpenAIEmbeddings / OpenAIOracle: HTTP adapters
"""

from fuzzylink.providers.base import (
    EmbeddingProvider,
    MatchOracle,
    error_for_status,
    normalize_label,
)
from fuzzylink.providers.openai import (
    MISTRAL_BASE_URL,
    OPENAI_BASE_URL,
    OpenAIEmbeddings,
    OpenAIOracle,
    build_prompt,
    chunk_by_characters,
)
from fuzzylink.providers.pool import run_concurrently
from fuzzylink.providers.retry import NO_RETRY, RetryPolicy, is_retryable

__all__ = [
    "EmbeddingProvider",
    "MatchOracle",
    "MISTRAL_BASE_URL",
    "NO_RETRY",
    "OPENAI_BASE_URL",
    "OpenAIEmbeddings",
    "OpenAIOracle",
    "RetryPolicy",
    "build_prompt",
    "chunk_by_characters",
    "error_for_status",
    "is_retryable",
    "normalize_label",
    "run_concurrently",
]
