"""Collaborator interfaces for embeddings and match validation."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

import numpy as np

from fuzzylink.errors import BadRequest, ProviderError, RateLimited, ServerError, Unauthorized
from fuzzylink.labels.models import Label

__all__ = [
    "EmbeddingProvider",
    "MatchOracle",
    "error_for_status",
    "normalize_label",
]

_MATCH_ANSWERS = frozenset({"yes", "match"})
_NON_MATCH_ANSWERS = frozenset({"no", "nonmatch", "no match", "non-match"})


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Maps strings to embedding vectors."""

    def embed(self, strings: Sequence[str]) -> np.ndarray:
        """Embed strings.

        Parameters
        ----------
        strings : Sequence[str]
            Strings to embed.

        Returns
        -------
        np.ndarray
            Matrix of shape ``(len(strings), d)``, rows in input order.

        Raises
        ------
        ProviderError
            ``RateLimited`` and ``ServerError`` are retryable;
            ``Unauthorized`` and ``BadRequest`` are fatal.
        """
        ...


@runtime_checkable
class MatchOracle(Protocol):
    """Decides whether two strings refer to the same entity."""

    def label(
        self,
        pairs: Sequence[tuple[str, str]],
        record_type: str = "entity",
        instructions: str | None = None,
    ) -> list[Label]:
        """Validate pairs.

        Parameters
        ----------
        pairs : Sequence[tuple[str, str]]
            (A item, B item) pairs.
        record_type : str, optional
            Singular noun describing the entities (e.g. "person").
        instructions : str | None, optional
            Extra guidance for the oracle.

        Returns
        -------
        list[Label]
            One label per pair, same order. ``Label.UNKNOWN`` marks an
            answer that could not be normalized.
        """
        ...


def normalize_label(text: str | None) -> Label:
    """Map a free-text oracle answer onto a Label.

    Examples
    --------
    >>> normalize_label(" Yes\\n")
    <Label.MATCH: 'Match'>
    >>> normalize_label("Maybe")
    <Label.UNKNOWN: 'Unknown'>
    """
    if text is None:
        return Label.UNKNOWN
    answer = " ".join(text.strip().strip(".!\"'").lower().split())
    if answer in _MATCH_ANSWERS:
        return Label.MATCH
    if answer in _NON_MATCH_ANSWERS:
        return Label.NON_MATCH
    return Label.UNKNOWN


def error_for_status(status_code: int, body: str = "") -> ProviderError:
    """Build the taxonomy error for an HTTP failure status.

    Parameters
    ----------
    status_code : int
        HTTP status (>= 400).
    body : str, optional
        Response body, included in the message.

    Returns
    -------
    ProviderError
        ``BadRequest`` for 400/404 and other 4xx, ``Unauthorized`` for
        401/403, ``RateLimited`` for 429, ``ServerError`` for 5xx.
    """
    detail = f"HTTP {status_code}: {body[:500]}" if body else f"HTTP {status_code}"
    if status_code == 429:
        return RateLimited(f"Rate limit exceeded ({detail})", status_code)
    if status_code in (401, 403):
        return Unauthorized(f"Invalid or missing credentials ({detail})", status_code)
    if status_code >= 500:
        return ServerError(f"Provider server error ({detail})", status_code)
    return BadRequest(f"Request rejected ({detail})", status_code)
