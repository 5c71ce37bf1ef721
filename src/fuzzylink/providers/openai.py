"""OpenAI-compatible HTTP adapters.

``OpenAIEmbeddings`` posts to ``/embeddings`` and works with any service
exposing the same API (Mistral's embedding endpoint included).
``OpenAIOracle`` validates pairs with one chat completion each, zero-shot
unless labeled example pairs are supplied.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from typing import Any

import httpx
import numpy as np

from fuzzylink.errors import ConfigurationError, ServerError
from fuzzylink.labels.models import Label
from fuzzylink.providers.base import error_for_status, normalize_label
from fuzzylink.providers.pool import DEFAULT_MAX_WORKERS, run_concurrently
from fuzzylink.providers.retry import RetryPolicy

OPENAI_BASE_URL = "https://api.openai.com/v1"
MISTRAL_BASE_URL = "https://api.mistral.ai/v1"
API_KEY_ENV = "OPENAI_API_KEY"

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-large"
DEFAULT_EMBEDDING_DIMENSIONS = 256
DEFAULT_CHAT_MODEL = "gpt-4o"

# Characters per embedding request.
CHUNK_CHAR_BUDGET = 2 * 8192

PROMPT_HEADER = "Decide if the following two names refer to the same {record_type}.{instructions}"
PAIR_TEMPLATE = "Name A: {item_a}\nName B: {item_b}\nSame {record_title} (Yes or No):"

# (item A, item B, label) shown to the model before the pair in question.
FewShotExample = tuple[str, str, Label | str]


def chunk_by_characters(strings: Sequence[str], budget: int = CHUNK_CHAR_BUDGET) -> list[list[str]]:
    """Split strings into consecutive chunks of at most ``budget`` characters.

    A single string longer than the budget forms its own chunk.
    """
    chunks: list[list[str]] = []
    current: list[str] = []
    size = 0
    for text in strings:
        if current and size + len(text) > budget:
            chunks.append(current)
            current = []
            size = 0
        current.append(text)
        size += len(text)
    if current:
        chunks.append(current)
    return chunks


_EXAMPLE_ANSWERS = {Label.MATCH: "Yes", Label.NON_MATCH: "No"}


def example_answer(label: Label | str) -> str:
    """Yes/No answer shown for a labeled example pair.

    Raises
    ------
    ConfigurationError
        If ``label`` is not a Match or NonMatch label or answer.
    """
    answer = _EXAMPLE_ANSWERS.get(normalize_label(str(label)))
    if answer is None:
        raise ConfigurationError(
            f"Few-shot examples must be labeled Match or NonMatch, got {label!r}"
        )
    return answer


def build_prompt(
    item_a: str,
    item_b: str,
    record_type: str = "entity",
    instructions: str | None = None,
    examples: Sequence[FewShotExample] = (),
) -> str:
    """Match prompt for one pair.

    Parameters
    ----------
    item_a, item_b : str
        Pair to validate.
    record_type : str, optional
        Singular noun for what the items name.
    instructions : str | None, optional
        Extra guidance appended to the task sentence.
    examples : Sequence[FewShotExample], optional
        Labeled pairs answered in the prompt ahead of the question. A label
        may be a ``Label`` or an answer such as "Yes" or "No". Empty gives a
        zero-shot prompt.

    Raises
    ------
    ConfigurationError
        If an example is not labeled Match or NonMatch.
    """
    title = record_type.title()
    blocks = [
        PROMPT_HEADER.format(
            record_type=record_type.lower(),
            instructions=f" {instructions.strip()}" if instructions else "",
        )
    ]
    for example_a, example_b, label in examples:
        pair = PAIR_TEMPLATE.format(item_a=example_a, item_b=example_b, record_title=title)
        blocks.append(f"{pair} {example_answer(label)}")
    blocks.append(PAIR_TEMPLATE.format(item_a=item_a, item_b=item_b, record_title=title))
    return "\n\n".join(blocks)


class _OpenAIClient:
    """Shared HTTP plumbing: auth, status mapping, retry, concurrency."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str = OPENAI_BASE_URL,
        retry: RetryPolicy | None = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        parallel: bool = True,
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        key = api_key or os.environ.get(API_KEY_ENV)
        if not key:
            raise ConfigurationError(
                f"No API key supplied. Set the {API_KEY_ENV} environment variable "
                "or pass api_key explicitly."
            )
        self.retry = retry or RetryPolicy()
        self.max_workers = max_workers
        self.parallel = parallel
        self._client = httpx.Client(
            base_url=base_url,
            headers={"Authorization": f"Bearer {key}"},
            timeout=timeout,
            transport=transport,
        )

    def __enter__(self) -> _OpenAIClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        return self.retry.call(self._post_once, path, payload)

    def _post_once(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = self._client.post(path, json=payload)
        except httpx.TransportError as exc:
            raise ServerError(f"Transport failure calling {path}: {exc}") from exc
        if response.status_code >= 400:
            raise error_for_status(response.status_code, response.text)
        return response.json()


class OpenAIEmbeddings(_OpenAIClient):
    """Embedding provider backed by an OpenAI-compatible ``/embeddings`` API.

    Parameters
    ----------
    model : str, optional
        Embedding model identifier.
    dimensions : int | None, optional
        Requested vector length; None omits the parameter (required for
        services that do not support truncation, such as Mistral).
    **kwargs
        Forwarded to the HTTP client (``api_key``, ``base_url``, ``retry``,
        ``max_workers``, ``parallel``, ``timeout``, ``transport``).
    """

    def __init__(
        self,
        model: str = DEFAULT_EMBEDDING_MODEL,
        dimensions: int | None = DEFAULT_EMBEDDING_DIMENSIONS,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.model = model
        self.dimensions = dimensions

    def embed(self, strings: Sequence[str]) -> np.ndarray:
        """Embed strings, preserving input order across concurrent chunks."""
        items = [str(s) for s in strings]
        if not items:
            return np.empty((0, self.dimensions or 0))
        chunks = chunk_by_characters(items)
        blocks = run_concurrently(
            self._embed_chunk, chunks, max_workers=self.max_workers, parallel=self.parallel
        )
        return np.vstack(blocks)

    def _embed_chunk(self, chunk: list[str]) -> np.ndarray:
        payload: dict[str, Any] = {"model": self.model, "input": chunk}
        if self.dimensions is not None:
            payload["dimensions"] = self.dimensions
        body = self._post("/embeddings", payload)
        data = sorted(body["data"], key=lambda row: row["index"])
        return np.asarray([row["embedding"] for row in data], dtype=np.float64)


class OpenAIOracle(_OpenAIClient):
    """Match oracle backed by an OpenAI-compatible chat-completions API.

    Parameters
    ----------
    model : str, optional
        Chat model identifier.
    examples : Sequence[FewShotExample], optional
        Labeled pairs included in every prompt; see ``build_prompt``.
    **kwargs
        Forwarded to the HTTP client.
    """

    def __init__(
        self,
        model: str = DEFAULT_CHAT_MODEL,
        examples: Sequence[FewShotExample] = (),
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.model = model
        self.examples = tuple(examples)
        for _, _, label in self.examples:
            example_answer(label)

    def label(
        self,
        pairs: Sequence[tuple[str, str]],
        record_type: str = "entity",
        instructions: str | None = None,
    ) -> list[Label]:
        """Validate each pair with its own prompt."""
        prompts = [
            build_prompt(a, b, record_type, instructions, self.examples) for a, b in pairs
        ]
        return run_concurrently(
            self._ask, prompts, max_workers=self.max_workers, parallel=self.parallel
        )

    def _ask(self, prompt: str) -> Label:
        body = self._post(
            "/chat/completions",
            {
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": 0,
                "max_tokens": 1,
            },
        )
        choices = body.get("choices") or []
        if not choices:
            return Label.UNKNOWN
        return normalize_label(choices[0].get("message", {}).get("content"))
