"""Public API for probabilistic record linkage.

This module provides the main public API for fuzzylink, enabling:
- Linking two DataFrames on a fuzzy string field
- Reading and writing CSV datasets
- Reading labeled example pairs for the oracle prompt
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pandas as pd

from fuzzylink.errors import ConfigurationError
from fuzzylink.providers.base import EmbeddingProvider, MatchOracle

if TYPE_CHECKING:
    from fuzzylink.audit.logger import AuditLogger

__all__ = [
    "fuzzylink",
    "read_dataset",
    "read_examples",
    "write_dataset",
]

EXAMPLE_COLUMNS = ("A", "B", "match")


def fuzzylink(
    df_a: pd.DataFrame,
    df_b: pd.DataFrame,
    by: str,
    blocking_variables: Sequence[str] | None = None,
    *,
    embedder: EmbeddingProvider,
    oracle: MatchOracle,
    logger: AuditLogger | None = None,
    **config: Any,
) -> pd.DataFrame:
    """Link dataset A to dataset B on an inexactly matching string field.

    Simplified interface to the full linkage engine.

    Parameters
    ----------
    df_a : pd.DataFrame
        Left dataset; every row appears in the result.
    df_b : pd.DataFrame
        Right dataset.
    by : str
        Column holding the strings to match, present in both datasets.
    blocking_variables : Sequence[str] | None, optional
        Columns that must agree exactly for two rows to be compared.
    embedder : EmbeddingProvider
        Embedding collaborator (e.g. ``OpenAIEmbeddings``).
    oracle : MatchOracle
        Match oracle collaborator (e.g. ``OpenAIOracle``).
    logger : AuditLogger | None, optional
        Audit logger for observability events.
    **config
        Any other ``LinkageConfig`` field (``record_type``, ``max_labels``,
        ``classifier``, ``return_all_pairs``, ``seed``, ...).

    Returns
    -------
    pd.DataFrame
        Dataset A joined to its matches in dataset B, with ``match_probability``
        and ``label`` columns. A rows without a match have empty B columns.

    Raises
    ------
    ConfigurationError
        If the configuration is invalid or blocking yields no overlap.

    Examples
    --------
    Link two lists of names:

        >>> from fuzzylink import fuzzylink, OpenAIEmbeddings, OpenAIOracle
        >>> df = fuzzylink(
        ...     df_a, df_b, by="name", blocking_variables=["state"],
        ...     embedder=OpenAIEmbeddings(), oracle=OpenAIOracle(),
        ...     record_type="person",
        ... )
    """
    from fuzzylink.engine import LinkageConfig, run_linkage

    linkage_config = LinkageConfig(by=by, blocking_variables=list(blocking_variables or []), **config)
    result = run_linkage(df_a, df_b, linkage_config, embedder, oracle, logger=logger)
    return result.data


def read_dataset(path: str | Path) -> pd.DataFrame:
    """Read a CSV dataset, keeping every column as text.

    Empty cells are read as missing values.
    """
    return pd.read_csv(Path(path), dtype=str, keep_default_na=False, na_values=[""])


def read_examples(path: str | Path) -> list[tuple[str, str, str]]:
    """Read labeled example pairs for the oracle prompt.

    The CSV needs columns ``A``, ``B`` and ``match`` (Yes/No or
    Match/NonMatch).

    Raises
    ------
    ConfigurationError
        If a required column is missing.
    """
    df = read_dataset(path)
    missing = [column for column in EXAMPLE_COLUMNS if column not in df.columns]
    if missing:
        raise ConfigurationError(
            f"Examples file {path} is missing column(s): {', '.join(missing)}"
        )
    return list(df[list(EXAMPLE_COLUMNS)].itertuples(index=False, name=None))


def write_dataset(df: pd.DataFrame, path: str | Path) -> int:
    """Write a dataset as UTF-8 CSV.

    Returns
    -------
    int
        Bytes written.
    """
    file_path = Path(path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(file_path, index=False, encoding="utf-8", lineterminator="\n")
    return file_path.stat().st_size
