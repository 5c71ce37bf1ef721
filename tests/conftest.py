"""Pytest configuration and fixtures for test suite."""

import sys
import zlib
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

# Add src directory to path for imports
SRC_PATH = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(SRC_PATH))

from fuzzylink.blocking import build_blocks  # noqa: E402
from fuzzylink.features import PairTable, build_pair_table  # noqa: E402
from fuzzylink.labels import Label, LabelStore  # noqa: E402
from fuzzylink.learning import LabelingSession, LearningSettings  # noqa: E402


class HashingEmbedder:
    """Deterministic bag-of-bigrams embedder.

    Strings sharing many character bigrams get similar vectors, which is
    enough signal for the classifiers to learn from.
    """

    def __init__(self, dim: int = 64) -> None:
        self.dim = dim
        self.calls: list[list[str]] = []

    def embed(self, strings: Sequence[str]) -> np.ndarray:
        self.calls.append(list(strings))
        out = np.zeros((len(strings), self.dim))
        for i, text in enumerate(strings):
            padded = f" {text.lower()} "
            for j in range(len(padded) - 1):
                out[i, zlib.crc32(padded[j : j + 2].encode()) % self.dim] += 1.0
        return out


class StubOracle:
    """Answers Match for pairs in ``matches`` and ``default`` otherwise."""

    def __init__(
        self,
        matches: Iterable[tuple[str, str]] = (),
        default: Label = Label.NON_MATCH,
    ) -> None:
        self.matches = {tuple(pair) for pair in matches}
        self.default = default
        self.calls: list[list[tuple[str, str]]] = []
        self.record_types: list[str] = []

    def label(
        self,
        pairs: Sequence[tuple[str, str]],
        record_type: str = "entity",
        instructions: str | None = None,
    ) -> list[Label]:
        batch = [tuple(pair) for pair in pairs]
        self.calls.append(batch)
        self.record_types.append(record_type)
        return [Label.MATCH if pair in self.matches else self.default for pair in batch]

    @property
    def asked(self) -> list[tuple[str, str]]:
        """Every pair sent so far, in call order."""
        return [pair for batch in self.calls for pair in batch]


@pytest.fixture
def embedder() -> HashingEmbedder:
    """Fresh call-recording embedder."""
    return HashingEmbedder()


@pytest.fixture
def make_oracle() -> Callable[..., StubOracle]:
    """Factory for oracles with a fixed set of true matches."""
    return StubOracle


@pytest.fixture
def people() -> tuple[pd.DataFrame, pd.DataFrame, list[tuple[str, str]]]:
    """Two small name lists with known true matches across two states."""
    df_a = pd.DataFrame(
        {
            "name": [
                "Joe Biden",
                "Kamala Harris",
                "Bernie Sanders",
                "Elizabeth Warren",
                "Mitch McConnell",
                "Chuck Schumer",
                "Nancy Pelosi",
                "Ted Cruz",
            ],
            "state": ["DE", "CA", "VT", "MA", "KY", "NY", "CA", "TX"],
            "party": ["D", "D", "I", "D", "R", "D", "D", "R"],
        }
    )
    df_b = pd.DataFrame(
        {
            "name": [
                "Joseph R. Biden",
                "Kamala D. Harris",
                "Harris Kamala",
                "Bernard Sanders",
                "Liz Warren",
                "Addison Mitchell McConnell",
                "Charles Schumer",
                "Nancy D'Alesandro Pelosi",
                "Rafael Edward Cruz",
                "Ted Cruz",
                "Karen Bass",
                "Kevin McCarthy",
            ],
            "state": ["DE", "CA", "CA", "VT", "MA", "KY", "NY", "CA", "TX", "TX", "CA", "KY"],
            "amount": [100, 250, 75, 30, 10, 500, 20, 15, 60, 45, 5, 80],
        }
    )
    matches = [
        ("Joe Biden", "Joseph R. Biden"),
        ("Kamala Harris", "Kamala D. Harris"),
        ("Kamala Harris", "Harris Kamala"),
        ("Bernie Sanders", "Bernard Sanders"),
        ("Elizabeth Warren", "Liz Warren"),
        ("Mitch McConnell", "Addison Mitchell McConnell"),
        ("Chuck Schumer", "Charles Schumer"),
        ("Nancy Pelosi", "Nancy D'Alesandro Pelosi"),
        ("Ted Cruz", "Rafael Edward Cruz"),
    ]
    return df_a, df_b, matches


@pytest.fixture
def make_session(
    embedder: HashingEmbedder,
) -> Callable[..., LabelingSession]:
    """Build a labeling session over two datasets joined on ``name``."""

    def _factory(
        df_a: pd.DataFrame,
        df_b: pd.DataFrame,
        oracle: StubOracle,
        blocking_variables: Sequence[str] | None = None,
        **settings: object,
    ) -> LabelingSession:
        blocking = build_blocks(df_a, df_b, "name", blocking_variables)
        pairs: PairTable = build_pair_table(blocking.blocks, embedder)
        store = LabelStore(pairs.feature_names)
        session = LabelingSession(pairs, store, oracle, LearningSettings(**settings))
        session.seed_exact()
        return session

    return _factory
