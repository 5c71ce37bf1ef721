"""Tests for the public API module."""

from pathlib import Path

import pandas as pd
import pytest

from fuzzylink import fuzzylink
from fuzzylink.api import read_dataset, read_examples, write_dataset
from fuzzylink.errors import ConfigurationError

# ---------------------------------------------------------------------------
# fuzzylink
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_fuzzylink_returns_linked_frame(people, embedder, make_oracle) -> None:
    """Test the one-call interface returns every A row with match columns."""
    df_a, df_b, matches = people
    oracle = make_oracle(matches=matches)

    out = fuzzylink(
        df_a,
        df_b,
        by="name",
        blocking_variables=["state"],
        embedder=embedder,
        oracle=oracle,
        record_type="person",
        seed=0,
    )

    assert isinstance(out, pd.DataFrame)
    assert set(out["name"]) == set(df_a["name"])
    assert {"A", "B", "match_probability", "label", "party", "amount"} <= set(out.columns)
    assert set(oracle.record_types) == {"person"}
    assert len(embedder.calls) == 1


@pytest.mark.unit
def test_fuzzylink_forwards_config(people, embedder, make_oracle) -> None:
    """Test unknown configuration keys are rejected."""
    df_a, df_b, _ = people

    with pytest.raises(TypeError):
        fuzzylink(df_a, df_b, by="name", embedder=embedder, oracle=make_oracle(), colour="red")


@pytest.mark.unit
def test_fuzzylink_validates_before_remote_calls(people, embedder, make_oracle) -> None:
    """Test invalid settings fail before any provider is used."""
    df_a, df_b, _ = people
    oracle = make_oracle()

    with pytest.raises(ConfigurationError):
        fuzzylink(df_a, df_b, by="name", embedder=embedder, oracle=oracle, max_labels=0)

    assert embedder.calls == []
    assert oracle.calls == []


# ---------------------------------------------------------------------------
# read_dataset / write_dataset
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_read_dataset_keeps_text(tmp_path: Path) -> None:
    """Test values stay text and only empty cells become missing."""
    path = tmp_path / "a.csv"
    path.write_text("name,zip,note\nAnn Lee,02139,NA\nBob Stone,,\n", encoding="utf-8")

    df = read_dataset(path)

    assert df.loc[0, "zip"] == "02139"
    assert df.loc[0, "note"] == "NA"
    assert pd.isna(df.loc[1, "zip"])
    assert pd.isna(df.loc[1, "note"])


@pytest.mark.unit
def test_write_dataset_reports_bytes(tmp_path: Path) -> None:
    """Test the written file size is returned and parent dirs are created."""
    path = tmp_path / "nested" / "out.csv"
    df = pd.DataFrame({"name": ["Zoë", "Ann"], "n": [1, 2]})

    written = write_dataset(df, path)

    assert written == path.stat().st_size
    assert read_dataset(path)["name"].tolist() == ["Zoë", "Ann"]


@pytest.mark.unit
def test_read_examples(tmp_path: Path) -> None:
    """Test example pairs are read as (A, B, match) tuples."""
    path = tmp_path / "examples.csv"
    path.write_text("A,B,match,note\nUPS,United Parcel Service,Yes,x\nUPS,USPS,No,y\n")

    assert read_examples(path) == [
        ("UPS", "United Parcel Service", "Yes"),
        ("UPS", "USPS", "No"),
    ]


@pytest.mark.unit
def test_read_examples_requires_columns(tmp_path: Path) -> None:
    """Test a file without the match column is a configuration error."""
    path = tmp_path / "examples.csv"
    path.write_text("A,B\nUPS,USPS\n")

    with pytest.raises(ConfigurationError, match="match"):
        read_examples(path)
