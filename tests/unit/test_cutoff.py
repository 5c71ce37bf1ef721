"""Tests for expected-F1 cutoff selection."""

import json
from pathlib import Path

import numpy as np
import pytest

from fuzzylink.audit import AuditLogger
from fuzzylink.decision import CutoffStatus, expected_f1_at, select_cutoff
from fuzzylink.labels import Label

M = Label.MATCH
N = Label.NON_MATCH
U = Label.UNKNOWN


@pytest.mark.unit
def test_worked_example() -> None:
    """Test the mixed estimator on a hand-computed case.

    One confirmed match plus unlabeled rows at 0.2 and 0.6. Reporting
    only the 0.6 row gives TP = 1.6, FP = 0.4, FN = 0.2, F1 = 16/19.
    """
    result = select_cutoff(np.array([0.9, 0.2, 0.6]), [M, None, None])

    assert result.status is CutoffStatus.DEFINED
    assert result.cutoff == pytest.approx(0.2)
    assert result.expected_f1 == pytest.approx(16 / 19)
    assert result.expected_precision == pytest.approx(0.8)
    assert result.expected_recall == pytest.approx(1.6 / 1.8)
    assert result.confirmed_matches == 1
    assert result.unlabeled_pairs == 2


@pytest.mark.unit
def test_selected_cutoff_maximizes_expected_f1() -> None:
    """Test no other candidate threshold does better."""
    rng = np.random.default_rng(3)
    p = rng.uniform(size=40)
    labels = [M] * 5 + [N] * 5 + [None] * 30

    result = select_cutoff(p, labels)

    best = expected_f1_at(p, labels, result.cutoff)
    assert best == pytest.approx(result.expected_f1)
    for t in np.linspace(0.0, 1.0, 101):
        assert expected_f1_at(p, labels, t) <= best + 1e-9


@pytest.mark.unit
def test_selection_is_idempotent() -> None:
    """Test selecting twice from the same snapshot gives the same result."""
    rng = np.random.default_rng(11)
    p = rng.uniform(size=30)
    labels = [M] * 4 + [N] * 6 + [U] * 2 + [None] * 18

    first = select_cutoff(p, labels)
    second = select_cutoff(p.copy(), list(labels))

    assert first == second
    assert first.status is CutoffStatus.DEFINED


@pytest.mark.unit
def test_selected_cutoff_beats_range_endpoints() -> None:
    """Test the chosen threshold scores at least as well as reporting all or none."""
    rng = np.random.default_rng(5)
    p = rng.uniform(size=25)
    labels = [M] * 3 + [N] * 2 + [None] * 20

    result = select_cutoff(p, labels)

    assert result.expected_f1 >= expected_f1_at(p, labels, 0.0) - 1e-12
    assert result.expected_f1 >= expected_f1_at(p, labels, 1.0) - 1e-12


@pytest.mark.unit
def test_ties_break_towards_highest_cutoff() -> None:
    """Test equal expected F1 picks the highest threshold."""
    result = select_cutoff(np.array([0.9, 0.1]), [M, N])

    assert result.cutoff == 1.0
    assert result.expected_f1 == pytest.approx(1.0)


@pytest.mark.unit
def test_no_confirmed_match_is_undefined() -> None:
    """Test zero confirmed matches is reported, never NaN."""
    result = select_cutoff(np.array([0.8, 0.3, 0.4]), [N, None, U])

    assert result.status is CutoffStatus.UNDEFINED
    assert not result.is_defined
    assert result.cutoff is None
    assert result.expected_f1 is None
    assert result.unlabeled_pairs == 2
    assert expected_f1_at(np.array([0.8]), [N], 0.5) is None


@pytest.mark.unit
def test_unknown_labels_count_as_unlabeled() -> None:
    """Test Unknown answers contribute their probability like unlabeled rows."""
    with_unknown = select_cutoff(np.array([0.9, 0.2, 0.6]), [M, U, None])
    with_none = select_cutoff(np.array([0.9, 0.2, 0.6]), [M, None, None])

    assert with_unknown.cutoff == with_none.cutoff
    assert with_unknown.expected_f1 == pytest.approx(with_none.expected_f1)


@pytest.mark.unit
def test_cutoff_respects_range() -> None:
    """Test the cutoff is confined to the configured range."""
    p = np.array([0.9, 0.2, 0.6])

    result = select_cutoff(p, [M, None, None], cutoff_range=(0.3, 0.8))

    assert 0.3 <= result.cutoff <= 0.8


@pytest.mark.unit
def test_confirmed_rows_may_lack_probabilities() -> None:
    """Test NaN probabilities are allowed on confirmed rows."""
    result = select_cutoff(np.array([np.nan, np.nan]), [M, N])

    assert result.is_defined


@pytest.mark.unit
@pytest.mark.parametrize(
    ("probabilities", "labels", "cutoff_range"),
    [
        (np.array([0.5, 0.5]), [M], (0.0, 1.0)),
        (np.array([0.5, np.nan]), [M, None], (0.0, 1.0)),
        (np.array([0.5]), [M], (0.8, 0.2)),
        (np.array([0.5]), [M], (-0.1, 1.0)),
    ],
)
def test_invalid_inputs_raise(probabilities, labels, cutoff_range) -> None:
    """Test misaligned inputs, missing probabilities and bad ranges."""
    with pytest.raises(ValueError):
        select_cutoff(probabilities, labels, cutoff_range)


@pytest.mark.unit
def test_result_serializes(tmp_path: Path) -> None:
    """Test the result round-trips through the audit log."""
    log_path = tmp_path / "events.jsonl"
    with AuditLogger(run_id="run", log_path=log_path) as logger:
        result = select_cutoff(np.array([0.9, 0.2]), [M, None], logger=logger)
        select_cutoff(np.array([0.2]), [None], logger=logger)

    events = [json.loads(line) for line in log_path.read_text().splitlines()]
    assert events[0]["event"] == "cutoff_selected"
    assert events[0]["data"]["cutoff"] == result.cutoff
    assert events[0]["data"]["status"] == "defined"
    assert events[1]["event"] == "cutoff_undefined"
    assert events[1]["level"] == "WARN"
