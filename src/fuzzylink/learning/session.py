"""Oracle access shared by the labeling loops.

A ``LabelingSession`` binds the pair table, the label store and the
oracle for one run. It is the only place labels are written, so every
confirmed label is either an exact-string shortcut or an oracle answer.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from fuzzylink.audit.logger import AuditLogger
from fuzzylink.errors import ProviderError
from fuzzylink.features.builder import PairTable
from fuzzylink.labels.models import Label, LabelSource
from fuzzylink.labels.store import LabelStore
from fuzzylink.learning.models import LearningSettings
from fuzzylink.providers.base import MatchOracle, normalize_label


class LabelingSession:
    """Single-threaded gateway between the loops and the oracle.

    Attributes
    ----------
    pairs : PairTable
        Candidate pair universe.
    store : LabelStore
        Labels accumulated so far.
    oracle : MatchOracle
        Match oracle collaborator.
    settings : LearningSettings
        Oracle prompt parameters and the label cap.
    oracle_calls : int
        Pairs sent to the oracle so far.
    """

    def __init__(
        self,
        pairs: PairTable,
        store: LabelStore,
        oracle: MatchOracle,
        settings: LearningSettings,
        logger: AuditLogger | None = None,
    ) -> None:
        self.pairs = pairs
        self.store = store
        self.oracle = oracle
        self.settings = settings
        self.logger = logger
        self.oracle_calls = 0
        self._features = pairs.features()

    def seed_exact(self) -> int:
        """Label every identical-string pair as a Match without the oracle.

        Returns
        -------
        int
            Number of exact pairs labeled.
        """
        rows = np.flatnonzero(self.pairs.exact_mask)
        for row, (item_a, item_b) in zip(rows, self.pairs.pairs(rows), strict=True):
            self.store.insert(item_a, item_b, Label.MATCH, LabelSource.EXACT, self._features[row])
        return int(rows.size)

    # ------------------------------------------------------------------
    # Row masks
    # ------------------------------------------------------------------

    def label_array(self) -> np.ndarray:
        """Label per pair-table row (None where the pair was never labeled)."""
        labels = np.full(len(self.pairs), None, dtype=object)
        for entry in self.store:
            row = self.pairs.row(entry.item_a, entry.item_b)
            if row is not None:
                labels[row] = entry.label
        return labels

    def eligible_mask(self) -> np.ndarray:
        """Rows that may still be sent to the oracle."""
        mask = np.ones(len(self.pairs), dtype=bool)
        for entry in self.store:
            row = self.pairs.row(entry.item_a, entry.item_b)
            if row is not None:
                mask[row] = False
        return mask & ~self.pairs.exact_mask

    def unconfirmed_mask(self) -> np.ndarray:
        """Rows without a Match or NonMatch label."""
        labels = self.label_array()
        return np.asarray([label is None or not label.is_confirmed for label in labels], dtype=bool)

    def all_confirmed(self) -> bool:
        """Whether every candidate pair holds a confirmed label."""
        return not self.unconfirmed_mask().any()

    def budget_remaining(self) -> int:
        """Oracle-confirmed labels still allowed under the cap."""
        return max(0, self.settings.max_labels - self.store.oracle_confirmed_count())

    # ------------------------------------------------------------------
    # Oracle
    # ------------------------------------------------------------------

    def query(self, rows: Sequence[int] | np.ndarray, source: LabelSource) -> list[Label]:
        """Send rows to the oracle and store the answers.

        Parameters
        ----------
        rows : Sequence[int] | np.ndarray
            Pair-table row positions (never exact pairs).
        source : LabelSource
            Phase requesting the labels.

        Returns
        -------
        list[Label]
            Oracle labels in row order.

        Raises
        ------
        ProviderError
            If the oracle fails or returns the wrong number of labels.
        """
        rows = np.asarray(rows, dtype=np.intp)
        if rows.size == 0:
            return []
        if self.pairs.exact_mask[rows].any():
            raise ValueError("Exact-string pairs are never sent to the oracle")

        pairs = self.pairs.pairs(rows)
        answers = self.oracle.label(
            pairs,
            record_type=self.settings.record_type,
            instructions=self.settings.instructions,
        )
        self.oracle_calls += len(pairs)
        if len(answers) != len(pairs):
            raise ProviderError(f"Oracle returned {len(answers)} label(s) for {len(pairs)} pair(s)")

        labels = [a if isinstance(a, Label) else normalize_label(str(a)) for a in answers]
        self.store.insert_many(pairs, labels, source, self._features[rows])
        if self.logger:
            self.logger.labels_added(
                str(source),
                requested=len(labels),
                matches=labels.count(Label.MATCH),
                non_matches=labels.count(Label.NON_MATCH),
            )
        return labels
