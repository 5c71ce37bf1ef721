"""Versioned store of validated candidate pairs.

The store is the single source of truth the classifier trains on. It is
created once per run and handed to each stage explicitly; entries are
never removed.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence

import numpy as np
import pandas as pd

from fuzzylink.errors import LabelConflictError
from fuzzylink.labels.models import Label, LabelEntry, LabelSource

__all__ = ["LabelStore"]


class LabelStore:
    """Mapping from (item_a, item_b) to its label entry.

    Re-inserting a pair replaces the entry (last write wins) except that:

    - a confirmed label is never replaced by ``Label.UNKNOWN``;
    - replacing a confirmed label with the opposite confirmed label from a
      different source raises ``LabelConflictError``.

    Attributes
    ----------
    feature_names : tuple[str, ...]
        Names of the values stored in each entry's feature vector.
    """

    def __init__(self, feature_names: Sequence[str] = ()) -> None:
        """Initialize an empty store.

        Parameters
        ----------
        feature_names : Sequence[str], optional
            Feature names, in the order feature vectors are stored.
        """
        self.feature_names = tuple(feature_names)
        self._entries: dict[tuple[str, str], LabelEntry] = {}
        self._version = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[LabelEntry]:
        return iter(list(self._entries.values()))

    @property
    def version(self) -> int:
        """Number of writes applied so far."""
        return self._version

    def get(self, item_a: str, item_b: str) -> LabelEntry | None:
        """Entry for a pair, or None if it was never labeled."""
        return self._entries.get((item_a, item_b))

    def label_of(self, item_a: str, item_b: str) -> Label | None:
        """Label for a pair, or None if it was never labeled."""
        entry = self._entries.get((item_a, item_b))
        return entry.label if entry is not None else None

    def insert(
        self,
        item_a: str,
        item_b: str,
        label: Label,
        source: LabelSource,
        features: Sequence[float] = (),
    ) -> LabelEntry:
        """Record a label for a pair.

        Parameters
        ----------
        item_a, item_b : str
            Pair identity.
        label : Label
            Validation outcome.
        source : LabelSource
            Phase producing the label.
        features : Sequence[float], optional
            Feature vector aligned with ``feature_names``.

        Returns
        -------
        LabelEntry
            The entry now stored for the pair.

        Raises
        ------
        LabelConflictError
            If a confirmed label from another source would be contradicted.
        """
        key = (item_a, item_b)
        label = Label(label)
        source = LabelSource(source)
        existing = self._entries.get(key)

        if existing is not None and existing.label.is_confirmed:
            if not label.is_confirmed:
                return existing
            if label != existing.label and source != existing.source:
                raise LabelConflictError(
                    f"Pair ({item_a!r}, {item_b!r}) is already labeled "
                    f"{existing.label} by {existing.source}; refusing {label} from {source}"
                )

        self._version += 1
        entry = LabelEntry(
            item_a=item_a,
            item_b=item_b,
            features=tuple(float(v) for v in features),
            label=label,
            source=source,
            version=self._version,
        )
        self._entries[key] = entry
        return entry

    def insert_many(
        self,
        pairs: Sequence[tuple[str, str]],
        labels: Sequence[Label],
        source: LabelSource,
        features: Iterable[Sequence[float]] | None = None,
    ) -> list[LabelEntry]:
        """Record labels for several pairs from one source."""
        if len(pairs) != len(labels):
            raise ValueError(f"Got {len(labels)} labels for {len(pairs)} pairs")
        vectors = list(features) if features is not None else [()] * len(pairs)
        return [
            self.insert(a, b, label, source, vector)
            for (a, b), label, vector in zip(pairs, labels, vectors, strict=True)
        ]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def entries(
        self,
        *,
        label: Label | None = None,
        source: LabelSource | None = None,
        confirmed: bool | None = None,
    ) -> list[LabelEntry]:
        """Entries filtered by label, source and confirmation state."""
        selected = []
        for entry in self._entries.values():
            if label is not None and entry.label != label:
                continue
            if source is not None and entry.source != source:
                continue
            if confirmed is not None and entry.label.is_confirmed != confirmed:
                continue
            selected.append(entry)
        return selected

    def count(
        self,
        *,
        label: Label | None = None,
        source: LabelSource | None = None,
        confirmed: bool | None = None,
    ) -> int:
        """Number of entries matching the filters."""
        return len(self.entries(label=label, source=source, confirmed=confirmed))

    def oracle_confirmed_count(self) -> int:
        """Confirmed labels that came from the oracle (exact pairs excluded)."""
        return sum(
            1
            for entry in self._entries.values()
            if entry.label.is_confirmed and entry.source is not LabelSource.EXACT
        )

    def training_data(
        self, feature_names: Sequence[str] | None = None
    ) -> tuple[np.ndarray, np.ndarray]:
        """Feature matrix and 0/1 targets for classifier fitting.

        Only oracle-confirmed entries are returned; exact-string pairs
        are left out of training.

        Parameters
        ----------
        feature_names : Sequence[str] | None, optional
            Subset of ``feature_names`` to return; all when None.

        Returns
        -------
        tuple[np.ndarray, np.ndarray]
            ``X`` of shape ``(n, k)`` and ``y`` of shape ``(n,)``.
        """
        names = list(feature_names) if feature_names is not None else list(self.feature_names)
        columns = [self.feature_names.index(name) for name in names]
        rows = [
            entry
            for entry in self._entries.values()
            if entry.label.is_confirmed and entry.source is not LabelSource.EXACT
        ]
        if not rows:
            return np.empty((0, len(columns))), np.empty(0, dtype=int)

        X = np.asarray([[entry.features[c] for c in columns] for entry in rows], dtype=np.float64)
        y = np.asarray([int(entry.label is Label.MATCH) for entry in rows], dtype=int)
        return X, y

    def to_frame(self) -> pd.DataFrame:
        """Tabular view of all entries, in insertion order."""
        records = []
        for entry in self._entries.values():
            record = {
                "A": entry.item_a,
                "B": entry.item_b,
                "label": str(entry.label),
                "source": str(entry.source),
                "version": entry.version,
            }
            record.update(zip(self.feature_names, entry.features, strict=False))
            records.append(record)
        columns = ["A", "B", "label", "source", "version", *self.feature_names]
        return pd.DataFrame.from_records(records, columns=columns)
