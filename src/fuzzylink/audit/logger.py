"""JSONL audit trail for linkage runs.

Each call appends one JSON object to the log file and flushes it, so a
crashed run still leaves a readable trail up to the failing stage.
"""

import json
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict
from pathlib import Path
from typing import Any

from fuzzylink.audit.helpers import get_package_version
from fuzzylink.audit.models import LEVELS, LogEvent
from fuzzylink.utils import get_iso_timestamp

__all__ = ["AuditLogger"]


class AuditLogger:
    """Append-only JSONL event writer bound to one linkage run.

    Attributes
    ----------
    run_id : str
        Identifier stamped on every event.
    log_path : Path
        Destination JSONL file.
    current_stage : str | None
        Stage attached to events that do not name one.
    """

    def __init__(self, run_id: str, log_path: Path) -> None:
        self.run_id = run_id
        self.log_path = Path(log_path)
        self.current_stage: str | None = None

        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self.log_path.open("a", encoding="utf-8")

    def __enter__(self) -> "AuditLogger":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        """Flush and close the underlying file."""
        if not self._file.closed:
            self._file.flush()
            self._file.close()

    def set_stage(self, stage: str | None) -> None:
        self.current_stage = stage

    # ------------------------------------------------------------------
    # Core writer
    # ------------------------------------------------------------------

    def event(
        self,
        event_type: str,
        data: dict[str, Any] | None = None,
        level: str = "INFO",
        stage: str | None = None,
        item: str | None = None,
    ) -> None:
        """Append one event.

        Parameters
        ----------
        event_type : str
            Event name, e.g. ``"iteration_finished"``.
        data : dict[str, Any] | None, optional
            Payload. Numpy scalars and tuples are converted to JSON types.
        level : str, optional
            One of ``DEBUG``, ``INFO``, ``WARN`` or ``ERROR``.
        stage : str | None, optional
            Stage name; defaults to ``current_stage``.
        item : str | None, optional
            Join-field value when the event concerns a single record.

        Raises
        ------
        ValueError
            If ``level`` is not a known level.
        """
        if level not in LEVELS:
            raise ValueError(f"Unknown log level: {level!r}")

        record = LogEvent(
            ts=get_iso_timestamp(),
            run_id=self.run_id,
            level=level,
            event=event_type,
            data=data or {},
            stage=stage if stage is not None else self.current_stage,
            item=item,
        )
        json.dump(
            asdict(record),
            self._file,
            ensure_ascii=False,
            separators=(",", ":"),
            default=_json_default,
        )
        self._file.write("\n")
        self._file.flush()

    def warning(self, event_type: str, data: dict[str, Any] | None = None) -> None:
        """Append a WARN event in the current stage."""
        self.event(event_type, data=data, level="WARN")

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    def run_started(
        self,
        command: list[str],
        parameters: dict[str, Any],
        inputs: dict[str, str] | None = None,
    ) -> None:
        """Open the run; ``inputs`` maps input paths to their digests."""
        data: dict[str, Any] = {
            "command": command,
            "parameters": parameters,
            "version": get_package_version(),
        }
        if inputs:
            data["inputs"] = inputs
        self.event("run_started", data=data)

    def run_finished(
        self,
        status: str,
        duration_seconds: float,
        oracle_labels: int | None = None,
    ) -> None:
        """Close the run with its status ("success" or "failed")."""
        data: dict[str, Any] = {"status": status, "duration_seconds": duration_seconds}
        if oracle_labels is not None:
            data["oracle_labels"] = oracle_labels
        self.event("run_finished", data=data, stage=None)

    # ------------------------------------------------------------------
    # Stage lifecycle
    # ------------------------------------------------------------------

    def stage_started(self, stage: str, expected_items: int | None = None) -> None:
        """Enter ``stage``; later events default to it."""
        self.set_stage(stage)
        data = {} if expected_items is None else {"expected_items": expected_items}
        self.event("stage_started", data=data, stage=stage)

    def stage_finished(
        self,
        stage: str,
        duration_seconds: float,
        counters: dict[str, Any] | None = None,
    ) -> None:
        data: dict[str, Any] = {"duration_seconds": duration_seconds}
        if counters:
            data["counters"] = counters
        self.event("stage_finished", data=data, stage=stage)

    @contextmanager
    def stage(
        self, name: str, expected_items: int | None = None
    ) -> Iterator[dict[str, Any]]:
        """Bracket a block of work with stage_started / stage_finished.

        Yields a counters dict; whatever the block puts in it is reported
        in the ``stage_finished`` event. Nothing is reported as finished
        if the block raises.

        Examples
        --------
        >>> with logger.stage("cutoff") as counters:  # doctest: +SKIP
        ...     counters["status"] = "defined"
        """
        start = time.perf_counter()
        counters: dict[str, Any] = {}
        self.stage_started(name, expected_items=expected_items)
        yield counters
        self.stage_finished(name, time.perf_counter() - start, counters)

    # ------------------------------------------------------------------
    # Linkage-specific events
    # ------------------------------------------------------------------

    def labels_added(
        self,
        source: str,
        requested: int,
        matches: int,
        non_matches: int,
    ) -> None:
        """Record one batch of oracle answers.

        ``requested - matches - non_matches`` answers were Unknown.
        """
        self.event(
            "labels_added",
            data={
                "source": source,
                "requested": requested,
                "matches": matches,
                "non_matches": non_matches,
                "unknown": requested - matches - non_matches,
            },
            level="DEBUG",
        )

    def artifact_written(
        self,
        path: str,
        sha256: str,
        stage: str | None = None,
        bytes_written: int | None = None,
        row_count: int | None = None,
    ) -> None:
        """Record an output file and its digest."""
        data: dict[str, Any] = {"path": path, "sha256": sha256}
        if bytes_written is not None:
            data["bytes"] = bytes_written
        if row_count is not None:
            data["row_count"] = row_count
        self.event("artifact_written", data=data, stage=stage)

    def error(
        self,
        exception_class: str,
        message: str,
        stage: str | None = None,
        traceback: str | None = None,
    ) -> None:
        data: dict[str, Any] = {"exception_class": exception_class, "message": message}
        if traceback is not None:
            data["traceback"] = traceback
        self.event("error", data=data, stage=stage, level="ERROR")


def _json_default(value: Any) -> Any:
    """Serialise numpy scalars and tuples that leak into event payloads."""
    if hasattr(value, "item"):
        return value.item()
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return str(value)
