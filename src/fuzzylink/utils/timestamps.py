"""Clock helpers for audit events and progress output."""

from datetime import UTC, datetime

__all__ = ["get_iso_timestamp", "format_clock_time"]


def get_iso_timestamp() -> str:
    """Current UTC time as ISO-8601 with microseconds and a ``Z`` suffix."""
    return datetime.now(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


def format_clock_time() -> str:
    """Local wall-clock time for progress messages (e.g. ``14:03:22``)."""
    return datetime.now().strftime("%X")
