"""Run identifiers and version lookup for the audit trail."""

import importlib.metadata
import secrets

from fuzzylink.utils import get_iso_timestamp

__all__ = ["generate_run_id", "get_package_version"]


def generate_run_id() -> str:
    """New run identifier: ``<ISO-8601 UTC timestamp>__<8 hex chars>``."""
    return f"{get_iso_timestamp()}__{secrets.token_hex(4)}"


def get_package_version() -> str:
    """Installed fuzzylink version, or the source tree's when not installed."""
    try:
        return importlib.metadata.version("fuzzylink")
    except importlib.metadata.PackageNotFoundError:
        from fuzzylink import __version__

        return __version__
