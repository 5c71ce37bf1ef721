"""Shared helpers: timestamps and content digests."""

from fuzzylink.utils.hashing import calculate_file_sha256, digest_files, format_sha256
from fuzzylink.utils.timestamps import format_clock_time, get_iso_timestamp

__all__ = [
    "calculate_file_sha256",
    "digest_files",
    "format_clock_time",
    "format_sha256",
    "get_iso_timestamp",
]
