"""Content digests for input datasets and written outputs."""

import hashlib
from collections.abc import Iterable
from pathlib import Path

__all__ = ["format_sha256", "calculate_file_sha256", "digest_files"]

SHA256_PREFIX = "sha256:"


def format_sha256(hex_digest: str) -> str:
    """Prefix a hex digest with ``sha256:``."""
    return f"{SHA256_PREFIX}{hex_digest}"


def calculate_file_sha256(path: Path) -> str:
    """SHA-256 of a file's bytes, prefixed with ``sha256:``.

    Raises
    ------
    FileNotFoundError
        If ``path`` is not a file.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {path}")

    with path.open("rb") as f:
        digest = hashlib.file_digest(f, "sha256")
    return format_sha256(digest.hexdigest())


def digest_files(paths: Iterable[str | Path]) -> dict[str, str]:
    """Map each path (as given) to its prefixed SHA-256."""
    return {str(p): calculate_file_sha256(Path(p)) for p in paths}
