"""Linkage orchestration engine.

This package provides the main entry point for running a complete
linkage, including configuration and result types.
"""

from fuzzylink.engine.assembly import assemble_output, scored_pairs
from fuzzylink.engine.config import LinkageConfig, LinkageResult
from fuzzylink.engine.runner import run_linkage

__all__ = [
    "LinkageConfig",
    "LinkageResult",
    "assemble_output",
    "run_linkage",
    "scored_pairs",
]
