"""Structured audit logging for linkage runs.

Main Components
---------------
- AuditLogger: JSONL event logger
- LogEvent: event envelope
"""

from fuzzylink.audit.helpers import generate_run_id, get_package_version
from fuzzylink.audit.logger import AuditLogger
from fuzzylink.audit.models import LEVELS, LogEvent

__all__ = [
    "AuditLogger",
    "LogEvent",
    "LEVELS",
    "generate_run_id",
    "get_package_version",
]
