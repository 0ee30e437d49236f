"""
sayso - Observability Package.

Provides:
- Per-session JSONL decision logs
"""

from sayso.observability.session_logger import (
    SessionLogger,
    close_session_logger,
    get_session_logger,
)

__all__ = [
    "SessionLogger",
    "get_session_logger",
    "close_session_logger",
]
