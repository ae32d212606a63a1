"""
Activo Sessions

Saved conversations and the context carried into the next session.
"""

from .store import (
    Session,
    SessionStore,
    generate_session_id,
    get_session_context,
    summarize_messages,
)

__all__ = [
    "Session",
    "SessionStore",
    "generate_session_id",
    "get_session_context",
    "summarize_messages",
]
