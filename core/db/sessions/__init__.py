"""
Origin session storage re-exports.
"""
from core.db.sessions.session_store import (
    delete_source_session,
    get_source_session,
    save_source_session,
)

__all__ = [
    "delete_source_session",
    "get_source_session",
    "save_source_session",
]
