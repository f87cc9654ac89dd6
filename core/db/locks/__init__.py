"""
Sync lock re-exports.
"""
from core.db.locks.lock_store import acquire_sync_lock, get_sync_lock, release_sync_lock

__all__ = [
    "acquire_sync_lock",
    "get_sync_lock",
    "release_sync_lock",
]
