"""
Per-account sync lock records.

A lock carries an expiry so a cycle that died without releasing it blocks the
account for at most ttl_seconds.
"""
from __future__ import annotations

import secrets
from datetime import timedelta
from typing import Dict, Optional

from core.db.base import get_conn
from core.sync.models import utcnow


def acquire_sync_lock(account_id: int, ttl_seconds: int) -> Optional[str]:
    """
    Take the lock for an account.
    Returns a holder token on success, None if a live lock is held elsewhere.
    """
    holder = secrets.token_urlsafe(12)
    now = utcnow()
    now_str = now.isoformat(timespec="seconds")
    expires = (now + timedelta(seconds=ttl_seconds)).isoformat(timespec="seconds")

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO sync_locks (account_id, holder, acquired_at, expires_at)
        VALUES (?, ?, ?, ?)
        ON CONFLICT (account_id) DO UPDATE SET
            holder = EXCLUDED.holder,
            acquired_at = EXCLUDED.acquired_at,
            expires_at = EXCLUDED.expires_at
        WHERE sync_locks.expires_at < ?
        RETURNING holder
        """,
        (account_id, holder, now_str, expires, now_str),
    )
    row = cur.fetchone()
    conn.commit()
    conn.close()

    if row and row["holder"] == holder:
        return holder
    return None


def release_sync_lock(account_id: int, holder: str) -> None:
    """Drop the lock if it is still ours."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "DELETE FROM sync_locks WHERE account_id = ? AND holder = ?",
        (account_id, holder),
    )
    conn.commit()
    conn.close()


def get_sync_lock(account_id: int) -> Optional[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "SELECT account_id, holder, acquired_at, expires_at FROM sync_locks WHERE account_id = ?",
        (account_id,),
    )
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


__all__ = [
    "acquire_sync_lock",
    "release_sync_lock",
    "get_sync_lock",
]
