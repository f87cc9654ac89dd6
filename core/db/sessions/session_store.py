"""
Origin session storage helpers.

A session row is replaced as a whole: cookies are never merged with a
previously stored set.
"""
from __future__ import annotations

import json
from typing import Optional

from core.db.base import get_conn
from core.sync.models import SourceSession, utcnow_iso


def get_source_session(account_id) -> Optional[SourceSession]:
    """Return the stored cookie set for the account, or None."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT cookies, renewed_at
        FROM source_sessions
        WHERE account_id = ?
        """,
        (int(account_id),),
    )
    row = cur.fetchone()
    conn.close()

    if not row:
        return None

    try:
        cookies = json.loads(row["cookies"] or "[]")
    except ValueError:
        print(f"[db] Unreadable cookies for account={account_id}, dropping session")
        delete_source_session(account_id)
        return None

    return SourceSession(cookies=cookies, renewed_at=row["renewed_at"])


def save_source_session(account_id, session: SourceSession) -> None:
    """Overwrite the stored session with a new cookie set."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO source_sessions (account_id, cookies, renewed_at)
        VALUES (?, ?, ?)
        ON CONFLICT (account_id) DO UPDATE SET
            cookies = EXCLUDED.cookies,
            renewed_at = EXCLUDED.renewed_at
        """,
        (int(account_id), json.dumps(session.cookies), session.renewed_at or utcnow_iso()),
    )
    conn.commit()
    conn.close()


def delete_source_session(account_id) -> None:
    """Remove the stored session (expired or disconnected)."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("DELETE FROM source_sessions WHERE account_id = ?", (int(account_id),))
    conn.commit()
    conn.close()


__all__ = [
    "get_source_session",
    "save_source_session",
    "delete_source_session",
]
