"""
Schema helpers for Postgres.
"""
from __future__ import annotations

from core.db.base import get_conn


def init_db() -> None:
    """Create the accounts, synced_items, source_sessions and sync_locks tables if they don't exist."""
    conn = get_conn()
    cur = conn.cursor()

    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS accounts(
            id SERIAL PRIMARY KEY,
            owner_email TEXT NOT NULL UNIQUE,
            amazon_email TEXT,
            amazon_password TEXT,
            todoist_token TEXT,
            todoist_project_id TEXT,
            push_interval_minutes INTEGER,
            poll_interval_hours INTEGER,
            active INTEGER NOT NULL DEFAULT 1,
            status TEXT NOT NULL DEFAULT 'ok',
            auth_failures INTEGER NOT NULL DEFAULT 0,
            auth_failure_notified INTEGER NOT NULL DEFAULT 0,
            last_push_at TEXT,
            last_poll_at TEXT,
            created_at TEXT
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS synced_items(
            account_id INTEGER NOT NULL,
            canonical_name TEXT NOT NULL,
            display_name TEXT NOT NULL,
            downstream_id TEXT,
            completed_at_source INTEGER NOT NULL DEFAULT 0,
            synced_at TEXT,
            completed_at TEXT,
            PRIMARY KEY(account_id, canonical_name),
            FOREIGN KEY(account_id) REFERENCES accounts(id) ON DELETE CASCADE
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS source_sessions(
            account_id INTEGER PRIMARY KEY,
            cookies TEXT NOT NULL,
            renewed_at TEXT NOT NULL,
            FOREIGN KEY(account_id) REFERENCES accounts(id) ON DELETE CASCADE
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS sync_locks(
            account_id INTEGER PRIMARY KEY,
            holder TEXT NOT NULL,
            acquired_at TEXT NOT NULL,
            expires_at TEXT NOT NULL
        )
        """
    )

    conn.commit()
    conn.close()


__all__ = ["init_db"]
