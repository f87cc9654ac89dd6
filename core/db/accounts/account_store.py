"""
Account configuration and status helpers.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from core.db.base import get_conn
from core.sync.models import utcnow_iso

STATUS_OK = "ok"
STATUS_VERIFICATION_NEEDED = "verification_needed"
STATUS_AUTH_FAILED = "auth_failed"
STATUS_SESSION_EXPIRED = "session_expired"

_COLUMNS = """
    id, owner_email, amazon_email, amazon_password, todoist_token, todoist_project_id,
    push_interval_minutes, poll_interval_hours, active, status, auth_failures,
    auth_failure_notified, last_push_at, last_poll_at, created_at
"""


def create_account(
    owner_email: str,
    todoist_token: str | None = None,
    todoist_project_id: str | None = None,
    push_interval_minutes: int | None = None,
    poll_interval_hours: int | None = None,
) -> int:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO accounts (
            owner_email, todoist_token, todoist_project_id,
            push_interval_minutes, poll_interval_hours, created_at
        )
        VALUES (?, ?, ?, ?, ?, ?)
        RETURNING id
        """,
        (
            owner_email.strip().lower(),
            todoist_token,
            todoist_project_id,
            push_interval_minutes,
            poll_interval_hours,
            utcnow_iso(),
        ),
    )
    row = cur.fetchone()
    account_id = int(row["id"]) if row else 0

    conn.commit()
    conn.close()
    return account_id


def get_account(account_id: int) -> Optional[Dict]:
    """Look up an account by numeric id. Returns dict or None."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(f"SELECT {_COLUMNS} FROM accounts WHERE id = ?", (account_id,))
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def get_active_accounts() -> List[Dict]:
    """Active accounts that have a Todoist project configured."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT {_COLUMNS}
        FROM accounts
        WHERE active = 1
          AND todoist_token IS NOT NULL AND todoist_token <> ''
          AND todoist_project_id IS NOT NULL AND todoist_project_id <> ''
        ORDER BY id
        """
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def update_amazon_credentials(account_id: int, amazon_email: str, amazon_password: str) -> None:
    """Store new origin credentials; clears any previous authentication failure."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        UPDATE accounts
        SET amazon_email = ?, amazon_password = ?, status = ?,
            auth_failures = 0, auth_failure_notified = 0
        WHERE id = ?
        """,
        (amazon_email.strip(), amazon_password, STATUS_OK, account_id),
    )
    conn.commit()
    conn.close()


def update_todoist_config(account_id: int, todoist_token: str, todoist_project_id: str) -> None:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "UPDATE accounts SET todoist_token = ?, todoist_project_id = ? WHERE id = ?",
        (todoist_token, todoist_project_id, account_id),
    )
    conn.commit()
    conn.close()


def update_intervals(account_id: int, push_interval_minutes: int, poll_interval_hours: int) -> None:
    """Set how often the account is pushed (minutes) and polled for completions (hours)."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "UPDATE accounts SET push_interval_minutes = ?, poll_interval_hours = ? WHERE id = ?",
        (push_interval_minutes, poll_interval_hours, account_id),
    )
    conn.commit()
    conn.close()


def set_account_status(account_id: int, status: str) -> None:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("UPDATE accounts SET status = ? WHERE id = ?", (status, account_id))
    conn.commit()
    conn.close()


def record_auth_failure(account_id: int, pause_at: int = 1) -> int:
    """
    Bump the failure counter. Returns the new count.
    The account is only flagged auth_failed (and skipped by the scheduler)
    once the count reaches pause_at; below that it keeps retrying.
    """
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        UPDATE accounts
        SET auth_failures = auth_failures + 1,
            status = CASE WHEN auth_failures + 1 >= ? THEN ? ELSE status END
        WHERE id = ?
        RETURNING auth_failures
        """,
        (max(1, pause_at), STATUS_AUTH_FAILED, account_id),
    )
    row = cur.fetchone()
    conn.commit()
    conn.close()
    return int(row["auth_failures"]) if row else 0


def mark_auth_failure_notified(account_id: int) -> None:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("UPDATE accounts SET auth_failure_notified = 1 WHERE id = ?", (account_id,))
    conn.commit()
    conn.close()


def reset_auth_failures(account_id: int) -> None:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "UPDATE accounts SET auth_failures = 0, auth_failure_notified = 0, status = ? WHERE id = ?",
        (STATUS_OK, account_id),
    )
    conn.commit()
    conn.close()


def mark_push_run(account_id: int, when: str | None = None) -> None:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("UPDATE accounts SET last_push_at = ? WHERE id = ?", (when or utcnow_iso(), account_id))
    conn.commit()
    conn.close()


def mark_poll_run(account_id: int, when: str | None = None) -> None:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("UPDATE accounts SET last_poll_at = ? WHERE id = ?", (when or utcnow_iso(), account_id))
    conn.commit()
    conn.close()


__all__ = [
    "STATUS_OK",
    "STATUS_VERIFICATION_NEEDED",
    "STATUS_AUTH_FAILED",
    "STATUS_SESSION_EXPIRED",
    "create_account",
    "get_account",
    "get_active_accounts",
    "update_amazon_credentials",
    "update_todoist_config",
    "update_intervals",
    "set_account_status",
    "record_auth_failure",
    "mark_auth_failure_notified",
    "reset_auth_failures",
    "mark_push_run",
    "mark_poll_run",
]
