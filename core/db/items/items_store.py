"""
Synced item storage helpers: one row per account and canonical item name.
"""
from __future__ import annotations

from typing import Dict

from core.db.base import get_conn, transaction
from core.sync.models import SyncedItem

_UPSERT = """
    INSERT INTO synced_items (
        account_id, canonical_name, display_name, downstream_id,
        completed_at_source, synced_at, completed_at
    )
    VALUES (?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT (account_id, canonical_name) DO UPDATE SET
        display_name = EXCLUDED.display_name,
        downstream_id = EXCLUDED.downstream_id,
        completed_at_source = EXCLUDED.completed_at_source,
        synced_at = EXCLUDED.synced_at,
        completed_at = EXCLUDED.completed_at
"""


def _params(account_id: int, item: SyncedItem) -> tuple:
    return (
        account_id,
        item.canonical_name,
        item.display_name,
        item.downstream_id,
        1 if item.completed_at_source else 0,
        item.synced_at,
        item.completed_at,
    )


def get_synced_items(account_id: int) -> Dict[str, SyncedItem]:
    """Return the account's store keyed by canonical name."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT canonical_name, display_name, downstream_id, completed_at_source, synced_at, completed_at
        FROM synced_items
        WHERE account_id = ?
        ORDER BY canonical_name
        """,
        (account_id,),
    )
    rows = cur.fetchall()
    conn.close()
    return {row["canonical_name"]: SyncedItem.from_row(dict(row)) for row in rows}


def save_synced_item(account_id: int, item: SyncedItem) -> None:
    """Upsert a single entry (used right after each push/mark for durability)."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(_UPSERT, _params(account_id, item))
    conn.commit()
    conn.close()


def save_synced_items(account_id: int, items: Dict[str, SyncedItem]) -> int:
    """Write the whole store in one transaction. Entries are never deleted here."""
    if not items:
        return 0
    with transaction() as cur:
        cur.executemany(_UPSERT, [_params(account_id, item) for item in items.values()])
    return len(items)


def count_synced_items(account_id: int) -> Dict:
    """Return simple counts for an account."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT
            COUNT(*) AS total,
            COALESCE(SUM(CASE WHEN completed_at_source = 0 THEN 1 ELSE 0 END), 0) AS active
        FROM synced_items
        WHERE account_id = ?
        """,
        (account_id,),
    )
    row = cur.fetchone()
    conn.close()
    total = int(row["total"]) if row else 0
    active = int(row["active"]) if row else 0
    return {"total": total, "active": active, "completed_at_source": total - active}


__all__ = [
    "get_synced_items",
    "save_synced_item",
    "save_synced_items",
    "count_synced_items",
]
