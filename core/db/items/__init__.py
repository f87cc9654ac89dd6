"""
Synced item storage re-exports.
"""
from core.db.items.items_store import (
    count_synced_items,
    get_synced_items,
    save_synced_item,
    save_synced_items,
)

__all__ = [
    "count_synced_items",
    "get_synced_items",
    "save_synced_item",
    "save_synced_items",
]
