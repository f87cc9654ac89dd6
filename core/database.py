"""
Single import point for storage helpers used by the worker and the API.
"""
from core.db.schema import init_db
from core.db.accounts import (
    STATUS_AUTH_FAILED,
    STATUS_OK,
    STATUS_SESSION_EXPIRED,
    STATUS_VERIFICATION_NEEDED,
    create_account,
    get_account,
    get_active_accounts,
    mark_auth_failure_notified,
    mark_poll_run,
    mark_push_run,
    record_auth_failure,
    reset_auth_failures,
    set_account_status,
    update_amazon_credentials,
    update_intervals,
    update_todoist_config,
)
from core.db.items import (
    count_synced_items,
    get_synced_items,
    save_synced_item,
    save_synced_items,
)
from core.db.locks import acquire_sync_lock, get_sync_lock, release_sync_lock
from core.db.sessions import (
    delete_source_session,
    get_source_session,
    save_source_session,
)

__all__ = [
    "init_db",
    "STATUS_AUTH_FAILED",
    "STATUS_OK",
    "STATUS_SESSION_EXPIRED",
    "STATUS_VERIFICATION_NEEDED",
    "create_account",
    "get_account",
    "get_active_accounts",
    "mark_auth_failure_notified",
    "mark_poll_run",
    "mark_push_run",
    "record_auth_failure",
    "reset_auth_failures",
    "set_account_status",
    "update_amazon_credentials",
    "update_intervals",
    "update_todoist_config",
    "count_synced_items",
    "get_synced_items",
    "save_synced_item",
    "save_synced_items",
    "acquire_sync_lock",
    "get_sync_lock",
    "release_sync_lock",
    "delete_source_session",
    "get_source_session",
    "save_source_session",
]
