"""
Account storage re-exports.
"""
from core.db.accounts.account_store import (
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

__all__ = [
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
]
