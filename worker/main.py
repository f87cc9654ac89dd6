"""
Sync worker: push new shopping list items to Todoist and check completed
tasks off on the Alexa list.

Two operations run per account, each under the account's lock and a hard
time limit:
- push cycle: scrape -> reconcile -> create tasks (optionally followed by a
  completion poll on the same page load)
- completion poll: ask Todoist about every active item, tick completed ones

Usage:
  python -m worker.main                      # scheduler loop for all accounts
  python -m worker.main --once               # one scheduler pass
  python -m worker.main --account 3          # push cycle for one account
  python -m worker.main --account 3 --poll   # push cycle + completion poll
  python -m worker.main --account 3 --poll-only
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timedelta
from functools import partial
from typing import Dict, List, Optional

from dotenv import load_dotenv

from app.email_utils import notify_auth_failure, notify_verification_needed
from core.config import Settings, load_settings
from core.database import (
    STATUS_AUTH_FAILED,
    STATUS_OK,
    STATUS_SESSION_EXPIRED,
    STATUS_VERIFICATION_NEEDED,
    acquire_sync_lock,
    delete_source_session,
    get_account,
    get_active_accounts,
    get_source_session,
    get_synced_items,
    init_db,
    mark_auth_failure_notified,
    mark_poll_run,
    mark_push_run,
    record_auth_failure,
    release_sync_lock,
    reset_auth_failures,
    save_source_session,
    save_synced_item,
    save_synced_items,
    set_account_status,
)
from core.sync.completions import mark_completed_at_source, pending_completions, poll_completions
from core.sync.errors import (
    AuthenticationFailed,
    OriginPageError,
    SessionExpired,
    SyncLockBusy,
    VerificationRequired,
)
from core.sync.models import ItemOutcome, ItemStore, utcnow
from core.sync.reconcile import normalize_name, push_planned, reconcile
from core.sync.session_manager import SessionManager
from worker.alexa_engine import login as amazon_login
from worker.alexa_engine import open_shopping_list
from worker.todoist_client import TodoistClient

# Load `.env` for local/dev runs (override=True so updates take effect after restart).
load_dotenv(override=True)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
log = logging.getLogger("worker")

# report statuses
OK = "ok"
SKIPPED = "skipped"
TIMEOUT = "timeout"
ERROR = "error"


@dataclass
class CycleReport:
    account_id: int
    kind: str
    status: str = OK
    dry_run: bool = False
    scraped: int = 0
    pushed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    completed_downstream: List[str] = field(default_factory=list)
    marked: List[str] = field(default_factory=list)
    # completed downstream, not yet checked off at the origin
    pending: List[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict:
        return asdict(self)


def make_session_manager(account: Dict, settings: Settings) -> SessionManager:
    return SessionManager(
        account["id"],
        login=partial(amazon_login, headless=settings.headless),
        load=get_source_session,
        save=save_source_session,
        delete=delete_source_session,
        verification_wait_seconds=settings.verification_wait_seconds,
    )


def make_todoist_client(account: Dict, settings: Settings) -> TodoistClient:
    return TodoistClient(
        api_token=account.get("todoist_token") or "",
        project_id=account.get("todoist_project_id") or "",
        base_url=settings.todoist_api_url,
        timeout=settings.http_timeout_seconds,
        max_attempts=settings.http_max_attempts,
    )


async def _ensure_session(manager: SessionManager, account: Dict):
    session = manager.current()
    if session is not None:
        return session
    if account.get("status") == STATUS_AUTH_FAILED:
        # a rejected password is not retried until new credentials are stored
        raise AuthenticationFailed("Amazon credentials were rejected; waiting for new credentials")
    email = account.get("amazon_email")
    password = account.get("amazon_password")
    if not (email and password):
        raise AuthenticationFailed("Amazon account is not connected")
    return await manager.authenticate(email, password)


async def _poll_and_mark(view, store: ItemStore, client, account_id: int, report: CycleReport, dry_run: bool) -> ItemStore:
    completed = await poll_completions(store, client.get_task_status)
    report.completed_downstream = completed
    if not completed:
        return store

    if dry_run:
        log.info("[DRY RUN] Would mark complete: %s", ", ".join(completed))
        report.pending = pending_completions(store, completed)
        return store

    results, store = await mark_completed_at_source(
        view, completed, store, on_marked=partial(save_synced_item, account_id)
    )
    report.marked = [name for name, result in results.items() if result.confirmed]
    report.pending = pending_completions(store, completed)
    if report.pending:
        log.warning("Completed in Todoist but still open on the list: %s", ", ".join(report.pending))
    return store


async def _push_cycle(account: Dict, settings: Settings, poll: bool) -> CycleReport:
    account_id = int(account["id"])
    report = CycleReport(account_id=account_id, kind="push+poll" if poll else "push", dry_run=settings.dry_run)

    manager = make_session_manager(account, settings)
    session = await _ensure_session(manager, account)
    client = make_todoist_client(account, settings)

    try:
        async with open_shopping_list(session.cookies, headless=settings.headless) as view:
            names = await view.read_items()
            manager.refresh(await view.cookies())
            report.scraped = len(names)

            store = get_synced_items(account_id)
            plan = reconcile(names, store)
            report.skipped = list(plan.skipped)

            if settings.dry_run:
                for name in plan.to_push:
                    log.info("[DRY RUN] Would sync: %s", name)
                report.pushed = list(plan.to_push)
            else:
                outcomes, store = await push_planned(
                    plan,
                    store,
                    client.create_task,
                    on_pushed=partial(save_synced_item, account_id),
                )
                report.pushed = [n for n in plan.to_push if outcomes.get(normalize_name(n)) is ItemOutcome.PUSHED]
                report.failed = [n for n in plan.to_push if outcomes.get(normalize_name(n)) is ItemOutcome.FAILED_WILL_RETRY]

            if poll:
                store = await _poll_and_mark(view, store, client, account_id, report, settings.dry_run)
                manager.refresh(await view.cookies())
    except SessionExpired:
        manager.invalidate()
        raise
    finally:
        await client.aclose()

    if not settings.dry_run:
        save_synced_items(account_id, store)
        now = utcnow().isoformat(timespec="seconds")
        mark_push_run(account_id, now)
        if poll:
            mark_poll_run(account_id, now)

    log.info(
        "Push cycle complete",
        extra={"account_id": account_id, "pushed": len(report.pushed), "failed": len(report.failed)},
    )
    return report


async def _poll_cycle(account: Dict, settings: Settings) -> CycleReport:
    account_id = int(account["id"])
    report = CycleReport(account_id=account_id, kind="poll", dry_run=settings.dry_run)

    store = get_synced_items(account_id)
    client = make_todoist_client(account, settings)
    try:
        completed = await poll_completions(store, client.get_task_status)
    finally:
        await client.aclose()
    report.completed_downstream = completed

    if completed and not settings.dry_run:
        manager = make_session_manager(account, settings)
        session = await _ensure_session(manager, account)
        try:
            async with open_shopping_list(session.cookies, headless=settings.headless) as view:
                results, store = await mark_completed_at_source(
                    view, completed, store, on_marked=partial(save_synced_item, account_id)
                )
                manager.refresh(await view.cookies())
        except SessionExpired:
            manager.invalidate()
            raise
        report.marked = [name for name, result in results.items() if result.confirmed]
        save_synced_items(account_id, store)
    elif completed:
        log.info("[DRY RUN] Would mark complete: %s", ", ".join(completed))
    report.pending = pending_completions(store, completed)
    if report.pending and not settings.dry_run:
        log.warning("Completed in Todoist but still open on the list: %s", ", ".join(report.pending))

    if not settings.dry_run:
        mark_poll_run(account_id)
    return report


def _handle_auth_failure(account: Dict, settings: Settings, exc: Exception) -> None:
    account_id = int(account["id"])
    threshold = settings.auth_failure_notify_threshold
    failures = record_auth_failure(account_id, pause_at=threshold)
    log.error("Amazon authentication failed", extra={"account_id": account_id, "failures": failures, "error": str(exc)})
    if failures < threshold or account.get("auth_failure_notified"):
        return
    try:
        notify_auth_failure(account["owner_email"], account_id, failures, str(exc))
        mark_auth_failure_notified(account_id)
    except Exception as e:
        log.error("Failed to send email", extra={"to": account["owner_email"], "error": str(e)})


def _handle_verification_needed(account: Dict) -> None:
    account_id = int(account["id"])
    if account.get("status") == STATUS_VERIFICATION_NEEDED:
        return
    set_account_status(account_id, STATUS_VERIFICATION_NEEDED)
    try:
        notify_verification_needed(account["owner_email"], account_id)
    except Exception as e:
        log.error("Failed to send email", extra={"to": account["owner_email"], "error": str(e)})


async def _run_locked(account_id: int, settings: Settings, kind: str, operation) -> CycleReport:
    account = get_account(account_id)
    if not account:
        raise LookupError(f"Unknown account {account_id}")
    if not account.get("active"):
        log.info("Account inactive, skipping", extra={"account_id": account_id})
        return CycleReport(account_id=account_id, kind=kind, status=SKIPPED)

    holder = acquire_sync_lock(account_id, settings.lock_ttl_seconds)
    if not holder:
        raise SyncLockBusy(f"A sync for account {account_id} is already running")

    try:
        report = await asyncio.wait_for(operation(account), timeout=settings.cycle_timeout_seconds)
    except asyncio.TimeoutError:
        log.error("Cycle timed out", extra={"account_id": account_id, "seconds": settings.cycle_timeout_seconds})
        return CycleReport(account_id=account_id, kind=kind, status=TIMEOUT, error="cycle timed out")
    except VerificationRequired as exc:
        _handle_verification_needed(account)
        return CycleReport(account_id=account_id, kind=kind, status=STATUS_VERIFICATION_NEEDED, error=str(exc))
    except AuthenticationFailed as exc:
        if account.get("status") != STATUS_AUTH_FAILED:
            _handle_auth_failure(account, settings, exc)
        return CycleReport(account_id=account_id, kind=kind, status=STATUS_AUTH_FAILED, error=str(exc))
    except OriginPageError as exc:
        log.warning("Origin page not as expected, will retry", extra={"account_id": account_id, "error": str(exc)})
        return CycleReport(account_id=account_id, kind=kind, status=ERROR, error=str(exc))
    except SessionExpired as exc:
        set_account_status(account_id, STATUS_SESSION_EXPIRED)
        log.warning("Session expired mid-cycle", extra={"account_id": account_id})
        return CycleReport(account_id=account_id, kind=kind, status=STATUS_SESSION_EXPIRED, error=str(exc))
    except Exception as exc:
        log.exception("Error during cycle", extra={"account_id": account_id, "error": str(exc)})
        return CycleReport(account_id=account_id, kind=kind, status=ERROR, error=str(exc))
    finally:
        release_sync_lock(account_id, holder)

    if not settings.dry_run and (account.get("status") != STATUS_OK or account.get("auth_failures")):
        reset_auth_failures(account_id)
    return report


async def run_push_cycle(account_id: int, settings: Settings | None = None, poll: bool = False) -> CycleReport:
    settings = settings or load_settings()
    kind = "push+poll" if poll else "push"
    return await _run_locked(account_id, settings, kind, lambda account: _push_cycle(account, settings, poll))


async def run_completion_poll(account_id: int, settings: Settings | None = None) -> CycleReport:
    settings = settings or load_settings()
    return await _run_locked(account_id, settings, "poll", lambda account: _poll_cycle(account, settings))


def is_due(last_run: str | None, interval: timedelta, now: datetime) -> bool:
    if not last_run:
        return True
    try:
        last = datetime.fromisoformat(last_run)
    except ValueError:
        return True
    return now - last >= interval


def due_operations(account: Dict, settings: Settings, now: datetime) -> tuple[bool, bool]:
    """Return (push_due, poll_due) for an account."""
    push_minutes = account.get("push_interval_minutes") or settings.default_push_interval_minutes
    poll_hours = account.get("poll_interval_hours") or settings.default_poll_interval_hours
    push_due = is_due(account.get("last_push_at"), timedelta(minutes=push_minutes), now)
    poll_due = is_due(account.get("last_poll_at"), timedelta(hours=poll_hours), now)
    return push_due, poll_due


async def run_account(account: Dict, settings: Settings, semaphore: asyncio.Semaphore) -> Optional[CycleReport]:
    if account.get("status") in (STATUS_AUTH_FAILED, STATUS_VERIFICATION_NEEDED):
        # waits for new credentials or a code through the connect route
        return None
    push_due, poll_due = due_operations(account, settings, utcnow())
    if not (push_due or poll_due):
        return None

    async with semaphore:
        try:
            if push_due:
                # new items first; a due poll reuses the same page load
                return await run_push_cycle(account["id"], settings, poll=poll_due)
            return await run_completion_poll(account["id"], settings)
        except SyncLockBusy:
            log.info("Sync already running, skipping", extra={"account_id": account["id"]})
            return None


async def run_once(settings: Settings | None = None) -> List[CycleReport]:
    settings = settings or load_settings()
    log.info("Checking accounts...")

    accounts = get_active_accounts()
    if not accounts:
        log.info("No active accounts. Nothing to sync.")
        return []

    semaphore = asyncio.Semaphore(settings.max_concurrent_sessions)
    results = await asyncio.gather(*(run_account(a, settings, semaphore) for a in accounts))
    reports = [r for r in results if r is not None]
    log.info("Scheduler pass complete", extra={"accounts": len(accounts), "cycles": len(reports)})
    return reports


def _parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Alexa shopping list to Todoist sync worker")
    parser.add_argument("--account", type=int, help="run a single cycle for this account id")
    parser.add_argument("--poll", action="store_true", help="also check Todoist for completed tasks")
    parser.add_argument("--poll-only", action="store_true", help="only check Todoist for completed tasks")
    parser.add_argument("--dry-run", action="store_true", help="scrape and plan without writing anything")
    parser.add_argument("--once", action="store_true", help="run a single scheduler pass and exit")
    return parser.parse_args(argv)


async def main(argv: List[str] | None = None):
    args = _parse_args(argv)
    settings = load_settings()
    if args.dry_run:
        settings = replace(settings, dry_run=True)
    if settings.dry_run:
        log.info("Running in DRY RUN mode - nothing will be synced")

    init_db()

    if args.account is not None:
        if args.poll_only:
            report = await run_completion_poll(args.account, settings)
        else:
            report = await run_push_cycle(args.account, settings, poll=args.poll)
        print(json.dumps(report.to_dict(), indent=2))
        return report

    while True:
        try:
            await run_once(settings)
        except Exception as e:
            log.exception("Error during run", extra={"error": str(e)})

        if args.once:
            break

        log.info("Sleeping", extra={"seconds": settings.check_interval})
        await asyncio.sleep(settings.check_interval)


if __name__ == "__main__":
    asyncio.run(main())
