"""
Reconciliation engine: decide which scraped shopping list entries must become
new downstream tasks, and record the ones that were pushed.

Rules:
- Names are matched case-insensitively after trimming (the canonical name).
- A name is pushed when it has never been synced, or when its previous entry
  was already checked off at the origin (the item was re-added).
- An entry that is still active downstream is never pushed again, so there is
  at most one open task per canonical name.
"""
from __future__ import annotations

import logging
from typing import Awaitable, Callable, Dict, Iterable, Optional, Tuple

from core.sync.models import (
    ItemOutcome,
    ItemStore,
    ReconcilePlan,
    SyncedItem,
    utcnow_iso,
)

log = logging.getLogger("sync.reconcile")

CreateTask = Callable[[str], Awaitable[str]]
OnPushed = Callable[[SyncedItem], None]


def normalize_name(name: str) -> str:
    return (name or "").strip().lower()


def reconcile(scraped_names: Iterable[str], store: ItemStore) -> ReconcilePlan:
    """
    Classify a scraped snapshot against the store.
    Pure: neither the store nor anything else is touched.
    """
    plan = ReconcilePlan()
    seen = set()

    for raw in scraped_names:
        key = normalize_name(raw)
        if not key or key in seen:
            continue
        seen.add(key)

        entry = store.get(key)
        if entry is None or entry.completed_at_source:
            plan.to_push.append(raw.strip())
        else:
            plan.skipped.append(raw.strip())

    return plan


async def push_planned(
    plan: ReconcilePlan,
    store: ItemStore,
    create_task: CreateTask,
    on_pushed: Optional[OnPushed] = None,
) -> Tuple[Dict[str, ItemOutcome], ItemStore]:
    """
    Create one downstream task per planned item.
    Returns (outcome per canonical name, updated copy of the store).
    A failing item is logged and its entry left as it was.
    """
    updated: ItemStore = dict(store)
    outcomes: Dict[str, ItemOutcome] = {}

    for name in plan.skipped:
        outcomes[normalize_name(name)] = ItemOutcome.SKIPPED_ALREADY_SYNCED

    for name in plan.to_push:
        key = normalize_name(name)
        previous = updated.get(key)
        try:
            task_id = await create_task(name)
        except Exception as exc:
            log.error("Failed to sync %r: %s", name, exc, extra={"item": key})
            outcomes[key] = ItemOutcome.FAILED_WILL_RETRY
            continue

        entry = SyncedItem(
            canonical_name=key,
            display_name=name,
            downstream_id=str(task_id),
            completed_at_source=False,
            synced_at=utcnow_iso(),
            completed_at=None,
        )
        updated[key] = entry
        outcomes[key] = ItemOutcome.PUSHED

        if previous is not None and previous.completed_at_source:
            log.info("Re-synced (re-added item): %s", name, extra={"task_id": entry.downstream_id})
        else:
            log.info("Synced: %s", name, extra={"task_id": entry.downstream_id})

        if on_pushed is not None:
            try:
                on_pushed(entry)
            except Exception:
                # the full store is written again at the end of the cycle
                log.exception("Failed to persist synced item %r", name)

    return outcomes, updated


async def reconcile_and_push(
    scraped_names: Iterable[str],
    store: ItemStore,
    create_task: CreateTask,
    on_pushed: Optional[OnPushed] = None,
) -> Tuple[Dict[str, ItemOutcome], ItemStore]:
    plan = reconcile(scraped_names, store)
    if not plan.to_push:
        log.info("No new items to sync", extra={"skipped": len(plan.skipped)})
    return await push_planned(plan, store, create_task, on_pushed=on_pushed)


__all__ = [
    "normalize_name",
    "reconcile",
    "push_planned",
    "reconcile_and_push",
]
