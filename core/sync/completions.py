"""
Completion handling in the task system -> shopping list direction.

poll_completions() asks the task system about every active entry and returns
the names it considers completed. It never writes to the store: the entry is
only flipped once the origin has confirmed the checkbox, so a crash between
the two steps simply re-detects the completion on the next poll.
"""
from __future__ import annotations

import logging
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Protocol, Tuple

from core.sync.models import (
    ItemState,
    ItemStore,
    MarkResult,
    SyncedItem,
    TaskFound,
    TaskNotFound,
    TaskQueryError,
    TaskStatus,
    utcnow_iso,
)
from core.sync.reconcile import normalize_name

log = logging.getLogger("sync.completions")

GetTaskStatus = Callable[[str], Awaitable[TaskStatus]]
OnMarked = Callable[[SyncedItem], None]


class ListView(Protocol):
    """A rendered origin list that can check items off."""

    async def mark_done(self, name: str) -> MarkResult:
        ...


def completion_candidates(store: ItemStore) -> List[SyncedItem]:
    return [
        entry
        for entry in store.values()
        if not entry.completed_at_source and entry.downstream_id
    ]


def is_completed(status: TaskStatus) -> Optional[bool]:
    """
    True/False for a definite answer, None when the query itself failed.
    A task that is no longer found was completed and archived downstream.
    """
    if isinstance(status, TaskNotFound):
        return True
    if isinstance(status, TaskFound):
        return status.done
    if isinstance(status, TaskQueryError):
        return None
    raise TypeError(f"Unknown task status: {status!r}")


def item_states(store: ItemStore, completed_downstream: Iterable[str]) -> Dict[str, ItemState]:
    """
    Logical state of every entry. A completion seen downstream that the origin
    has not confirmed yet is pending; it is never stored as such.
    """
    pending = {normalize_name(name) for name in completed_downstream}
    states: Dict[str, ItemState] = {}
    for key, entry in store.items():
        if entry.completed_at_source:
            states[key] = ItemState.COMPLETED_AT_SOURCE
        elif key in pending:
            states[key] = ItemState.COMPLETED_PENDING
        else:
            states[key] = ItemState.ACTIVE_SYNCED
    return states


def pending_completions(store: ItemStore, completed_downstream: Iterable[str]) -> List[str]:
    states = item_states(store, completed_downstream)
    return [key for key, state in states.items() if state is ItemState.COMPLETED_PENDING]


async def poll_completions(store: ItemStore, get_task_status: GetTaskStatus) -> List[str]:
    """Return canonical names of active entries completed in the task system."""
    completed: List[str] = []

    for entry in completion_candidates(store):
        try:
            status = await get_task_status(entry.downstream_id)
        except Exception as exc:
            status = TaskQueryError(str(exc), transient=True)

        verdict = is_completed(status)
        if verdict is None:
            log.warning(
                "Error checking task %r, will retry next poll: %s",
                entry.canonical_name,
                status.message,
                extra={"task_id": entry.downstream_id, "transient": status.transient},
            )
            continue
        if verdict:
            log.info("Task %r completed downstream", entry.canonical_name)
            completed.append(entry.canonical_name)

    if completed:
        log.info("Found %d completed item(s) in the task system", len(completed))
    else:
        log.info("No completed items found in the task system")
    return completed


async def mark_completed_at_source(
    view: ListView,
    names: Iterable[str],
    store: ItemStore,
    on_marked: Optional[OnMarked] = None,
) -> Tuple[Dict[str, MarkResult], ItemStore]:
    """
    Check each name off on an already loaded origin view.
    Only confirmed results (marked now, or already checked) flip the entry.
    """
    updated: ItemStore = dict(store)
    results: Dict[str, MarkResult] = {}

    for raw in names:
        key = normalize_name(raw)
        if not key or key in results:
            continue
        entry = updated.get(key)
        target = entry.display_name if entry else raw

        try:
            result = await view.mark_done(target)
        except Exception as exc:
            log.error("Error marking %r complete: %s", target, exc)
            result = MarkResult.FAILED
        results[key] = result

        if result is MarkResult.NOT_FOUND:
            log.warning("Could not find item to mark complete: %s", target)
            continue
        if not result.confirmed:
            log.warning("Marking %r complete did not take effect", target)
            continue
        if entry is None:
            # checked off at the origin but never synced by us
            continue

        updated[key] = entry.mark_completed(utcnow_iso())
        log.info(
            "Marked complete: %s",
            target,
            extra={"already_done": result is MarkResult.ALREADY_DONE},
        )
        if on_marked is not None:
            try:
                on_marked(updated[key])
            except Exception:
                log.exception("Failed to persist completion for %r", target)

    return results, updated


__all__ = [
    "ListView",
    "completion_candidates",
    "is_completed",
    "item_states",
    "pending_completions",
    "poll_completions",
    "mark_completed_at_source",
]
