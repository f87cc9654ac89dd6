"""
Data types shared by the reconciliation engine, the completion poller and the
session manager.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Union


def utcnow() -> datetime:
    """Naive UTC now; timestamps are stored as ISO text without an offset."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utcnow_iso() -> str:
    return utcnow().isoformat(timespec="seconds")


class ItemState(str, Enum):
    ACTIVE_SYNCED = "active_synced"
    COMPLETED_PENDING = "completed_pending"
    COMPLETED_AT_SOURCE = "completed_at_source"


@dataclass(frozen=True)
class SyncedItem:
    canonical_name: str
    display_name: str
    downstream_id: Optional[str]
    completed_at_source: bool = False
    synced_at: Optional[str] = None
    completed_at: Optional[str] = None

    @property
    def state(self) -> ItemState:
        # completed-pending is only known to the poller and is never stored
        if self.completed_at_source:
            return ItemState.COMPLETED_AT_SOURCE
        return ItemState.ACTIVE_SYNCED

    def mark_completed(self, when: Optional[str] = None) -> "SyncedItem":
        return replace(self, completed_at_source=True, completed_at=when or utcnow_iso())

    def to_dict(self) -> Dict:
        return {
            "canonical_name": self.canonical_name,
            "display_name": self.display_name,
            "downstream_id": self.downstream_id,
            "completed_at_source": self.completed_at_source,
            "synced_at": self.synced_at,
            "completed_at": self.completed_at,
        }

    @classmethod
    def from_row(cls, row: Dict) -> "SyncedItem":
        return cls(
            canonical_name=row["canonical_name"],
            display_name=row.get("display_name") or row["canonical_name"],
            downstream_id=row.get("downstream_id"),
            completed_at_source=bool(row.get("completed_at_source")),
            synced_at=row.get("synced_at"),
            completed_at=row.get("completed_at"),
        )


# canonical name -> entry
ItemStore = Dict[str, SyncedItem]


@dataclass(frozen=True)
class SourceSession:
    """Cookie set captured from the origin plus the time it was last renewed."""

    cookies: List[Dict] = field(default_factory=list)
    renewed_at: Optional[str] = None


class ItemOutcome(str, Enum):
    PUSHED = "pushed"
    SKIPPED_ALREADY_SYNCED = "skipped_already_synced"
    FAILED_WILL_RETRY = "failed_will_retry"


class MarkResult(str, Enum):
    MARKED = "marked"
    ALREADY_DONE = "already_done"
    NOT_FOUND = "not_found"
    FAILED = "failed"

    @property
    def confirmed(self) -> bool:
        return self in (MarkResult.MARKED, MarkResult.ALREADY_DONE)


@dataclass(frozen=True)
class TaskFound:
    done: bool


@dataclass(frozen=True)
class TaskNotFound:
    pass


@dataclass(frozen=True)
class TaskQueryError:
    message: str
    transient: bool = True


TaskStatus = Union[TaskFound, TaskNotFound, TaskQueryError]


@dataclass
class ReconcilePlan:
    # original casing, one entry per canonical name, in scrape order
    to_push: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


__all__ = [
    "utcnow",
    "utcnow_iso",
    "ItemState",
    "SyncedItem",
    "ItemStore",
    "SourceSession",
    "ItemOutcome",
    "MarkResult",
    "TaskFound",
    "TaskNotFound",
    "TaskQueryError",
    "TaskStatus",
    "ReconcilePlan",
]
