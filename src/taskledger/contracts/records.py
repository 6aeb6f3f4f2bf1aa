"""Ledger record contracts.

These are snapshots of ledger rows. The repository layer builds them from
database rows; nothing mutates them after construction.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class TaskExecution:
    """One launched task instance and its lifecycle.

    Running means end_time is None. A record that was created but never
    started has no start_time; one that was started but never completed
    has no end_time. Both are valid states for the read path.
    """

    execution_id: int
    task_name: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    exit_code: int | None = None
    exit_message: str | None = None
    error_message: str | None = None
    external_execution_id: str | None = None
    parent_execution_id: int | None = None
    parameters: tuple[str, ...] = ()
    last_updated: datetime | None = None

    def __post_init__(self) -> None:
        if self.end_time is not None and self.exit_code is None:
            raise ValueError(f"TaskExecution {self.execution_id} has an end_time but no exit_code")
        if type(self.parameters) is not tuple:
            raise TypeError(f"parameters must be tuple, got {type(self.parameters).__name__}")

    @property
    def is_running(self) -> bool:
        return self.end_time is None

    @property
    def is_started(self) -> bool:
        return self.start_time is not None


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of an ordered result set plus the size of the whole set."""

    items: Sequence[T]
    total: int
    page_index: int
    page_size: int

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return -(-self.total // self.page_size)

    @property
    def has_next(self) -> bool:
        return self.page_index + 1 < self.total_pages

    def __len__(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class NamedLock:
    """A held single-instance lock row."""

    lock_key: str
    region: str
    client_id: str
    created_at: datetime


@dataclass(frozen=True)
class JobCorrelation:
    """Link between a task execution and a batch job execution it ran."""

    execution_id: int
    job_execution_id: int


__all__ = [
    "JobCorrelation",
    "NamedLock",
    "Page",
    "TaskExecution",
]
