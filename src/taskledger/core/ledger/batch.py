# src/taskledger/core/ledger/batch.py
"""Job correlation store: links task executions to the batch jobs they ran.

Two backends implement one protocol. SqlTaskBatchDao writes to the
``<prefix>task_batch`` table; InMemoryTaskBatchDao keeps links in a dict
and is for tests and throwaway runs only. create_task_batch_dao() picks
one at composition time.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import structlog
from sqlalchemy import select

from taskledger.contracts import JobCorrelation
from taskledger.core.ledger._database_ops import DatabaseOps

if TYPE_CHECKING:
    from taskledger.core.ledger.database import LedgerDB

logger = structlog.get_logger(__name__)


@runtime_checkable
class TaskBatchDao(Protocol):
    """Many-to-many links between task executions and job executions.

    Both ids are opaque: neither side is required to exist when a link is
    recorded or read.
    """

    def record_link(self, execution_id: int, job_execution_id: int) -> JobCorrelation: ...

    def links_for(self, execution_id: int) -> set[int]: ...

    def execution_for(self, job_execution_id: int) -> int | None: ...


class SqlTaskBatchDao:
    """Relational backend.

    Repeat inserts of the same pair are accepted and stored again; reads
    return sets, so duplicates never show.
    """

    def __init__(self, db: LedgerDB) -> None:
        self._db = db
        self._ops = DatabaseOps(db)

    def record_link(self, execution_id: int, job_execution_id: int) -> JobCorrelation:
        self._ops.execute_insert(
            self._db.tables.task_batch.insert().values(
                task_execution_id=execution_id,
                job_execution_id=job_execution_id,
            )
        )
        logger.debug("job_correlation_recorded", execution_id=execution_id, job_execution_id=job_execution_id)
        return JobCorrelation(execution_id, job_execution_id)

    def links_for(self, execution_id: int) -> set[int]:
        table = self._db.tables.task_batch
        rows = self._ops.execute_fetchall(select(table.c.job_execution_id).where(table.c.task_execution_id == execution_id))
        return {row.job_execution_id for row in rows}

    def execution_for(self, job_execution_id: int) -> int | None:
        """Execution that ran a job; the lowest id wins if several claim it."""
        table = self._db.tables.task_batch
        result = self._ops.execute_scalar(
            select(table.c.task_execution_id)
            .where(table.c.job_execution_id == job_execution_id)
            .order_by(table.c.task_execution_id)
            .limit(1)
        )
        return None if result is None else int(result)


class InMemoryTaskBatchDao:
    """Non-durable backend for tests and ephemeral runs.

    Links live only as long as this object. Never use it where the ledger
    itself is persistent: correlations would silently vanish on restart.
    """

    def __init__(self) -> None:
        self._links: defaultdict[int, set[int]] = defaultdict(set)
        self._lock = threading.Lock()

    def record_link(self, execution_id: int, job_execution_id: int) -> JobCorrelation:
        with self._lock:
            self._links[execution_id].add(job_execution_id)
        return JobCorrelation(execution_id, job_execution_id)

    def links_for(self, execution_id: int) -> set[int]:
        with self._lock:
            return set(self._links.get(execution_id, ()))

    def execution_for(self, job_execution_id: int) -> int | None:
        with self._lock:
            owners = [execution_id for execution_id, jobs in self._links.items() if job_execution_id in jobs]
        return min(owners) if owners else None


def create_task_batch_dao(db: LedgerDB | None) -> TaskBatchDao:
    """Relational store when a storage handle is available, in-memory otherwise."""
    if db is not None:
        return SqlTaskBatchDao(db)
    logger.warning(
        "in_memory_job_correlation_store",
        detail="No ledger database configured; job correlations will not survive this process",
    )
    return InMemoryTaskBatchDao()
