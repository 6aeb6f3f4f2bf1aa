# src/taskledger/core/ledger/explorer.py
"""Read path of the task ledger.

Paged listings go through the dialect paging providers so that the same
ORDER BY (start_time DESC, task_execution_id DESC) and the same window
arithmetic apply on every backend. Point lookups and counts use plain
SQLAlchemy Core.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, select, text

from taskledger.contracts import Page, SortOrder, TaskExecution
from taskledger.core.ledger._database_ops import DatabaseOps
from taskledger.core.ledger.batch import SqlTaskBatchDao, TaskBatchDao
from taskledger.core.ledger.database import PREFIX_PLACEHOLDER
from taskledger.core.ledger.repositories import TaskExecutionRepository, load_executions
from taskledger.core.ledger.schema import EXECUTION_COLUMNS
from taskledger.core.paging import PagingQueryProvider, create_paging_query_provider

if TYPE_CHECKING:
    from taskledger.core.ledger.database import LedgerDB

logger = structlog.get_logger(__name__)

SELECT_CLAUSE = ", ".join(EXECUTION_COLUMNS)
FROM_CLAUSE = f"{PREFIX_PLACEHOLDER}execution"
SORT_KEYS: dict[str, SortOrder] = {
    "start_time": SortOrder.DESCENDING,
    "task_execution_id": SortOrder.DESCENDING,
}

_BY_NAME = "task_name = :task_name"
_RUNNING = "end_time IS NULL"
_RUNNING_BY_NAME = f"{_BY_NAME} AND {_RUNNING}"

DEFAULT_PAGE_SIZE = 20


class TaskExplorer:
    """Queries over task executions and their job correlations.

    Example:
        explorer = TaskExplorer(db)
        page = explorer.list_page("nightly-export", 0, 10)
        for execution in page.items:
            ...
    """

    def __init__(self, db: LedgerDB, batch_dao: TaskBatchDao | None = None) -> None:
        self._db = db
        self._ops = DatabaseOps(db)
        self._execution_repo = TaskExecutionRepository()
        self._batch_dao = batch_dao if batch_dao is not None else SqlTaskBatchDao(db)
        self._providers: dict[str | None, PagingQueryProvider] = {}

    # === Point lookups ===

    def get(self, execution_id: int) -> TaskExecution | None:
        """One execution with its parameters, or None if the id is unknown."""
        executions = self._db.tables.executions
        with self._db.connection() as conn:
            rows = conn.execute(select(executions).where(executions.c.task_execution_id == execution_id)).fetchall()
            if not rows:
                return None
            return load_executions(conn, self._db.tables, rows, self._execution_repo)[0]

    def find_running(self, task_name: str) -> set[TaskExecution]:
        """Every execution of task_name without an end_time."""
        executions = self._db.tables.executions
        query = select(executions).where(executions.c.task_name == task_name, executions.c.end_time.is_(None))
        with self._db.connection() as conn:
            rows = conn.execute(query).fetchall()
            return set(load_executions(conn, self._db.tables, rows, self._execution_repo))

    def latest_by_task_names(self, *task_names: str) -> list[TaskExecution]:
        """Most recently started execution for each name, newest first.

        Names with no started execution are left out.
        """
        executions = self._db.tables.executions
        latest_rows = []
        with self._db.connection() as conn:
            for name in dict.fromkeys(task_names):
                row = conn.execute(
                    select(executions)
                    .where(executions.c.task_name == name, executions.c.start_time.is_not(None))
                    .order_by(executions.c.start_time.desc(), executions.c.task_execution_id.desc())
                    .limit(1)
                ).fetchone()
                if row is not None:
                    latest_rows.append(row)
            latest_rows.sort(key=lambda r: (r.start_time, r.task_execution_id), reverse=True)
            return load_executions(conn, self._db.tables, latest_rows, self._execution_repo)

    # === Counts ===

    def count(self) -> int:
        executions = self._db.tables.executions
        return int(self._ops.execute_scalar(select(func.count()).select_from(executions)))

    def count_by_name(self, task_name: str) -> int:
        executions = self._db.tables.executions
        return int(
            self._ops.execute_scalar(select(func.count()).select_from(executions).where(executions.c.task_name == task_name))
        )

    def count_running(self, task_name: str | None = None) -> int:
        executions = self._db.tables.executions
        query = select(func.count()).select_from(executions).where(executions.c.end_time.is_(None))
        if task_name is not None:
            query = query.where(executions.c.task_name == task_name)
        return int(self._ops.execute_scalar(query))

    def task_names(self) -> list[str]:
        """Distinct task names, sorted. Unnamed pending executions are skipped."""
        executions = self._db.tables.executions
        rows = self._ops.execute_fetchall(
            select(executions.c.task_name).where(executions.c.task_name.is_not(None)).distinct().order_by(executions.c.task_name)
        )
        return [row.task_name for row in rows]

    # === Pages ===

    def list_page(
        self,
        task_name: str | None = None,
        page_index: int = 0,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Page[TaskExecution]:
        """One page of executions, newest first, optionally for one task name.

        page_index is zero-based. Ties on start_time are broken by the
        higher execution id first.
        """
        if task_name is None:
            return self._page(None, {}, page_index, page_size, self.count())
        return self._page(_BY_NAME, {"task_name": task_name}, page_index, page_size, self.count_by_name(task_name))

    def find_all(self, page_index: int = 0, page_size: int = DEFAULT_PAGE_SIZE) -> Page[TaskExecution]:
        return self.list_page(None, page_index, page_size)

    def find_running_page(
        self,
        task_name: str,
        page_index: int = 0,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Page[TaskExecution]:
        return self._page(
            _RUNNING_BY_NAME,
            {"task_name": task_name},
            page_index,
            page_size,
            self.count_running(task_name),
        )

    # === Job correlations ===

    def job_execution_ids(self, execution_id: int) -> set[int]:
        return self._batch_dao.links_for(execution_id)

    def execution_id_for_job(self, job_execution_id: int) -> int | None:
        return self._batch_dao.execution_for(job_execution_id)

    # === Internals ===

    def _provider(self, where_clause: str | None) -> PagingQueryProvider:
        provider = self._providers.get(where_clause)
        if provider is None:
            provider = create_paging_query_provider(
                select_clause=SELECT_CLAUSE,
                from_clause=FROM_CLAUSE,
                sort_keys=SORT_KEYS,
                where_clause=where_clause,
                database_type=self._db.database_type,
            )
            self._providers[where_clause] = provider
        return provider

    def _page(
        self,
        where_clause: str | None,
        params: dict[str, object],
        page_index: int,
        page_size: int,
        total: int,
    ) -> Page[TaskExecution]:
        if page_index < 0:
            raise ValueError(f"page_index must be >= 0, got {page_index}")
        if page_size <= 0:
            raise ValueError(f"page_size must be > 0, got {page_size}")

        sql = self._db.resolve_prefix(self._provider(where_clause).build_page_query(page_index * page_size, page_size))
        # Raw SQL bypasses column types; map result columns positionally onto the table
        executions = self._db.tables.executions
        query = text(sql).columns(*(executions.c[name] for name in EXECUTION_COLUMNS))
        with self._db.connection() as conn:
            rows = conn.execute(query, params).fetchall()
            items = load_executions(conn, self._db.tables, rows, self._execution_repo)

        logger.debug("execution_page_loaded", where=where_clause, page_index=page_index, page_size=page_size, rows=len(items))
        return Page(items=items, total=total, page_index=page_index, page_size=page_size)
