"""Repository layer for ledger records.

Handles the seam between SQLAlchemy rows and the frozen contract
dataclasses. This is NOT a trust boundary: the ledger is our data, and a
row that violates a record invariant crashes the loader.
"""

from collections.abc import Iterable, Sequence
from typing import Any

from sqlalchemy import Connection, select
from sqlalchemy.engine import Row as SARow

from taskledger.contracts import NamedLock, TaskExecution
from taskledger.core.ledger.schema import LedgerTables


class TaskExecutionRepository:
    """Repository for TaskExecution records."""

    def load(self, row: SARow[Any], parameters: Sequence[str] = ()) -> TaskExecution:
        """Load TaskExecution from a row of the execution table (or a paging query)."""
        return TaskExecution(
            execution_id=row.task_execution_id,
            task_name=row.task_name,
            start_time=row.start_time,
            end_time=row.end_time,
            exit_code=row.exit_code,
            exit_message=row.exit_message,
            error_message=row.error_message,
            external_execution_id=row.external_execution_id,
            parent_execution_id=row.parent_execution_id,
            parameters=tuple(parameters),
            last_updated=row.last_updated,
        )


class NamedLockRepository:
    """Repository for NamedLock records."""

    def load(self, row: SARow[Any]) -> NamedLock:
        return NamedLock(
            lock_key=row.lock_key,
            region=row.region,
            client_id=row.client_id,
            created_at=row.created_date,
        )


def fetch_parameters(conn: Connection, tables: LedgerTables, execution_ids: Iterable[int]) -> dict[int, list[str]]:
    """Load launch parameters for several executions in one query, in argument order."""
    ids = list(execution_ids)
    params: dict[int, list[str]] = {execution_id: [] for execution_id in ids}
    if not ids:
        return params
    table = tables.execution_params
    query = (
        select(table.c.task_execution_id, table.c.task_param)
        .where(table.c.task_execution_id.in_(ids))
        .order_by(table.c.task_execution_id, table.c.param_index)
    )
    for row in conn.execute(query):
        params[row.task_execution_id].append(row.task_param)
    return params


def load_executions(
    conn: Connection,
    tables: LedgerTables,
    rows: Sequence[SARow[Any]],
    repo: TaskExecutionRepository,
) -> list[TaskExecution]:
    """Turn execution rows into records, attaching their parameters, preserving row order."""
    params = fetch_parameters(conn, tables, (row.task_execution_id for row in rows))
    return [repo.load(row, params[row.task_execution_id]) for row in rows]
