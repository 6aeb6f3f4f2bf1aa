# src/taskledger/core/ledger/task_repository.py
"""Write path of the task ledger.

TaskRepository is the only component that mutates execution rows. It does
not touch locks or job correlations; the launcher composes those (see
lifecycle.py).
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import Connection, select
from sqlalchemy.engine import Row

from taskledger.contracts import ExecutionNotFoundError, InvalidExecutionStateError, TaskExecution
from taskledger.core.ledger._database_ops import DatabaseOps
from taskledger.core.ledger._helpers import as_utc, now
from taskledger.core.ledger.repositories import TaskExecutionRepository, load_executions

if TYPE_CHECKING:
    from taskledger.core.ledger.database import LedgerDB

logger = structlog.get_logger(__name__)


class TaskRepository:
    """Creates, starts and completes task executions.

    Every public method runs in its own short transaction. No method
    retries on driver errors: a retried create() could write a second row.

    Example:
        repo = TaskRepository(db)
        execution = repo.create()
        repo.start(execution.execution_id, "nightly-export", now(), ["--full"])
        repo.complete(execution.execution_id, 0, now(), "done")
    """

    def __init__(self, db: LedgerDB) -> None:
        self._db = db
        self._ops = DatabaseOps(db)
        self._execution_repo = TaskExecutionRepository()

    def create(
        self,
        task_name: str | None = None,
        *,
        parent_execution_id: int | None = None,
        external_execution_id: str | None = None,
    ) -> TaskExecution:
        """Insert a pending execution and return it with its new id.

        The name may be left for start() to fill in.
        """
        executions = self._db.tables.executions
        timestamp = now()
        with self._db.connection() as conn:
            result = conn.execute(
                executions.insert().values(
                    task_name=task_name,
                    parent_execution_id=parent_execution_id,
                    external_execution_id=external_execution_id,
                    last_updated=timestamp,
                )
            )
            execution_id = int(result.inserted_primary_key[0])
            execution = self._load(conn, execution_id)

        logger.info("execution_created", execution_id=execution_id, task_name=task_name)
        return execution

    def start(
        self,
        execution_id: int,
        task_name: str,
        start_time: datetime,
        parameters: Sequence[str] = (),
        *,
        external_execution_id: str | None = None,
        parent_execution_id: int | None = None,
    ) -> TaskExecution:
        """Record the launch-time fields of a pending execution.

        external_execution_id and parent_execution_id keep the values given
        to create() when passed as None.

        Raises:
            ExecutionNotFoundError: If execution_id is unknown.
            InvalidExecutionStateError: If the execution was already started
                or already completed.
        """
        if not task_name:
            raise ValueError("task_name is required to start an execution")
        tables = self._db.tables
        executions = tables.executions
        start_time = as_utc(start_time)

        with self._db.connection() as conn:
            row = self._fetch_row(conn, execution_id)
            if row.start_time is not None:
                raise InvalidExecutionStateError(
                    f"TaskExecution {execution_id} was already started at {row.start_time.isoformat()}; parameters are immutable after start"
                )
            if row.end_time is not None:
                raise InvalidExecutionStateError(
                    f"TaskExecution {execution_id} was already completed at {row.end_time.isoformat()}; it cannot be started"
                )
            values: dict[str, object] = {
                "task_name": task_name,
                "start_time": start_time,
                "last_updated": now(),
            }
            if external_execution_id is not None:
                values["external_execution_id"] = external_execution_id
            if parent_execution_id is not None:
                values["parent_execution_id"] = parent_execution_id
            conn.execute(executions.update().where(executions.c.task_execution_id == execution_id).values(**values))
            if parameters:
                conn.execute(
                    tables.execution_params.insert(),
                    [
                        {"task_execution_id": execution_id, "param_index": index, "task_param": param}
                        for index, param in enumerate(parameters)
                    ],
                )
            execution = self._load(conn, execution_id)

        logger.info(
            "execution_started",
            execution_id=execution_id,
            task_name=task_name,
            parameter_count=len(parameters),
        )
        return execution

    def complete(
        self,
        execution_id: int,
        exit_code: int,
        end_time: datetime,
        exit_message: str | None = None,
        *,
        error_message: str | None = None,
    ) -> TaskExecution:
        """Record the outcome of an execution.

        Completing twice overwrites the earlier outcome (last write wins).
        A never-started execution may be completed; that is how a blocked
        launch is closed out.

        Raises:
            ExecutionNotFoundError: If execution_id is unknown.
            InvalidExecutionStateError: If end_time is before start_time.
        """
        if exit_code is None:
            raise ValueError("exit_code is required to complete an execution")
        executions = self._db.tables.executions
        end_time = as_utc(end_time)

        with self._db.connection() as conn:
            row = self._fetch_row(conn, execution_id)
            if row.start_time is not None and end_time < row.start_time:
                raise InvalidExecutionStateError(
                    f"TaskExecution {execution_id} cannot end at {end_time.isoformat()}, "
                    f"before its start at {row.start_time.isoformat()}"
                )
            conn.execute(
                executions.update()
                .where(executions.c.task_execution_id == execution_id)
                .values(
                    exit_code=exit_code,
                    end_time=end_time,
                    exit_message=exit_message,
                    error_message=error_message,
                    last_updated=now(),
                )
            )
            execution = self._load(conn, execution_id)

        logger.info("execution_completed", execution_id=execution_id, exit_code=exit_code)
        return execution

    def update_external_execution_id(self, execution_id: int, external_execution_id: str | None) -> None:
        """Attach (or clear) the id an external platform assigned to this execution.

        Raises:
            ExecutionNotFoundError: If execution_id is unknown.
        """
        executions = self._db.tables.executions
        matched = self._ops.execute_update(
            executions.update()
            .where(executions.c.task_execution_id == execution_id)
            .values(external_execution_id=external_execution_id, last_updated=now())
        )
        if matched == 0:
            raise ExecutionNotFoundError(execution_id)
        logger.debug("external_execution_id_updated", execution_id=execution_id)

    def _fetch_row(self, conn: Connection, execution_id: int) -> Row[Any]:
        executions = self._db.tables.executions
        row = conn.execute(select(executions).where(executions.c.task_execution_id == execution_id)).fetchone()
        if row is None:
            raise ExecutionNotFoundError(execution_id)
        return row

    def _load(self, conn: Connection, execution_id: int) -> TaskExecution:
        row = self._fetch_row(conn, execution_id)
        return load_executions(conn, self._db.tables, [row], self._execution_repo)[0]
