# src/taskledger/core/ledger/lifecycle.py
"""Launcher-side sequencing of ledger calls.

A launcher must call, in order: create, try_acquire (single-instance
only), start, the task's own work, record_link for each batch job, then
complete and release. TaskLifecycle.launch() does exactly that around a
``with`` block.
"""

from __future__ import annotations

import traceback
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from taskledger.contracts import AlreadyHeldError, ConfigurationError, JobCorrelation, TaskExecution
from taskledger.core.ledger._helpers import now
from taskledger.core.ledger.batch import SqlTaskBatchDao, TaskBatchDao
from taskledger.core.ledger.locks import SingleInstanceLock
from taskledger.core.ledger.task_repository import TaskRepository

if TYPE_CHECKING:
    from taskledger.core.config import LedgerSettings
    from taskledger.core.ledger.database import LedgerDB

logger = structlog.get_logger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


def exit_code_for(error: BaseException) -> int:
    """Exit code a process would report after error escaped its main body.

    SystemExit carries its own code (None means success, a non-integer
    payload means 1, as the interpreter does it). Anything else is a failure.
    """
    if isinstance(error, SystemExit):
        if error.code is None:
            return EXIT_SUCCESS
        if isinstance(error.code, int):
            return error.code
    return EXIT_FAILURE


@dataclass
class RunningTask:
    """Handle given to the body of a launch.

    Set exit_message to have it recorded on completion.
    """

    execution: TaskExecution
    exit_message: str | None = None
    _batch_dao: TaskBatchDao | None = field(default=None, repr=False)

    @property
    def execution_id(self) -> int:
        return self.execution.execution_id

    def link_job(self, job_execution_id: int) -> JobCorrelation:
        """Record that this execution ran the given batch job.

        Raises:
            ConfigurationError: If the lifecycle has no job correlation store.
        """
        if self._batch_dao is None:
            raise ConfigurationError("No job correlation store configured; cannot link batch jobs")
        return self._batch_dao.record_link(self.execution_id, job_execution_id)


class TaskLifecycle:
    """Runs a task body between the ledger's start and complete calls.

    Example:
        lifecycle = TaskLifecycle(TaskRepository(db), SingleInstanceLock(db))
        with lifecycle.launch("nightly-export", ["--full"], single_instance=True) as task:
            job_id = run_export()
            task.link_job(job_id)
            task.exit_message = "exported"
    """

    def __init__(
        self,
        repository: TaskRepository,
        lock: SingleInstanceLock | None = None,
        batch_dao: TaskBatchDao | None = None,
        *,
        single_instance: bool = False,
    ) -> None:
        self._repository = repository
        self._lock = lock
        self._batch_dao = batch_dao
        self.single_instance = single_instance

    @classmethod
    def from_settings(cls, db: LedgerDB, settings: LedgerSettings) -> TaskLifecycle:
        """Lifecycle over one ledger, wired the way settings ask.

        The lock uses settings.lock_region, and settings.single_instance_enabled
        becomes the default for launch(single_instance=...).
        """
        return cls(
            TaskRepository(db),
            SingleInstanceLock(db, region=settings.lock_region),
            SqlTaskBatchDao(db),
            single_instance=settings.single_instance_enabled,
        )

    @contextmanager
    def launch(
        self,
        task_name: str,
        parameters: Sequence[str] = (),
        *,
        single_instance: bool | None = None,
        external_execution_id: str | None = None,
        parent_execution_id: int | None = None,
    ) -> Iterator[RunningTask]:
        """Record one execution of task_name around the ``with`` body.

        The execution completes with exit code 0 when the body returns. When
        the body raises, including SystemExit and KeyboardInterrupt, it
        completes with exit_code_for(error) and the formatted traceback, and
        the exception is re-raised. single_instance=None uses the
        lifecycle's default.

        Raises:
            ConfigurationError: If single_instance is requested without a lock.
            AlreadyHeldError: If another instance holds the task's lock. The
                blocked execution is completed with exit code 1 first.
        """
        if single_instance is None:
            single_instance = self.single_instance
        if single_instance and self._lock is None:
            raise ConfigurationError("single_instance launch requires a SingleInstanceLock")

        execution = self._repository.create(
            task_name,
            parent_execution_id=parent_execution_id,
            external_execution_id=external_execution_id,
        )
        execution_id = execution.execution_id

        lock = self._lock if single_instance else None
        acquired = False
        if lock is not None:
            try:
                acquired = lock.try_acquire(task_name)
            except AlreadyHeldError as e:
                logger.warning("launch_blocked", execution_id=execution_id, task_name=task_name)
                self._repository.complete(execution_id, EXIT_FAILURE, now(), str(e), error_message=str(e))
                raise

        try:
            execution = self._repository.start(
                execution_id,
                task_name,
                now(),
                parameters,
                external_execution_id=external_execution_id,
                parent_execution_id=parent_execution_id,
            )
            running = RunningTask(execution=execution, _batch_dao=self._batch_dao)
            try:
                yield running
            except BaseException as e:
                exit_code = exit_code_for(e)
                error_message = None if exit_code == EXIT_SUCCESS else "".join(traceback.format_exception(e))
                self._repository.complete(
                    execution_id,
                    exit_code,
                    now(),
                    running.exit_message,
                    error_message=error_message,
                )
                raise
            self._repository.complete(execution_id, EXIT_SUCCESS, now(), running.exit_message)
        finally:
            if lock is not None and acquired:
                lock.release(task_name)
