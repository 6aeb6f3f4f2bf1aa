"""Exception taxonomy for the task ledger.

Driver and connectivity failures are NOT wrapped here: SQLAlchemy
exceptions propagate unchanged so callers see the real cause, and no
ledger operation retries on their behalf. Retrying a non-idempotent
insert could fabricate duplicate ledger rows.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all ledger errors."""


class ConfigurationError(LedgerError, ValueError):
    """Invalid ledger or paging configuration.

    Raised at configuration time (empty clauses, missing sort keys,
    mixed placeholder styles, unsupported dialect names). Never raised
    lazily at query time.
    """


class ExecutionNotFoundError(LedgerError, LookupError):
    """A write referenced an execution id that does not exist."""

    def __init__(self, execution_id: int) -> None:
        self.execution_id = execution_id
        super().__init__(f"Invalid TaskExecution, ID {execution_id} not found.")


class InvalidExecutionStateError(LedgerError):
    """A lifecycle transition is not allowed for the execution's current state."""


class AlreadyHeldError(LedgerError):
    """The single-instance lock for a task is held by another instance.

    This is an expected outcome, not an infrastructure failure. Launchers
    should report "task already running" and exit cleanly.
    """

    def __init__(self, task_name: str, lock_key: str) -> None:
        self.task_name = task_name
        self.lock_key = lock_key
        super().__init__(f'Task with name "{task_name}" is already running.')


class SchemaCompatibilityError(LedgerError):
    """Existing ledger database schema is incompatible with current code."""
