"""Task ledger: execution records, single-instance locks and job correlations.

Primary API:
    LedgerDB - storage handle injected into every component
    TaskRepository - create/start/complete executions (write path)
    TaskExplorer - lookups, counts and pages (read path)
    SingleInstanceLock - at-most-one running instance per task name
    create_task_batch_dao - job correlation store for a LedgerDB (or in-memory)
    TaskLifecycle - create/acquire/start/complete/release around a task body
"""

from taskledger.core.ledger.batch import (
    InMemoryTaskBatchDao,
    SqlTaskBatchDao,
    TaskBatchDao,
    create_task_batch_dao,
)
from taskledger.core.ledger.database import PREFIX_PLACEHOLDER, LedgerDB
from taskledger.core.ledger.explorer import TaskExplorer
from taskledger.core.ledger.lifecycle import RunningTask, TaskLifecycle
from taskledger.core.ledger.locks import SingleInstanceLock, lock_key
from taskledger.core.ledger.schema import LedgerTables, ledger_tables
from taskledger.core.ledger.task_repository import TaskRepository

__all__ = [
    "PREFIX_PLACEHOLDER",
    "InMemoryTaskBatchDao",
    "LedgerDB",
    "LedgerTables",
    "RunningTask",
    "SingleInstanceLock",
    "SqlTaskBatchDao",
    "TaskBatchDao",
    "TaskExplorer",
    "TaskLifecycle",
    "TaskRepository",
    "create_task_batch_dao",
    "ledger_tables",
    "lock_key",
]
