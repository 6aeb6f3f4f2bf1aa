# src/taskledger/core/ledger/schema.py
"""SQLAlchemy table definitions for the task ledger.

Uses SQLAlchemy Core (not ORM) for explicit control over queries and
compatibility with multiple database backends.

Table names carry a caller-chosen prefix, so tables are built per prefix
by ledger_tables() rather than declared once at import time. Column names
are lower-case: hand-written paging SQL refers to them unquoted and must
agree with SQLAlchemy-generated DML on every backend.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from functools import cache
from typing import Any

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Identity,
    Index,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
)
from sqlalchemy.engine import Dialect
from sqlalchemy.types import TypeDecorator

from taskledger.core.config import DEFAULT_TABLE_PREFIX

# SQLite only treats INTEGER PRIMARY KEY as a rowid alias (AUTOINCREMENT).
_ID_TYPE = BigInteger().with_variant(Integer, "sqlite")


class UTCDateTime(TypeDecorator[datetime]):
    """Timezone-aware UTC timestamps on every backend.

    SQLite discards tzinfo on storage. Values are normalised to naive UTC on
    the way in and re-tagged as UTC on the way out, so a datetime written
    is equal to the datetime read back. Naive inputs are taken as UTC.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value.replace(tzinfo=None)

    def process_result_value(self, value: Any, dialect: Dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


@dataclass(frozen=True)
class LedgerTables:
    """All ledger tables for one table prefix, sharing one MetaData."""

    prefix: str
    metadata: MetaData
    executions: Table
    execution_params: Table
    task_batch: Table
    locks: Table


@cache
def ledger_tables(prefix: str = DEFAULT_TABLE_PREFIX) -> LedgerTables:
    """Build (once per prefix) the ledger table definitions."""
    metadata = MetaData()

    # === Task Executions ===

    executions = Table(
        f"{prefix}execution",
        metadata,
        Column("task_execution_id", _ID_TYPE, Identity(), primary_key=True),
        Column("start_time", UTCDateTime()),
        Column("end_time", UTCDateTime()),
        Column("task_name", String(100)),
        Column("exit_code", Integer),
        Column("exit_message", Text),
        Column("error_message", Text),
        Column("last_updated", UTCDateTime()),
        # Identifier assigned by whatever external platform launched the task
        Column("external_execution_id", String(255)),
        # Self-reference without FK: parents may be purged independently
        Column("parent_execution_id", BigInteger),
        Index(f"ix_{prefix}execution_task_name", "task_name"),
        sqlite_autoincrement=True,
    )

    # Ordered launch arguments; param_index preserves argument order
    execution_params = Table(
        f"{prefix}execution_params",
        metadata,
        Column(
            "task_execution_id",
            _ID_TYPE,
            ForeignKey(f"{prefix}execution.task_execution_id"),
            nullable=False,
        ),
        Column("param_index", Integer, nullable=False),
        Column("task_param", Text),
        PrimaryKeyConstraint("task_execution_id", "param_index"),
    )

    # === Job Correlations ===
    # No FKs and no uniqueness: either side may be absent when the link is
    # written, and repeat inserts of the same pair are tolerated.

    task_batch = Table(
        f"{prefix}task_batch",
        metadata,
        Column("task_execution_id", BigInteger, nullable=False),
        Column("job_execution_id", BigInteger, nullable=False),
        Index(f"ix_{prefix}task_batch_task_execution_id", "task_execution_id"),
        Index(f"ix_{prefix}task_batch_job_execution_id", "job_execution_id"),
    )

    # === Single-Instance Locks ===
    # The composite primary key IS the mutual exclusion: two concurrent
    # inserts for the same (lock_key, region) cannot both succeed.

    locks = Table(
        f"{prefix}lock",
        metadata,
        Column("lock_key", String(36), nullable=False),
        Column("region", String(100), nullable=False),
        Column("client_id", String(36), nullable=False),
        Column("created_date", UTCDateTime(), nullable=False),
        PrimaryKeyConstraint("lock_key", "region"),
    )

    return LedgerTables(
        prefix=prefix,
        metadata=metadata,
        executions=executions,
        execution_params=execution_params,
        task_batch=task_batch,
        locks=locks,
    )


# Columns selected by every execution read, in paging-query order.
EXECUTION_COLUMNS: tuple[str, ...] = (
    "task_execution_id",
    "start_time",
    "end_time",
    "task_name",
    "exit_code",
    "exit_message",
    "error_message",
    "last_updated",
    "external_execution_id",
    "parent_execution_id",
)
