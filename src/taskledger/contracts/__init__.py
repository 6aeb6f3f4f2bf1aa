"""Shared contracts for cross-boundary data types.

This package is a LEAF MODULE with no outbound dependencies to core.

Import patterns:
    from taskledger.contracts import TaskExecution, SortOrder, AlreadyHeldError
"""

from taskledger.contracts.enums import DatabaseType, ParameterStyle, SortOrder
from taskledger.contracts.errors import (
    AlreadyHeldError,
    ConfigurationError,
    ExecutionNotFoundError,
    InvalidExecutionStateError,
    LedgerError,
    SchemaCompatibilityError,
)
from taskledger.contracts.records import JobCorrelation, NamedLock, Page, TaskExecution

__all__ = [
    "AlreadyHeldError",
    "ConfigurationError",
    "DatabaseType",
    "ExecutionNotFoundError",
    "InvalidExecutionStateError",
    "JobCorrelation",
    "LedgerError",
    "NamedLock",
    "Page",
    "ParameterStyle",
    "SchemaCompatibilityError",
    "SortOrder",
    "TaskExecution",
]
