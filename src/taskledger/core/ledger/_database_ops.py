"""Database operation helpers to reduce boilerplate in ledger components.

Consolidates the repeated `with self._db.connection() as conn:` pattern.
"""

from typing import TYPE_CHECKING, Any

from sqlalchemy import Executable
from sqlalchemy.engine import Row

if TYPE_CHECKING:
    from taskledger.core.ledger.database import LedgerDB


class DatabaseOps:
    """Helper for common database operations.

    Each call runs in its own transaction. Multi-statement writes that must
    be atomic open db.connection() directly instead.
    """

    def __init__(self, db: "LedgerDB") -> None:
        self._db = db

    def execute_fetchone(self, query: Executable) -> Row[Any] | None:
        """Execute query and return single row or None."""
        with self._db.connection() as conn:
            result = conn.execute(query)
            return result.fetchone()

    def execute_fetchall(self, query: Executable) -> list[Row[Any]]:
        """Execute query and return all rows."""
        with self._db.connection() as conn:
            result = conn.execute(query)
            return list(result.fetchall())

    def execute_scalar(self, query: Executable) -> Any:
        """Execute query and return the first column of the first row."""
        with self._db.connection() as conn:
            return conn.execute(query).scalar()

    def execute_insert(self, stmt: Executable) -> None:
        """Execute insert statement.

        Raises:
            ValueError: If zero rows are affected
        """
        with self._db.connection() as conn:
            result = conn.execute(stmt)
            if result.rowcount == 0:
                raise ValueError("execute_insert: zero rows affected - ledger write failed")

    def execute_update(self, stmt: Executable) -> int:
        """Execute update statement and return the number of matched rows.

        Zero is a legitimate outcome; callers decide whether it is an error.
        """
        with self._db.connection() as conn:
            return conn.execute(stmt).rowcount

    def execute_delete(self, stmt: Executable) -> int:
        """Execute delete statement and return the number of deleted rows."""
        with self._db.connection() as conn:
            return conn.execute(stmt).rowcount
