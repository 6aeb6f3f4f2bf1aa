"""Enums shared across subsystem boundaries."""

from enum import Enum, StrEnum


class SortOrder(StrEnum):
    """Direction of a paging sort key.

    The value is the SQL keyword emitted into ORDER BY clauses.
    """

    ASCENDING = "ASC"
    DESCENDING = "DESC"


class ParameterStyle(StrEnum):
    """Placeholder style detected in a paging query's base clauses."""

    NAMED = "named"
    POSITIONAL = "positional"


class DatabaseType(Enum):
    """Relational products the ledger can page over.

    The value is the product name reported by the database driver.
    Several DB2 flavours are distinct members but page the same way.
    """

    HSQL = "HSQL Database Engine"
    H2 = "H2"
    ORACLE = "Oracle"
    MYSQL = "MySQL"
    MARIADB = "MariaDB"
    POSTGRES = "PostgreSQL"
    SQLSERVER = "Microsoft SQL Server"
    DB2 = "DB2"
    DB2VSE = "DB2VSE"
    DB2ZOS = "DB2ZOS"
    DB2AS400 = "DB2AS400"
    SQLITE = "SQLite"

    @property
    def product_name(self) -> str:
        """Product name as reported by driver metadata."""
        return self.value
