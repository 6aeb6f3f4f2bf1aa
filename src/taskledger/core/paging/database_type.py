# src/taskledger/core/paging/database_type.py
"""Database product detection.

Resolves a DatabaseType from an explicit dialect name, from a driver's
(product name, product version) metadata pair, or from a live SQLAlchemy
engine or connection.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from types import MappingProxyType

from sqlalchemy import Connection
from sqlalchemy.engine import Engine

from taskledger.contracts import ConfigurationError, DatabaseType

# SQLAlchemy dialect names -> DatabaseType. "mysql" is refined to MariaDB
# at detection time when the dialect reports a MariaDB server.
_DIALECT_TYPES: Mapping[str, DatabaseType] = MappingProxyType(
    {
        "sqlite": DatabaseType.SQLITE,
        "postgresql": DatabaseType.POSTGRES,
        "mysql": DatabaseType.MYSQL,
        "mariadb": DatabaseType.MARIADB,
        "oracle": DatabaseType.ORACLE,
        "mssql": DatabaseType.SQLSERVER,
        "db2": DatabaseType.DB2,
        "ibm_db_sa": DatabaseType.DB2,
        "h2": DatabaseType.H2,
        "hsqldb": DatabaseType.HSQL,
    }
)

_PRODUCT_NAMES: Mapping[str, DatabaseType] = MappingProxyType({t.product_name.lower(): t for t in DatabaseType})
_MEMBER_NAMES: Mapping[str, DatabaseType] = MappingProxyType({t.name.lower(): t for t in DatabaseType})

_AS400_VERSION = re.compile(r"V\dR\d[mM]\d")


def from_product_name(product_name: str) -> DatabaseType:
    """Look up a DatabaseType by driver product name (case-insensitive).

    Raises:
        ConfigurationError: If no type matches, naming the offending value.
    """
    try:
        return _PRODUCT_NAMES[product_name.strip().lower()]
    except KeyError:
        raise ConfigurationError(f"DatabaseType not found for product name: [{product_name}]") from None


def resolve_database_type(name: str | DatabaseType) -> DatabaseType:
    """Resolve an explicitly declared dialect.

    Accepts, case-insensitively, the member name (``POSTGRES``), the
    product name (``PostgreSQL``) or the SQLAlchemy dialect name
    (``postgresql``).

    Raises:
        ConfigurationError: If the name is empty or unsupported.
    """
    if isinstance(name, DatabaseType):
        return name
    if name is None or not name.strip():
        raise ConfigurationError("database type must not be empty nor null")
    key = name.strip().lower()
    for table in (_MEMBER_NAMES, _PRODUCT_NAMES, _DIALECT_TYPES):
        if key in table:
            return table[key]
    raise ConfigurationError(f"Unsupported database type: [{name}]. Supported: {', '.join(t.name for t in DatabaseType)}")


def _common_database_name(product_name: str) -> str:
    if product_name.startswith("DB2"):
        return "DB2"
    return product_name


def from_metadata(product_name: str, product_version: str | None = None) -> DatabaseType:
    """Resolve a DatabaseType from driver metadata.

    DB2 products report many spellings (``DB2/NT``, ``DB2/LINUXX8664``,
    ``DB2 UDB for AS/400``...). The product version distinguishes the
    mainframe and midrange flavours: ``ARI`` is VSE, ``DSN`` is z/OS, and
    an AS product with a ``QSQ`` or ``VxRyMz`` version is AS/400.

    Raises:
        ConfigurationError: If the product is not supported.
    """
    if not product_name:
        raise ConfigurationError("DatabaseType not found for product name: [None]")
    name = product_name
    if name != "DB2/Linux" and name.startswith("DB2"):
        version = product_version or ""
        v_index = version.find("V")
        if version.startswith("ARI"):
            name = "DB2VSE"
        elif version.startswith("DSN"):
            name = "DB2ZOS"
        elif "AS" in name and (version.startswith("QSQ") or (v_index >= 0 and _AS400_VERSION.fullmatch(version[v_index:]))):
            name = "DB2AS400"
        else:
            name = _common_database_name(name)
    elif name != DatabaseType.MARIADB.product_name:
        name = _common_database_name(name)
    return from_product_name(name)


def from_engine(bind: Engine | Connection) -> DatabaseType:
    """Inspect a live engine or connection for its DatabaseType.

    Raises:
        ConfigurationError: If the dialect is not supported. The caller
            must then declare the database type explicitly.
    """
    dialect = bind.dialect
    dialect_name = dialect.name
    if dialect_name == "mysql" and getattr(dialect, "is_mariadb", False):
        return DatabaseType.MARIADB
    try:
        return _DIALECT_TYPES[dialect_name]
    except KeyError:
        raise ConfigurationError(
            f"Could not inspect meta data for database type [{dialect_name}]. You have to supply it explicitly."
        ) from None


__all__ = [
    "from_engine",
    "from_metadata",
    "from_product_name",
    "resolve_database_type",
]
