# src/taskledger/core/paging/factory.py
"""Paging query provider selection.

Maps a declared or detected DatabaseType to its provider class and
configures a fresh provider for the caller's query. Several types share
one provider class (the DB2 family, MySQL/MariaDB, PostgreSQL/SQLite).
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

import structlog
from sqlalchemy import Connection
from sqlalchemy.engine import Engine

from taskledger.contracts import ConfigurationError, DatabaseType
from taskledger.core.paging.database_type import from_engine, resolve_database_type
from taskledger.core.paging.providers import (
    Db2PagingQueryProvider,
    H2PagingQueryProvider,
    HsqlPagingQueryProvider,
    MySqlPagingQueryProvider,
    OraclePagingQueryProvider,
    PagingQueryProvider,
    PagingQuerySpec,
    PostgresPagingQueryProvider,
    SortKeys,
    SqlitePagingQueryProvider,
    SqlServerPagingQueryProvider,
)

logger = structlog.get_logger(__name__)

PROVIDERS: Mapping[DatabaseType, type[PagingQueryProvider]] = MappingProxyType(
    {
        DatabaseType.HSQL: HsqlPagingQueryProvider,
        DatabaseType.H2: H2PagingQueryProvider,
        DatabaseType.MYSQL: MySqlPagingQueryProvider,
        DatabaseType.MARIADB: MySqlPagingQueryProvider,
        DatabaseType.POSTGRES: PostgresPagingQueryProvider,
        DatabaseType.ORACLE: OraclePagingQueryProvider,
        DatabaseType.SQLSERVER: SqlServerPagingQueryProvider,
        DatabaseType.DB2: Db2PagingQueryProvider,
        DatabaseType.DB2VSE: Db2PagingQueryProvider,
        DatabaseType.DB2ZOS: Db2PagingQueryProvider,
        DatabaseType.DB2AS400: Db2PagingQueryProvider,
        DatabaseType.SQLITE: SqlitePagingQueryProvider,
    }
)


def create_paging_query_provider(
    *,
    select_clause: str,
    from_clause: str,
    sort_keys: SortKeys,
    where_clause: str | None = None,
    database_type: DatabaseType | str | None = None,
    bind: Engine | Connection | None = None,
) -> PagingQueryProvider:
    """Build a configured provider for one paged query.

    An explicit database_type wins over probing ``bind``. Every call
    returns a new provider; providers are cheap and immutable.

    Raises:
        ConfigurationError: If neither database_type nor bind is given, the
            dialect is unsupported, or the query fragments are invalid.
    """
    if database_type is not None:
        resolved = resolve_database_type(database_type)
    elif bind is not None:
        resolved = from_engine(bind)
    else:
        raise ConfigurationError("Either database_type or bind must be supplied to select a paging query provider")

    provider_class = PROVIDERS.get(resolved)
    if provider_class is None:
        raise ConfigurationError(f"No paging query provider registered for database type [{resolved.name}]")

    spec = PagingQuerySpec.configure(
        select_clause=select_clause,
        from_clause=from_clause,
        sort_keys=sort_keys,
        where_clause=where_clause,
    )
    provider = provider_class(spec)
    logger.debug(
        "paging_provider_selected",
        database_type=resolved.name,
        provider=provider_class.__name__,
        parameter_style=provider.parameter_style.value,
    )
    return provider
