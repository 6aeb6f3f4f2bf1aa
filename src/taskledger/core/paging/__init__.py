"""Dialect-portable paging queries.

Primary API:
    create_paging_query_provider - pick and configure a provider for a dialect
    PagingQueryProvider - build_page_query(offset, limit) for one query shape
"""

from taskledger.core.paging.database_type import (
    from_engine,
    from_metadata,
    from_product_name,
    resolve_database_type,
)
from taskledger.core.paging.factory import PROVIDERS, create_paging_query_provider
from taskledger.core.paging.providers import (
    Db2PagingQueryProvider,
    H2PagingQueryProvider,
    HsqlPagingQueryProvider,
    MySqlPagingQueryProvider,
    OraclePagingQueryProvider,
    PagingQueryProvider,
    PagingQuerySpec,
    PostgresPagingQueryProvider,
    SqlitePagingQueryProvider,
    SqlServerPagingQueryProvider,
)

__all__ = [
    "PROVIDERS",
    "Db2PagingQueryProvider",
    "H2PagingQueryProvider",
    "HsqlPagingQueryProvider",
    "MySqlPagingQueryProvider",
    "OraclePagingQueryProvider",
    "PagingQueryProvider",
    "PagingQuerySpec",
    "PostgresPagingQueryProvider",
    "SqlServerPagingQueryProvider",
    "SqlitePagingQueryProvider",
    "create_paging_query_provider",
    "from_engine",
    "from_metadata",
    "from_product_name",
    "resolve_database_type",
]
