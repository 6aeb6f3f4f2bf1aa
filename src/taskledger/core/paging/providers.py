# src/taskledger/core/paging/providers.py
"""SQL paging query providers.

Each relational product has its own native way of selecting "one page
starting at row O of size S". A provider turns a PagingQuerySpec into that
product's SQL. The generated strings are part of the contract: tests pin
them byte-for-byte, including the odd double spaces some dialects emit.

Clause bookkeeping (keyword stripping, sort clause, WHERE fragment,
placeholder classification) lives in pure helper functions so providers
only decide where the pieces go.

Providers never rewrite table names. A ``%PREFIX%`` token supplied in the
FROM clause survives untouched; LedgerDB.resolve_prefix() substitutes it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from taskledger.contracts import ConfigurationError, ParameterStyle, SortOrder

ROW_NUMBER_ALIAS = "TMP_ROW_NUM"
SQLSERVER_PAGE_ALIAS = "TASK_EXECUTION_PAGE"

# Characters that terminate a :name or &name placeholder.
_PARAMETER_SEPARATORS = frozenset("\"':&,;()|=+-*%/\\<>^")

_ORDER_ALIASES: Mapping[str, SortOrder] = {
    "ASC": SortOrder.ASCENDING,
    "ASCENDING": SortOrder.ASCENDING,
    "DESC": SortOrder.DESCENDING,
    "DESCENDING": SortOrder.DESCENDING,
}

SortKeys = Mapping[str, SortOrder | str] | Iterable[tuple[str, SortOrder | str]]


# =============================================================================
# Clause helpers
# =============================================================================


def remove_keyword(keyword: str, clause: str) -> str:
    """Strip one leading SQL keyword (case-insensitive) from a clause fragment.

    ``remove_keyword("select", "SELECT a, b")`` returns ``"a, b"``. A clause
    consisting of the keyword alone is returned unchanged. Only one
    occurrence is removed.
    """
    temp = clause.strip()
    keyword_prefix = keyword.lower() + " "
    if temp.lower().startswith(keyword_prefix) and len(temp) > len(keyword_prefix):
        return temp[len(keyword_prefix) :].strip()
    return temp


def _coerce_order(column: str, order: SortOrder | str) -> SortOrder:
    if isinstance(order, SortOrder):
        return order
    try:
        return _ORDER_ALIASES[str(order).strip().upper()]
    except KeyError:
        raise ConfigurationError(f"Invalid sort order {order!r} for sort key {column!r}; expected ASC or DESC") from None


def normalize_sort_keys(sort_keys: SortKeys) -> tuple[tuple[str, SortOrder], ...]:
    """Freeze sort keys into an ordered tuple of (column, SortOrder) pairs.

    Insertion order is preserved; it is the ORDER BY precedence.
    """
    items = sort_keys.items() if isinstance(sort_keys, Mapping) else sort_keys
    normalized: list[tuple[str, SortOrder]] = []
    for column, order in items:
        name = column.strip()
        if not name:
            raise ConfigurationError("sort key column names must not be empty")
        normalized.append((name, _coerce_order(name, order)))
    return tuple(normalized)


def build_sort_clause(sort_keys: Iterable[tuple[str, SortOrder]]) -> str:
    """Render ``col1 DESC, col2 ASC`` from normalized sort keys."""
    return ", ".join(f"{column} {order.value}" for column, order in sort_keys)


def count_placeholders(sql: str) -> tuple[int, list[str]]:
    """Count parameter placeholders in a SQL fragment.

    Quoted text is skipped. ``?`` counts as one positional placeholder per
    occurrence; ``:name`` and ``&name`` count once per distinct name. A
    ``::`` pair is a type cast, not a placeholder.

    Returns:
        (total placeholder count, distinct named placeholder names in order of appearance)
    """
    count = 0
    named: list[str] = []
    quote: str | None = None
    i = 0
    length = len(sql)
    while i < length:
        char = sql[i]
        if quote is not None:
            if char == quote:
                quote = None
        elif char in ("'", '"'):
            quote = char
        elif char == ":" and i + 1 < length and sql[i + 1] == ":":
            i += 2
            continue
        elif char in (":", "&"):
            j = i + 1
            while j < length and not sql[j].isspace() and sql[j] not in _PARAMETER_SEPARATORS:
                j += 1
            if j - i > 1:
                name = sql[i + 1 : j]
                if name not in named:
                    named.append(name)
                    count += 1
                i = j
                continue
        elif char == "?":
            count += 1
        i += 1
    return count, named


def classify_parameters(sql: str) -> tuple[int, ParameterStyle]:
    """Classify the placeholder style of a query.

    Raises:
        ConfigurationError: If named and positional placeholders are mixed.
    """
    count, named = count_placeholders(sql)
    if named:
        if count != len(named):
            raise ConfigurationError(f'You can\'t use both named parameters and classic "?" placeholders: {sql}')
        return count, ParameterStyle.NAMED
    return count, ParameterStyle.POSITIONAL


# =============================================================================
# Query specification
# =============================================================================


@dataclass(frozen=True)
class PagingQuerySpec:
    """Validated select/from/where/sort description of a paged query.

    Build instances with configure(); the constructor does no validation.
    """

    select_clause: str
    from_clause: str
    sort_keys: tuple[tuple[str, SortOrder], ...]
    where_clause: str | None = None

    @classmethod
    def configure(
        cls,
        select_clause: str,
        from_clause: str,
        sort_keys: SortKeys,
        where_clause: str | None = None,
    ) -> PagingQuerySpec:
        """Validate caller-supplied fragments and strip redundant leading keywords.

        Raises:
            ConfigurationError: If select or from is empty, or no sort key is given.
        """
        if select_clause is None or not select_clause.strip():
            raise ConfigurationError("select_clause must be specified")
        if from_clause is None or not from_clause.strip():
            raise ConfigurationError("from_clause must be specified")
        if sort_keys is None:
            raise ConfigurationError("sort_keys must be specified")
        normalized_keys = normalize_sort_keys(sort_keys)
        if not normalized_keys:
            raise ConfigurationError("sort_keys must be specified")

        where = remove_keyword("where", where_clause) if where_clause is not None and where_clause.strip() else None
        return cls(
            select_clause=remove_keyword("select", select_clause),
            from_clause=remove_keyword("from", from_clause),
            sort_keys=normalized_keys,
            where_clause=where,
        )

    @property
    def sort_clause(self) -> str:
        return build_sort_clause(self.sort_keys)

    @property
    def where_fragment(self) -> str:
        """`` WHERE <clause>`` with a leading space, or empty."""
        if self.where_clause is None:
            return ""
        return f" WHERE {self.where_clause}"

    def base_query(self) -> str:
        """Unpaged, unordered query; used for placeholder classification."""
        return f"SELECT {self.select_clause} FROM {self.from_clause}{self.where_fragment}"


# =============================================================================
# Query shapes shared by several dialects
# =============================================================================


def generate_limit_query(spec: PagingQuerySpec, limit_clause: str) -> str:
    """``SELECT ... ORDER BY ... <limit_clause>``."""
    return f"SELECT {spec.select_clause} FROM {spec.from_clause}{spec.where_fragment} ORDER BY {spec.sort_clause} {limit_clause}"


def generate_top_query(spec: PagingQuerySpec, top_clause: str) -> str:
    """``SELECT <top_clause> <cols> FROM ... ORDER BY ...``."""
    return f"SELECT {top_clause} {spec.select_clause} FROM {spec.from_clause}{spec.where_fragment} ORDER BY {spec.sort_clause}"


def row_number_range(offset: int, limit: int) -> str:
    """Inclusive/exclusive row-number window; row numbers are 1-based."""
    first = offset + 1
    return f"{ROW_NUMBER_ALIAS} >= {first} AND {ROW_NUMBER_ALIAS} < {first + limit}"


# =============================================================================
# Providers
# =============================================================================


class PagingQueryProvider(ABC):
    """Generates one dialect's page queries for a fixed PagingQuerySpec.

    Construction classifies the placeholder style once; build_page_query()
    is then a pure function of the query shape and its arguments.

    Raises:
        ConfigurationError: On construction, if placeholder styles are mixed.
    """

    def __init__(self, spec: PagingQuerySpec) -> None:
        self._spec = spec
        self._parameter_count, self._parameter_style = classify_parameters(spec.base_query())

    @property
    def spec(self) -> PagingQuerySpec:
        return self._spec

    @property
    def sort_keys(self) -> tuple[tuple[str, SortOrder], ...]:
        return self._spec.sort_keys

    @property
    def parameter_count(self) -> int:
        return self._parameter_count

    @property
    def parameter_style(self) -> ParameterStyle:
        return self._parameter_style

    @property
    def uses_named_parameters(self) -> bool:
        return self._parameter_style is ParameterStyle.NAMED

    def build_page_query(self, offset: int, limit: int) -> str:
        """SQL selecting ``limit`` rows starting at zero-based row ``offset``.

        Raises:
            ValueError: If offset is negative or limit is not positive.
        """
        if offset < 0:
            raise ValueError(f"offset must be >= 0, got {offset}")
        if limit <= 0:
            raise ValueError(f"limit must be > 0, got {limit}")
        return self._page_query(offset, limit)

    @abstractmethod
    def _page_query(self, offset: int, limit: int) -> str: ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._spec!r})"


class HsqlPagingQueryProvider(PagingQueryProvider):
    """HSQLDB: ``SELECT LIMIT <offset> <size> <cols> ...``."""

    def _page_query(self, offset: int, limit: int) -> str:
        return generate_top_query(self._spec, f"LIMIT {offset} {limit}")


class H2PagingQueryProvider(PagingQueryProvider):
    """H2: SQL:2008 ``OFFSET ... ROWS FETCH NEXT ... ROWS ONLY``.

    Works in every H2 compatibility mode.
    """

    def _page_query(self, offset: int, limit: int) -> str:
        return generate_limit_query(self._spec, f"OFFSET {offset} ROWS FETCH NEXT {limit} ROWS ONLY")


class MySqlPagingQueryProvider(PagingQueryProvider):
    """MySQL and MariaDB: ``LIMIT <offset>, <size>``."""

    def _page_query(self, offset: int, limit: int) -> str:
        return generate_limit_query(self._spec, f"LIMIT {offset}, {limit}")


class PostgresPagingQueryProvider(PagingQueryProvider):
    """PostgreSQL: ``LIMIT <size> OFFSET <offset>``."""

    def _page_query(self, offset: int, limit: int) -> str:
        return generate_limit_query(self._spec, f"LIMIT {limit} OFFSET {offset}")


class SqlitePagingQueryProvider(PostgresPagingQueryProvider):
    """SQLite accepts the PostgreSQL form unchanged."""


class OraclePagingQueryProvider(PagingQueryProvider):
    """Oracle: ROWNUM filtering over a materialized, ordered subquery.

    ROWNUM is assigned before ORDER BY at the same level, so ordering
    happens innermost, numbering in the middle, filtering outermost.
    """

    def _page_query(self, offset: int, limit: int) -> str:
        spec = self._spec
        return (
            f"SELECT {spec.select_clause} FROM (SELECT {spec.select_clause}, ROWNUM as {ROW_NUMBER_ALIAS} "
            f"FROM (SELECT {spec.select_clause} FROM {spec.from_clause}{spec.where_fragment} "
            f"ORDER BY {spec.sort_clause})) WHERE {row_number_range(offset, limit)}"
        )


class SqlServerPagingQueryProvider(PagingQueryProvider):
    """SQL Server: ``ROW_NUMBER() OVER (ORDER BY ...)`` in a derived table."""

    def _page_query(self, offset: int, limit: int) -> str:
        spec = self._spec
        sort_clause = spec.sort_clause
        return (
            f"SELECT {spec.select_clause} FROM (SELECT {spec.select_clause}, "
            f"ROW_NUMBER() OVER (ORDER BY {sort_clause}) AS {ROW_NUMBER_ALIAS}  "
            f"FROM {spec.from_clause}{spec.where_fragment}) {SQLSERVER_PAGE_ALIAS}  "
            f"WHERE {row_number_range(offset, limit)} ORDER BY {sort_clause}"
        )


class Db2PagingQueryProvider(PagingQueryProvider):
    """DB2 family: ``ROW_NUMBER() OVER()`` over an already ordered subquery.

    The OVER clause carries no ORDER BY; numbering follows the inner
    query's ORDER BY.
    """

    def _page_query(self, offset: int, limit: int) -> str:
        spec = self._spec
        return (
            f"SELECT {spec.select_clause} FROM (SELECT {spec.select_clause}, ROW_NUMBER() OVER() as {ROW_NUMBER_ALIAS} "
            f"FROM (SELECT {spec.select_clause} FROM {spec.from_clause}{spec.where_fragment} "
            f"ORDER BY {spec.sort_clause})) WHERE {row_number_range(offset, limit)}"
        )


__all__ = [
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
    "build_sort_clause",
    "classify_parameters",
    "count_placeholders",
    "normalize_sort_keys",
    "remove_keyword",
]
