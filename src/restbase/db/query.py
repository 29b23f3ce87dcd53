"""Fluent query builder for PostgREST-style row endpoints.

A :class:`QueryBuilder` is immutable: every chained call returns a new
builder and leaves the receiver untouched, so a base query can be shared
and extended by unrelated callers::

    top = db.from_("rankings").select("*").order("score", ascending=False)
    podium = await top.limit(3).execute()
    first_page = await top.limit(10).execute()

Compiled query string grammar::

    select=<cols>&<col>=<op>.<value>[&...]&order=<col>.<asc|desc>[,...]&limit=<n>&offset=<n>

Filters and orders are rendered in the order they were added.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Generic, TypeVar
from urllib.parse import quote, quote_plus

from restbase.transport.gateway import Gateway
from restbase.utils.telemetry import get_logger

RowT = TypeVar("RowT")

REST_PREFIX = "/rest/v1"
RETURN_REPRESENTATION = {"Prefer": "return=representation"}

# Characters that would break an unquoted member of an ``in.(...)`` list
_IN_RESERVED = frozenset(',()"')

# Characters that would split or reinterpret a column name in the query string
_COLUMN_RESERVED = frozenset("&=?#,% ")


class FilterOperator(str, Enum):
    """Column comparison operators understood by the backend."""

    EQ = "eq"
    NEQ = "neq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    LIKE = "like"
    IN = "in"


def encode_value(value: Any) -> str:
    """Percent-escape a filter value.

    ``None`` encodes to the bare token ``null`` so the backend can tell it
    apart from the string ``"null"``.

    Example:
        >>> encode_value("Ann Lee")
        'Ann+Lee'
        >>> encode_value(None)
        'null'
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        text = "true" if value else "false"
    elif isinstance(value, (datetime, date)):
        text = value.isoformat()
    elif isinstance(value, Enum):
        text = str(value.value)
    else:
        text = str(value)
    return quote_plus(text, safe="")


def _check_column(column: str, kind: str) -> None:
    if not column:
        raise ValueError(f"{kind} column cannot be empty")
    if any(char in _COLUMN_RESERVED for char in column):
        raise ValueError(f"{kind} column contains a reserved character: {column!r}")


def _encode_in_member(value: Any) -> str:
    if isinstance(value, str) and any(char in _IN_RESERVED for char in value):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        value = f'"{escaped}"'
    return encode_value(value)


@dataclass(frozen=True)
class Filter:
    """One ``column=operator.value`` predicate."""

    column: str
    operator: FilterOperator
    value: Any = None

    def __post_init__(self) -> None:
        _check_column(self.column, "filter")
        if self.operator is FilterOperator.IN:
            if isinstance(self.value, (str, bytes)) or not isinstance(
                self.value, Iterable
            ):
                raise ValueError("'in' filter requires a collection of values")
            values = tuple(self.value)
            if not values:
                raise ValueError("'in' filter requires at least one value")
            object.__setattr__(self, "value", values)

    def render(self) -> str:
        if self.operator is FilterOperator.IN:
            members = ",".join(_encode_in_member(v) for v in self.value)
            return f"{self.column}=in.({members})"
        return f"{self.column}={self.operator.value}.{encode_value(self.value)}"


@dataclass(frozen=True)
class OrderClause:
    """Sort key of a query."""

    column: str
    ascending: bool = True

    def __post_init__(self) -> None:
        _check_column(self.column, "order")

    def render(self) -> str:
        return f"{self.column}.{'asc' if self.ascending else 'desc'}"


@dataclass(frozen=True)
class QuerySpec:
    """Complete read state of a query against one table."""

    table: str
    select: str | None = None
    filters: tuple[Filter, ...] = field(default_factory=tuple)
    orders: tuple[OrderClause, ...] = field(default_factory=tuple)
    limit: int | None = None
    offset: int | None = None

    def to_query_string(self) -> str:
        params: list[str] = []

        if self.select is not None:
            params.append(f"select={quote(self.select, safe=',*():.!')}")

        params.extend(f.render() for f in self.filters)

        if self.orders:
            params.append("order=" + ",".join(o.render() for o in self.orders))

        if self.limit is not None:
            params.append(f"limit={self.limit}")

        if self.offset is not None:
            params.append(f"offset={self.offset}")

        return "&".join(params)

    @property
    def table_path(self) -> str:
        return f"{REST_PREFIX}/{self.table}"

    @property
    def endpoint(self) -> str:
        query_string = self.to_query_string()
        if query_string:
            return f"{self.table_path}?{query_string}"
        return self.table_path


class QueryBuilder(Generic[RowT]):
    """Immutable query against a single table.

    Rows are decoded into ``row_type`` (a pydantic model, a TypedDict, or
    the default ``dict[str, Any]``).
    """

    def __init__(
        self,
        gateway: Gateway,
        table: str,
        row_type: Any = dict[str, Any],
        spec: QuerySpec | None = None,
    ):
        if not table:
            raise ValueError("table name cannot be empty")
        self._gateway = gateway
        self._row_type = row_type
        self._spec = spec or QuerySpec(table=table)
        self._logger = get_logger("restbase.db", table=table)

    @property
    def spec(self) -> QuerySpec:
        return self._spec

    @property
    def table(self) -> str:
        return self._spec.table

    @property
    def row_type(self) -> Any:
        return self._row_type

    def _derive(self, **changes: Any) -> "QueryBuilder[RowT]":
        return QueryBuilder(
            self._gateway,
            self._spec.table,
            self._row_type,
            replace(self._spec, **changes),
        )

    def select(self, *columns: str) -> "QueryBuilder[RowT]":
        """Choose the returned columns (``"*"`` when called without arguments)."""
        return self._derive(select=",".join(columns) if columns else "*")

    def filter(
        self, column: str, operator: FilterOperator | str, value: Any
    ) -> "QueryBuilder[RowT]":
        """Append a predicate with an explicit operator."""
        new_filter = Filter(column, FilterOperator(operator), value)
        return self._derive(filters=(*self._spec.filters, new_filter))

    def eq(self, column: str, value: Any) -> "QueryBuilder[RowT]":
        return self.filter(column, FilterOperator.EQ, value)

    def neq(self, column: str, value: Any) -> "QueryBuilder[RowT]":
        return self.filter(column, FilterOperator.NEQ, value)

    def gt(self, column: str, value: Any) -> "QueryBuilder[RowT]":
        return self.filter(column, FilterOperator.GT, value)

    def gte(self, column: str, value: Any) -> "QueryBuilder[RowT]":
        return self.filter(column, FilterOperator.GTE, value)

    def lt(self, column: str, value: Any) -> "QueryBuilder[RowT]":
        return self.filter(column, FilterOperator.LT, value)

    def lte(self, column: str, value: Any) -> "QueryBuilder[RowT]":
        return self.filter(column, FilterOperator.LTE, value)

    def like(self, column: str, pattern: str) -> "QueryBuilder[RowT]":
        """Pattern match; ``*`` is the wildcard on the wire."""
        return self.filter(column, FilterOperator.LIKE, pattern)

    def in_(self, column: str, values: Iterable[Any]) -> "QueryBuilder[RowT]":
        """Membership test; ``values`` must be non-empty."""
        return self.filter(column, FilterOperator.IN, values)

    def order(self, column: str, ascending: bool = True) -> "QueryBuilder[RowT]":
        clause = OrderClause(column, ascending)
        return self._derive(orders=(*self._spec.orders, clause))

    def limit(self, count: int) -> "QueryBuilder[RowT]":
        """Cap the number of rows; replaces any earlier limit."""
        if count < 0:
            raise ValueError("limit must be non-negative")
        return self._derive(limit=count)

    def offset(self, count: int) -> "QueryBuilder[RowT]":
        """Skip rows; replaces any earlier offset."""
        if count < 0:
            raise ValueError("offset must be non-negative")
        return self._derive(offset=count)

    def to_query_string(self) -> str:
        return self._spec.to_query_string()

    @property
    def endpoint(self) -> str:
        return self._spec.endpoint

    async def execute(self) -> list[RowT]:
        """Run the query and return the matching rows (never None)."""
        rows = await self._gateway.execute(
            "GET", self.endpoint, response_type=list[self._row_type]
        )
        return rows or []

    async def single(self) -> RowT | None:
        """Return the first matching row, or None when nothing matches."""
        rows = await self.limit(1).execute()
        return rows[0] if rows else None

    async def insert(self, row: Any) -> RowT | None:
        """Insert one row and return the stored representation."""
        rows = await self._gateway.execute(
            "POST",
            self._spec.table_path,
            row,
            headers=RETURN_REPRESENTATION,
            response_type=list[self._row_type],
        )
        self._logger.debug("Row inserted", returned=len(rows or []))
        return rows[0] if rows else None

    async def update(self, patch: Any) -> list[RowT]:
        """Apply ``patch`` to every row matching the current filters."""
        rows = await self._gateway.execute(
            "PATCH",
            self.endpoint,
            patch,
            headers=RETURN_REPRESENTATION,
            response_type=list[self._row_type],
        )
        self._logger.debug("Rows updated", affected=len(rows or []))
        return rows or []

    async def delete(self) -> list[RowT]:
        """Delete every row matching the current filters."""
        if not self._spec.filters:
            self._logger.warning("Deleting without filters targets the whole table")

        rows = await self._gateway.execute(
            "DELETE",
            self.endpoint,
            headers=RETURN_REPRESENTATION,
            response_type=list[self._row_type],
        )
        self._logger.debug("Rows deleted", affected=len(rows or []))
        return rows or []

    def __repr__(self) -> str:
        return f"QueryBuilder(endpoint={self.endpoint!r})"
