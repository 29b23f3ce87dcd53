"""Row queries against PostgREST-style table endpoints."""

from restbase.db.database import Database
from restbase.db.query import (
    Filter,
    FilterOperator,
    OrderClause,
    QueryBuilder,
    QuerySpec,
    encode_value,
)

__all__ = [
    "Database",
    "Filter",
    "FilterOperator",
    "OrderClause",
    "QueryBuilder",
    "QuerySpec",
    "encode_value",
]
