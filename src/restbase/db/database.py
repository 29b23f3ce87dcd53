"""Entry point for row queries and stored-procedure calls."""

from typing import Any

from restbase.db.query import REST_PREFIX, QueryBuilder
from restbase.transport.gateway import Gateway


class Database:
    """Row and RPC access through a gateway."""

    def __init__(self, gateway: Gateway):
        self._gateway = gateway

    def from_(self, table: str, row_type: Any = dict[str, Any]) -> QueryBuilder[Any]:
        """Start a query against ``table``.

        Args:
            table: Table (or view) name
            row_type: Type each returned row is decoded into

        Returns:
            An empty, immutable query builder
        """
        return QueryBuilder(self._gateway, table, row_type)

    async def rpc(
        self,
        function_name: str,
        params: Any = None,
        response_type: Any = Any,
    ) -> Any:
        """Call a stored procedure, bypassing the query builder.

        Args:
            function_name: Procedure name
            params: Named parameters (sent as a JSON object)
            response_type: Type the decoded result is validated into

        Returns:
            Decoded result, or None for an empty response
        """
        return await self._gateway.execute(
            "POST",
            f"{REST_PREFIX}/rpc/{function_name}",
            params,
            response_type=response_type,
        )
