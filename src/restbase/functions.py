"""Edge function invocation."""

from typing import Any

from restbase.transport.gateway import Gateway

FUNCTIONS_PREFIX = "/functions/v1"


class Functions:
    """Invoke server-side functions by name."""

    def __init__(self, gateway: Gateway):
        self._gateway = gateway

    async def invoke(
        self,
        function_name: str,
        body: Any = None,
        headers: dict[str, str] | None = None,
        response_type: Any = Any,
    ) -> Any:
        """POST ``body`` to the named function.

        Returns:
            Decoded JSON response, or None for an empty response
        """
        if not function_name:
            raise ValueError("function_name cannot be empty")
        return await self._gateway.execute(
            "POST",
            f"{FUNCTIONS_PREFIX}/{function_name}",
            body,
            headers=headers,
            response_type=response_type,
        )
