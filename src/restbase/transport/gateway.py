"""HTTP request gateway for the BaaS backend.

The gateway builds and sends exactly one HTTP request per call, attaches the
common headers (API key, bearer token, content type), decodes JSON responses
and maps failures onto the typed errors in :mod:`restbase.utils.errors`.
It never retries; retry policy belongs to callers.
"""

from functools import lru_cache
from typing import Any

import httpx
import orjson
from pydantic import BaseModel, TypeAdapter, ValidationError

from restbase.config import BackendConfig, ConfigError
from restbase.utils.errors import ApiError, DecodeError, TransportError
from restbase.utils.telemetry import RequestTimer, get_logger, get_tracer

# Methods whose absent body is sent as an empty JSON object
_BODY_METHODS = frozenset({"POST", "PATCH", "PUT"})

_ERROR_MESSAGE_FIELDS = ("message", "msg", "error_description", "error")


@lru_cache(maxsize=256)
def _type_adapter(response_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(response_type)


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", exclude_unset=True)
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


def encode_body(body: Any) -> bytes:
    """Serialize a request body to JSON bytes.

    ``None`` becomes ``{}``; pydantic models are dumped with only the
    fields that were explicitly set.
    """
    if body is None:
        return b"{}"
    return orjson.dumps(_jsonable(body))


class Gateway:
    """Authenticated JSON/bytes request gateway.

    The gateway holds no auth logic, only the current access token, which the
    session manager installs through :meth:`set_access_token` and removes
    through :meth:`clear_access_token`.
    """

    def __init__(
        self,
        config: BackendConfig,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize the gateway.

        Args:
            config: Backend connection settings
            http_client: Optional pre-built client (tests inject one with a
                mock transport); when omitted the gateway owns its client

        Raises:
            ConfigError: If the URL or API key is missing
        """
        if not config.is_valid:
            raise ConfigError("Backend URL and API key must both be set")

        self.config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=config.timeout_seconds
        )
        self._access_token: str | None = None
        self._logger = get_logger("restbase.transport")
        self._tracer = get_tracer("restbase.transport")

    @property
    def access_token(self) -> str | None:
        return self._access_token

    def set_access_token(self, token: str) -> None:
        self._access_token = token

    def clear_access_token(self) -> None:
        self._access_token = None

    def build_url(self, path: str) -> str:
        """Join the configured base URL and an endpoint path."""
        return f"{self.config.url.rstrip('/')}/{path.lstrip('/')}"

    def build_headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        """Build the common request headers.

        Args:
            extra: Additional headers, applied after the common ones

        Returns:
            Header dictionary for one request
        """
        headers = {"apikey": self.config.anon_key}
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        if extra:
            headers.update(extra)
        return headers

    async def execute(
        self,
        method: str,
        path: str,
        body: Any = None,
        headers: dict[str, str] | None = None,
        response_type: Any = Any,
    ) -> Any:
        """Send a JSON request and decode the JSON response.

        Args:
            method: HTTP method
            path: Endpoint path relative to the base URL, query string included
            body: JSON-serializable body or pydantic model
            headers: Extra headers for this request
            response_type: Type the decoded JSON is validated into

        Returns:
            Decoded response, or None when the response body is empty

        Raises:
            TransportError: If no response was received
            ApiError: If the backend answered with a non-2xx status
            DecodeError: If a successful response body is malformed
        """
        method = method.upper()
        request_headers = self.build_headers(headers)

        content: bytes | None = None
        if body is not None or method in _BODY_METHODS:
            content = encode_body(body)
            request_headers["Content-Type"] = "application/json"

        response = await self._send(method, path, content, request_headers)
        return self._decode(method, path, response, response_type)

    async def execute_raw(
        self,
        method: str,
        path: str,
        content: bytes | None = None,
        content_type: str = "application/octet-stream",
        headers: dict[str, str] | None = None,
    ) -> bytes:
        """Send a request with a raw body and return the raw response bytes.

        Raises:
            TransportError: If no response was received
            ApiError: If the backend answered with a non-2xx status
        """
        method = method.upper()
        request_headers = self.build_headers(headers)
        if content is not None:
            request_headers["Content-Type"] = content_type

        response = await self._send(method, path, content, request_headers)
        return response.content

    async def _send(
        self,
        method: str,
        path: str,
        content: bytes | None,
        headers: dict[str, str],
    ) -> httpx.Response:
        url = self.build_url(path)
        endpoint = path.split("?", 1)[0]

        with self._tracer.start_as_current_span(f"{method} {endpoint}") as span:
            span.set_attribute("http.method", method)
            span.set_attribute("http.route", endpoint)

            with RequestTimer(method) as timer:
                try:
                    response = await self._client.request(
                        method, url, content=content, headers=headers
                    )
                except httpx.TransportError as e:
                    timer.status = "transport_error"
                    reason = str(e) or type(e).__name__
                    self._logger.warning(
                        "Request failed before a response was received",
                        method=method,
                        url=url,
                        error=reason,
                        error_type=type(e).__name__,
                    )
                    raise TransportError(method, url, reason) from e

                timer.status = str(response.status_code)

            span.set_attribute("http.status_code", response.status_code)

        self._logger.debug(
            "Request completed",
            method=method,
            url=url,
            status_code=response.status_code,
            latency_ms=round(timer.elapsed_ms, 2),
        )

        if not response.is_success:
            raise self._api_error(method, url, response)

        return response

    def _api_error(self, method: str, url: str, response: httpx.Response) -> ApiError:
        raw_body = response.text
        message = response.reason_phrase or "request failed"

        try:
            payload = orjson.loads(response.content) if raw_body.strip() else None
        except orjson.JSONDecodeError:
            payload = None

        if isinstance(payload, dict):
            for field in _ERROR_MESSAGE_FIELDS:
                value = payload.get(field)
                if isinstance(value, str) and value:
                    message = value
                    break

        self._logger.error(
            "Backend returned an error status",
            method=method,
            url=url,
            status_code=response.status_code,
            message=message,
        )
        return ApiError(response.status_code, message, raw_body)

    def _decode(
        self, method: str, path: str, response: httpx.Response, response_type: Any
    ) -> Any:
        raw_body = response.text
        if not raw_body.strip():
            return None

        try:
            data = orjson.loads(response.content)
        except orjson.JSONDecodeError as e:
            raise DecodeError(
                f"Malformed JSON in response to {method} {path}: {e}", raw_body
            ) from e

        if response_type is Any:
            return data

        try:
            return _type_adapter(response_type).validate_python(data)
        except ValidationError as e:
            raise DecodeError(
                f"Response to {method} {path} does not match {response_type!r}: {e}",
                raw_body,
            ) from e

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this gateway created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "Gateway":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.aclose()
