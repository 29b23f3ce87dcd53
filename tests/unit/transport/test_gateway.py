"""Unit tests for the HTTP request gateway."""

import httpx
import pytest
from pydantic import BaseModel

from restbase.config import BackendConfig, ConfigError
from restbase.schemas.models import RankingEntry
from restbase.transport.gateway import Gateway, encode_body
from restbase.utils.errors import ApiError, DecodeError, RecoveryAction, TransportError


class Patch(BaseModel):
    score: int | None = None
    accuracy: float | None = None


class TestEncodeBody:
    def test_none_is_empty_object(self) -> None:
        assert encode_body(None) == b"{}"

    def test_model_dumps_only_set_fields(self) -> None:
        assert encode_body(Patch(score=5)) == b'{"score":5}'

    def test_list_of_models(self) -> None:
        assert encode_body([Patch(score=1), Patch(accuracy=0.5)]) == (
            b'[{"score":1},{"accuracy":0.5}]'
        )


class TestConstruction:
    def test_rejects_missing_credentials(self) -> None:
        with pytest.raises(ConfigError):
            Gateway(BackendConfig(url="https://x.example.co"))

    def test_build_url_joins_slashes(self, gateway) -> None:
        assert gateway.build_url("/rest/v1/t") == "https://project.example.co/rest/v1/t"
        assert gateway.build_url("rest/v1/t") == "https://project.example.co/rest/v1/t"


class TestHeaders:
    def test_anonymous_headers(self, gateway) -> None:
        assert gateway.build_headers() == {"apikey": "anon-key"}

    def test_bearer_after_token_installed(self, gateway) -> None:
        gateway.set_access_token("tok")
        headers = gateway.build_headers({"Prefer": "return=representation"})

        assert headers["Authorization"] == "Bearer tok"
        assert headers["Prefer"] == "return=representation"

        gateway.clear_access_token()
        assert "Authorization" not in gateway.build_headers()

    @pytest.mark.asyncio
    async def test_headers_sent_on_wire(self, gateway, backend) -> None:
        gateway.set_access_token("tok")
        await gateway.execute("GET", "/rest/v1/rankings?select=*")

        request = backend.last
        assert request.method == "GET"
        assert request.url.path == "/rest/v1/rankings"
        assert request.headers["apikey"] == "anon-key"
        assert request.headers["authorization"] == "Bearer tok"
        assert "content-type" not in request.headers
        assert request.content == b""


class TestExecute:
    @pytest.mark.asyncio
    async def test_post_without_body_sends_empty_object(self, gateway, backend) -> None:
        await gateway.execute("POST", "/auth/v1/logout")

        assert backend.last.content == b"{}"
        assert backend.last.headers["content-type"] == "application/json"

    @pytest.mark.asyncio
    async def test_empty_response_is_none(self, gateway, backend) -> None:
        backend.respond(204)
        assert await gateway.execute("DELETE", "/rest/v1/t?id=eq.1") is None

    @pytest.mark.asyncio
    async def test_decodes_into_response_type(self, gateway, backend) -> None:
        backend.respond(
            json=[
                {
                    "id": 1,
                    "player_name": "Ann",
                    "score": 100,
                    "accuracy": 0.8,
                    "created_at": "2024-05-01T10:00:00Z",
                    "updated_at": "2024-05-01T10:00:00Z",
                }
            ]
        )

        rows = await gateway.execute(
            "GET", "/rest/v1/rankings", response_type=list[RankingEntry]
        )

        assert isinstance(rows[0], RankingEntry)
        assert rows[0].player_name == "Ann"

    @pytest.mark.asyncio
    async def test_malformed_json_raises_decode_error(self, gateway, backend) -> None:
        backend.respond(200, content=b"{not json")

        with pytest.raises(DecodeError) as exc_info:
            await gateway.execute("GET", "/rest/v1/t")
        assert exc_info.value.raw_body == "{not json"

    @pytest.mark.asyncio
    async def test_shape_mismatch_raises_decode_error(self, gateway, backend) -> None:
        backend.respond(json={"unexpected": True})

        with pytest.raises(DecodeError):
            await gateway.execute(
                "GET", "/rest/v1/rankings", response_type=list[RankingEntry]
            )

    @pytest.mark.asyncio
    async def test_error_status_raises_api_error(self, gateway, backend) -> None:
        backend.respond(409, json={"message": "duplicate key value"})

        with pytest.raises(ApiError) as exc_info:
            await gateway.execute("POST", "/rest/v1/t", {"id": 1})

        error = exc_info.value
        assert error.status_code == 409
        assert error.message == "duplicate key value"
        assert "duplicate key value" in error.raw_body

    @pytest.mark.asyncio
    async def test_error_status_without_json(self, gateway, backend) -> None:
        backend.respond(503, content=b"upstream down")

        with pytest.raises(ApiError) as exc_info:
            await gateway.execute("GET", "/rest/v1/t")

        assert exc_info.value.raw_body == "upstream down"
        assert exc_info.value.recovery_action == RecoveryAction.RETRY_WITH_DELAY

    @pytest.mark.asyncio
    async def test_connection_failure_raises_transport_error(
        self, gateway, backend
    ) -> None:
        backend.fail(httpx.ConnectError("connection refused"))

        with pytest.raises(TransportError) as exc_info:
            await gateway.execute("GET", "/rest/v1/t")

        assert exc_info.value.method == "GET"
        assert "connection refused" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_one_request_per_call(self, gateway, backend) -> None:
        backend.respond(500, json={"message": "oops"})

        with pytest.raises(ApiError):
            await gateway.execute("GET", "/rest/v1/t")
        assert len(backend.requests) == 1


class TestExecuteRaw:
    @pytest.mark.asyncio
    async def test_raw_body_and_content_type(self, gateway, backend) -> None:
        backend.respond(200, content=b"\x89PNG")

        data = await gateway.execute_raw(
            "POST", "/storage/v1/object/b/a.png", b"bytes", content_type="image/png"
        )

        assert data == b"\x89PNG"
        assert backend.last.content == b"bytes"
        assert backend.last.headers["content-type"] == "image/png"


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_injected_client_not_closed(self, backend_config, http_client) -> None:
        async with Gateway(backend_config, http_client):
            pass
        assert not http_client.is_closed

    @pytest.mark.asyncio
    async def test_owned_client_closed(self, backend_config) -> None:
        gateway = Gateway(backend_config)
        await gateway.aclose()
        assert gateway._client.is_closed
