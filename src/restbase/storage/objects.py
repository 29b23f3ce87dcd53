"""Binary object storage buckets.

Buckets reach the backend URL and API key only through the gateway they
are constructed with.
"""

from collections.abc import Sequence
from urllib.parse import quote

import orjson

from restbase.transport.gateway import Gateway
from restbase.utils.errors import DecodeError
from restbase.utils.telemetry import get_logger

STORAGE_PREFIX = "/storage/v1/object"


def _object_path(path: str) -> str:
    return quote(path.lstrip("/"), safe="/")


class Bucket:
    """Operations on the objects of one bucket."""

    def __init__(self, gateway: Gateway, name: str):
        if not name:
            raise ValueError("bucket name cannot be empty")
        self._gateway = gateway
        self.name = name
        self._logger = get_logger("restbase.storage.objects", bucket=name)

    def _endpoint(self, path: str) -> str:
        return f"{STORAGE_PREFIX}/{self.name}/{_object_path(path)}"

    async def upload(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> str | None:
        """Upload ``data`` to ``path``.

        Returns:
            Storage key reported by the backend

        Raises:
            DecodeError: If the backend response is not JSON
        """
        raw = await self._gateway.execute_raw(
            "POST", self._endpoint(path), data, content_type=content_type
        )
        if not raw.strip():
            return None

        try:
            payload = orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            raise DecodeError(
                f"Malformed upload response for {path}: {e}",
                raw.decode("utf-8", errors="replace"),
            ) from e

        self._logger.info("Object uploaded", path=path, size=len(data))
        return payload.get("Key") if isinstance(payload, dict) else None

    async def download(self, path: str) -> bytes:
        """Download the object at ``path``."""
        return await self._gateway.execute_raw("GET", self._endpoint(path))

    async def delete(self, path: str) -> None:
        """Delete the object at ``path``."""
        await self._gateway.execute("DELETE", self._endpoint(path))
        self._logger.info("Object deleted", path=path)

    async def delete_many(self, paths: Sequence[str]) -> None:
        """Delete several objects in one request."""
        if not paths:
            return
        await self._gateway.execute(
            "DELETE",
            f"{STORAGE_PREFIX}/{self.name}",
            {"prefixes": list(paths)},
        )
        self._logger.info("Objects deleted", count=len(paths))

    def get_public_url(self, path: str) -> str:
        """URL of ``path`` in a public bucket (no request is made)."""
        return self._gateway.build_url(
            f"{STORAGE_PREFIX}/public/{self.name}/{_object_path(path)}"
        )


class ObjectStorage:
    """Entry point for bucket operations."""

    def __init__(self, gateway: Gateway):
        self._gateway = gateway

    def from_(self, bucket: str) -> Bucket:
        return Bucket(self._gateway, bucket)
