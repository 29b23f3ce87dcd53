"""Client facade wiring the gateway, auth, database, functions and storage.

Every component receives its dependencies explicitly; the facade only
constructs them from one :class:`BackendConfig` and owns their lifetimes.
"""

from pathlib import Path
from typing import Any

import httpx

from restbase.auth.session import SessionManager
from restbase.config import BackendConfig
from restbase.db.database import Database
from restbase.functions import Functions
from restbase.realtime.poller import ChangePoller, Clock
from restbase.storage.objects import ObjectStorage
from restbase.storage.session_store import InMemorySessionStore, SessionStore
from restbase.transport.gateway import Gateway
from restbase.utils.telemetry import get_logger


class Client:
    """Single-connection client for a PostgREST-style backend.

    Example:
        >>> async with Client(BackendConfig(url=url, anon_key=key)) as client:
        ...     await client.auth.restore_session()
        ...     rows = await client.db.from_("rankings").limit(10).execute()
    """

    def __init__(
        self,
        config: BackendConfig,
        store: SessionStore | InMemorySessionStore | None = None,
        http_client: httpx.AsyncClient | None = None,
        session_db_path: str | Path | None = None,
    ):
        """Initialize the client.

        Args:
            config: Backend connection settings
            store: Session store; defaults to a SQLite store at
                ``session_db_path`` or an in-memory store when no path is given
            http_client: Optional pre-built HTTP client
            session_db_path: Path of the SQLite session file
        """
        if store is None:
            store = (
                SessionStore(session_db_path)
                if session_db_path is not None
                else InMemorySessionStore()
            )

        self.config = config
        self.store = store
        self.gateway = Gateway(config, http_client)
        self.auth = SessionManager(self.gateway, store)
        self.db = Database(self.gateway)
        self.functions = Functions(self.gateway)
        self.storage = ObjectStorage(self.gateway)
        self._logger = get_logger("restbase.client")

    def poller(
        self,
        table: str,
        row_type: Any = dict[str, Any],
        interval_seconds: float = 1.0,
        clock: Clock | None = None,
    ) -> ChangePoller[Any]:
        """Create a stopped change poller for ``table``."""
        return ChangePoller(
            self.db,
            table,
            row_type,
            interval_seconds=interval_seconds,
            clock=clock,
        )

    async def initialize(self) -> None:
        """Open the session store."""
        await self.store.initialize()
        self._logger.info("Client initialized", url=self.config.url)

    async def close(self) -> None:
        """Close the session store and the HTTP client."""
        await self.store.close()
        await self.gateway.aclose()
        self._logger.info("Client closed")

    async def __aenter__(self) -> "Client":
        await self.initialize()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()

    def __repr__(self) -> str:
        return (
            f"Client(url={self.config.url!r}, "
            f"signed_in={self.auth.is_signed_in})"
        )
