"""Session lifecycle management against the auth endpoints.

The session manager owns the current :class:`Session`, pushes its access
token into the gateway, persists it to the session store after every
successful exchange and restores it at startup.

State machine::

    SIGNED_OUT -> AUTHENTICATING -> SIGNED_IN
    SIGNED_IN  -> REFRESHING     -> SIGNED_IN
    any        -> SIGNED_OUT        (sign-out, invalid persisted session)

A failed sign-in or refresh leaves the previous state and session in place.
An exchange still in flight when sign-out happens is discarded: its result
is never installed and the manager stays signed out.
"""

import asyncio
from enum import Enum
from typing import Any

from pydantic import ValidationError

from restbase.schemas.models import AuthResponse, Session
from restbase.storage.session_store import InMemorySessionStore, SessionStore
from restbase.transport.gateway import Gateway
from restbase.utils.errors import (
    ApiError,
    AuthError,
    ClientError,
    PersistenceError,
)
from restbase.utils.telemetry import get_logger, record_auth_operation

SIGNUP_PATH = "/auth/v1/signup"
PASSWORD_GRANT_PATH = "/auth/v1/token?grant_type=password"
REFRESH_GRANT_PATH = "/auth/v1/token?grant_type=refresh_token"
LOGOUT_PATH = "/auth/v1/logout"


class SessionState(Enum):
    """Lifecycle state of the session manager."""

    SIGNED_OUT = "signed_out"
    AUTHENTICATING = "authenticating"
    SIGNED_IN = "signed_in"
    REFRESHING = "refreshing"


class SessionManager:
    """Credential lifecycle with persistence and refresh.

    Concurrent :meth:`refresh` calls are coalesced: while a refresh is in
    flight, every caller awaits the same exchange and receives the same
    session.
    """

    SESSION_KEY = "session"

    def __init__(self, gateway: Gateway, store: SessionStore | InMemorySessionStore):
        """Initialize session manager.

        Args:
            gateway: Gateway whose bearer token this manager controls
            store: Durable store for the persisted session blob
        """
        self._gateway = gateway
        self._store = store
        self._session: Session | None = None
        self._state = SessionState.SIGNED_OUT
        self._refresh_task: asyncio.Task[Session] | None = None
        self._sign_out_generation = 0
        self._logger = get_logger("restbase.auth")

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def current_session(self) -> Session | None:
        return self._session

    @property
    def is_signed_in(self) -> bool:
        return self._state in (SessionState.SIGNED_IN, SessionState.REFRESHING)

    async def sign_up(self, email: str, password: str) -> Session:
        """Create an account and sign in with it."""
        return await self._authenticate(
            "sign_up", SIGNUP_PATH, {"email": email, "password": password}
        )

    async def sign_in(self, email: str, password: str) -> Session:
        """Sign in with email and password."""
        return await self._authenticate(
            "sign_in", PASSWORD_GRANT_PATH, {"email": email, "password": password}
        )

    async def sign_in_anonymously(self) -> Session:
        """Sign in as a fresh anonymous user."""
        return await self._authenticate("sign_in_anonymously", SIGNUP_PATH, {})

    async def refresh(self) -> Session:
        """Exchange the refresh token for a new session.

        The current token stays installed in the gateway until the new one
        replaces it.

        Raises:
            AuthError: If there is no session to refresh or the exchange fails
        """
        if self._refresh_task is not None and not self._refresh_task.done():
            self._logger.debug("Joining in-flight refresh")
            return await asyncio.shield(self._refresh_task)

        session = self._session
        if session is None or not session.refresh_token:
            raise AuthError("no session to refresh")

        self._refresh_task = asyncio.ensure_future(
            self._authenticate(
                "refresh",
                REFRESH_GRANT_PATH,
                {"refresh_token": session.refresh_token},
                in_progress=SessionState.REFRESHING,
            )
        )
        return await asyncio.shield(self._refresh_task)

    async def sign_out(self) -> None:
        """Sign out locally, notifying the backend on a best-effort basis.

        A failing logout call is logged and ignored; the local session, the
        gateway token and the persisted blob are always cleared.
        """
        self._sign_out_generation += 1
        self._refresh_task = None

        if self.is_signed_in:
            try:
                await self._gateway.execute("POST", LOGOUT_PATH)
            except ClientError as e:
                self._logger.warning(
                    "Logout request failed, signing out locally",
                    error=str(e),
                    error_type=type(e).__name__,
                )

        await self._clear_session()
        record_auth_operation("sign_out", "success")
        self._logger.info("Signed out")

    async def restore_session(self) -> Session | None:
        """Restore the persisted session, if any.

        A corrupt or token-less blob is discarded and the manager stays
        signed out; this never raises for bad persisted data.

        Returns:
            The restored session, or None
        """
        raw = await self._store.get(self.SESSION_KEY)
        if raw is None:
            return None

        try:
            session = self._parse_persisted(raw)
        except PersistenceError as e:
            self._logger.error(
                "Failed to restore session, discarding persisted blob",
                key=e.key,
                reason=e.reason,
            )
            await self._clear_session()
            return None

        self._install(session)
        self._logger.info("Session restored", user_id=self._user_id(session))
        return session

    def _parse_persisted(self, raw: str) -> Session:
        try:
            session = Session.model_validate_json(raw)
        except ValidationError as e:
            raise PersistenceError(self.SESSION_KEY, f"unparseable blob: {e}") from e

        if not session.is_signed_in:
            raise PersistenceError(self.SESSION_KEY, "blob carries no access token")
        return session

    async def _authenticate(
        self,
        operation: str,
        path: str,
        body: dict[str, Any],
        in_progress: SessionState = SessionState.AUTHENTICATING,
    ) -> Session:
        previous_state = self._state
        generation = self._sign_out_generation
        self._state = in_progress

        try:
            response = await self._gateway.execute(
                "POST", path, body, response_type=AuthResponse
            )
            if response is None or not response.access_token:
                raise AuthError("invalid auth response: no access token")
        except AuthError:
            self._abandon_if_signed_out(operation, generation)
            self._state = previous_state
            record_auth_operation(operation, "error")
            raise
        except ClientError as e:
            self._abandon_if_signed_out(operation, generation)
            self._state = previous_state
            record_auth_operation(operation, "error")
            status_code = e.status_code if isinstance(e, ApiError) else None
            self._logger.warning(
                "Auth exchange failed",
                operation=operation,
                error=str(e),
                status_code=status_code,
            )
            raise AuthError(f"{operation} failed: {e.message}", status_code) from e

        self._abandon_if_signed_out(operation, generation)
        session = Session.from_auth_response(response)
        self._install(session)
        await self._persist(session)

        record_auth_operation(operation, "success")
        self._logger.info(
            "Auth exchange succeeded",
            operation=operation,
            user_id=self._user_id(session),
            expires_in=session.expires_in,
        )
        return session

    def _abandon_if_signed_out(self, operation: str, generation: int) -> None:
        """Raise if a sign-out happened while ``operation`` was in flight."""
        if generation == self._sign_out_generation:
            return

        record_auth_operation(operation, "abandoned")
        self._logger.info("Discarding auth exchange after sign-out", operation=operation)
        raise AuthError(f"{operation} abandoned: signed out while in flight")

    def _install(self, session: Session) -> None:
        self._session = session
        self._gateway.set_access_token(session.access_token)
        self._state = SessionState.SIGNED_IN

    async def _persist(self, session: Session) -> None:
        try:
            await self._store.set(self.SESSION_KEY, session.model_dump_json())
        except Exception as e:
            self._logger.error(
                "Failed to persist session, keeping it in memory only",
                error=str(e),
                error_type=type(e).__name__,
            )

    async def _clear_session(self) -> None:
        self._session = None
        self._gateway.clear_access_token()
        self._state = SessionState.SIGNED_OUT

        try:
            await self._store.delete(self.SESSION_KEY)
        except Exception as e:
            self._logger.error(
                "Failed to delete persisted session",
                error=str(e),
                error_type=type(e).__name__,
            )

    @staticmethod
    def _user_id(session: Session) -> str | None:
        return session.user.id if session.user else None
