"""Pydantic models for auth payloads and timestamped rows."""

from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field


class User(BaseModel):
    """Snapshot of the authenticated user taken at auth time."""

    id: str = Field(description="User identifier (UUID)")
    email: str | None = Field(
        default=None, description="Email address, absent for anonymous users"
    )
    role: str | None = Field(default=None, description="Database role")
    created_at: datetime | None = Field(default=None, description="Creation time")

    model_config = ConfigDict(frozen=True, extra="ignore")


class AuthResponse(BaseModel):
    """Token exchange response returned by the auth endpoints."""

    access_token: str | None = None
    refresh_token: str | None = None
    expires_in: int = 0
    expires_at: int | None = None
    token_type: str | None = None
    user: User | None = None

    model_config = ConfigDict(extra="ignore")


class Session(BaseModel):
    """Credential state of a signed-in client.

    A session is signed in iff its access token is non-empty. Sessions are
    replaced wholesale, never mutated.
    """

    access_token: str = ""
    refresh_token: str | None = None
    expires_in: int = 0
    expires_at: int | None = None
    token_type: str = "bearer"
    user: User | None = None

    model_config = ConfigDict(frozen=True, extra="ignore")

    @property
    def is_signed_in(self) -> bool:
        return bool(self.access_token)

    @classmethod
    def from_auth_response(cls, response: AuthResponse) -> "Session":
        """Build a session from a token exchange response."""
        return cls(
            access_token=response.access_token or "",
            refresh_token=response.refresh_token,
            expires_in=response.expires_in,
            expires_at=response.expires_at,
            token_type=response.token_type or "bearer",
            user=response.user,
        )


class TimestampedRecord(BaseModel):
    """Base model for rows carrying ``created_at``/``updated_at`` columns."""

    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(frozen=True, extra="ignore")


class RankingEntry(TimestampedRecord):
    """One row of the ``rankings`` table."""

    id: int
    player_name: str
    score: int
    accuracy: float


class ChangeKind(Enum):
    """Kind of row change reported by a poller."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


RecordT = TypeVar("RecordT")


class ChangeEvent(BaseModel, Generic[RecordT]):
    """A classified row change published on an event stream."""

    kind: ChangeKind
    table: str
    record: RecordT
    observed_at: datetime

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    def summary(self) -> dict[str, Any]:
        """Compact representation for logging and CLI output."""
        record = self.record
        if isinstance(record, BaseModel):
            record = record.model_dump(mode="json")
        return {
            "kind": self.kind.value,
            "table": self.table,
            "observed_at": self.observed_at.isoformat(),
            "record": record,
        }
