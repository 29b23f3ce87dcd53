"""restbase - asyncio client for PostgREST-style backends.

restbase provides an authenticated request gateway, a persisted session
lifecycle, an immutable fluent query builder, and a polling loop that turns
row modifications into insert/update events for backends without a push
channel.
"""

__version__ = "0.1.0"

from .auth import SessionManager, SessionState
from .client import Client
from .config import BackendConfig, Config, ConfigError, load_config
from .db import Database, FilterOperator, QueryBuilder
from .functions import Functions
from .realtime import ChangePoller, EventStream, Subscription
from .schemas import (
    ChangeEvent,
    ChangeKind,
    RankingEntry,
    Session,
    TimestampedRecord,
    User,
)
from .services import RankingService
from .storage import Bucket, InMemorySessionStore, ObjectStorage, SessionStore
from .transport import Gateway
from .utils.errors import (
    ApiError,
    AuthError,
    ClientError,
    DecodeError,
    PersistenceError,
    RecoveryAction,
    TransportError,
)

__all__ = [
    "ApiError",
    "AuthError",
    "BackendConfig",
    "Bucket",
    "ChangeEvent",
    "ChangeKind",
    "ChangePoller",
    "Client",
    "ClientError",
    "Config",
    "ConfigError",
    "Database",
    "DecodeError",
    "EventStream",
    "FilterOperator",
    "Functions",
    "Gateway",
    "InMemorySessionStore",
    "ObjectStorage",
    "PersistenceError",
    "QueryBuilder",
    "RankingEntry",
    "RankingService",
    "RecoveryAction",
    "Session",
    "SessionManager",
    "SessionState",
    "SessionStore",
    "Subscription",
    "TimestampedRecord",
    "TransportError",
    "User",
    "__version__",
    "load_config",
]
