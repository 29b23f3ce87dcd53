# Shared utilities and helpers

from .errors import (
    ApiError,
    AuthError,
    ClientError,
    DecodeError,
    PersistenceError,
    RecoveryAction,
    TransportError,
)
from .telemetry import get_logger, get_tracer, setup_logging, setup_tracing

__all__ = [
    "ApiError",
    "AuthError",
    "ClientError",
    "DecodeError",
    "PersistenceError",
    "RecoveryAction",
    "TransportError",
    "get_logger",
    "get_tracer",
    "setup_logging",
    "setup_tracing",
]
