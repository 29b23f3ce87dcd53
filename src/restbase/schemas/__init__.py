"""Data models shared across restbase components."""

from .models import (
    AuthResponse,
    ChangeEvent,
    ChangeKind,
    RankingEntry,
    Session,
    TimestampedRecord,
    User,
)

__all__ = [
    "AuthResponse",
    "ChangeEvent",
    "ChangeKind",
    "RankingEntry",
    "Session",
    "TimestampedRecord",
    "User",
]
