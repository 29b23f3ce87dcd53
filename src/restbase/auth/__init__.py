"""Session and credential lifecycle."""

from restbase.auth.session import SessionManager, SessionState

__all__ = ["SessionManager", "SessionState"]
