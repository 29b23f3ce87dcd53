"""Structured error types for the BaaS client.

This module provides structured exceptions with suggested recovery actions
for the failure modes of the transport, auth and persistence layers.
"""

from enum import Enum


class RecoveryAction(Enum):
    """Recovery actions a caller may take after an error."""

    RETRY = "retry"
    RETRY_WITH_DELAY = "retry_with_delay"
    REAUTHENTICATE = "reauthenticate"
    ABORT = "abort"


class ClientError(Exception):
    """Base exception for client errors."""

    def __init__(
        self, message: str, recovery_action: RecoveryAction = RecoveryAction.ABORT
    ):
        """Initialize client error.

        Args:
            message: Error message
            recovery_action: Suggested recovery action
        """
        super().__init__(message)
        self.message = message
        self.recovery_action = recovery_action


class TransportError(ClientError):
    """Error raised when a request never produced an HTTP response.

    This covers connection failures, DNS errors and timeouts.
    """

    def __init__(self, method: str, url: str, reason: str):
        """Initialize transport error.

        Args:
            method: HTTP method of the failed request
            url: Request URL
            reason: Underlying failure description
        """
        self.method = method
        self.url = url
        self.reason = reason

        super().__init__(
            f"{method} {url} failed: {reason}", RecoveryAction.RETRY
        )


class ApiError(ClientError):
    """Error raised when the backend answers with a non-2xx status.

    Carries the status code and the raw response body so callers can
    inspect backend-specific error payloads.
    """

    def __init__(self, status_code: int, message: str, raw_body: str = ""):
        """Initialize API error.

        Args:
            status_code: HTTP status code
            message: Human readable error message
            raw_body: Raw response body text
        """
        self.status_code = status_code
        self.raw_body = raw_body

        if status_code == 401:
            recovery_action = RecoveryAction.REAUTHENTICATE
        elif status_code in (408, 429) or status_code >= 500:
            recovery_action = RecoveryAction.RETRY_WITH_DELAY
        else:
            recovery_action = RecoveryAction.ABORT

        super().__init__(f"API error {status_code}: {message}", recovery_action)
        self.message = message


class DecodeError(ClientError):
    """Error raised when a successful response body cannot be decoded.

    A malformed backend response is a programming or deployment problem,
    so it is never silently turned into an empty result.
    """

    def __init__(self, message: str, raw_body: str = ""):
        """Initialize decode error.

        Args:
            message: Description of the decode failure
            raw_body: Raw response body text
        """
        self.raw_body = raw_body
        super().__init__(message, RecoveryAction.ABORT)


class AuthError(ClientError):
    """Error raised when an auth exchange fails or no session is available."""

    def __init__(self, message: str, status_code: int | None = None):
        """Initialize auth error.

        Args:
            message: Error message
            status_code: HTTP status code of the failed exchange, if any
        """
        self.status_code = status_code
        super().__init__(message, RecoveryAction.REAUTHENTICATE)


class PersistenceError(ClientError):
    """Error raised when a persisted session blob is unreadable.

    The session manager recovers from this locally by discarding the blob.
    """

    def __init__(self, key: str, reason: str):
        """Initialize persistence error.

        Args:
            key: Storage key of the unreadable entry
            reason: Why the entry could not be used
        """
        self.key = key
        self.reason = reason
        super().__init__(
            f"Persisted entry {key!r} is unusable: {reason}", RecoveryAction.ABORT
        )
