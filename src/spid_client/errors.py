# spid_client/errors.py
"""Error types delivered to request callers."""


class SPiDError(Exception):
    """Base class for all spid_client errors."""


class TransportFailure(SPiDError):
    """The token or API endpoint could not be reached."""


class AuthorizationRejected(SPiDError):
    """The server rejected the credential (access token or refresh token)."""


class Unrefreshable(AuthorizationRejected):
    """The token has no refresh token, so it cannot be renewed."""


class RetryExhausted(AuthorizationRejected):
    """The request was rejected again after the allowed number of refreshes."""

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


class StorageFailure(SPiDError):
    """A storage backend failed to read or write a token record."""
