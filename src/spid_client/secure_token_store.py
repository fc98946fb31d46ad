# spid_client/secure_token_store.py
"""Storage backend interface for access tokens."""

from abc import ABC, abstractmethod
from typing import Optional

from .access_token import AccessToken


class SecureTokenStore(ABC):
    """
    Durable store for one token record per identifier.

    Implementations must be safe to call from several threads and must not
    share state with other backends.
    """

    @abstractmethod
    def get(self, identifier: str) -> Optional[AccessToken]:
        """
        Retrieve the token stored under ``identifier``.

        Returns:
            The token, or None if no record exists

        Raises:
            StorageFailure: If the underlying store cannot be read
        """

    @abstractmethod
    def put(self, identifier: str, token: AccessToken) -> bool:
        """Create or replace the record. Returns True on success."""

    def update(self, identifier: str, token: AccessToken) -> bool:
        """Replace the record after a refresh. Same contract as put()."""
        return self.put(identifier, token)

    @abstractmethod
    def remove(self, identifier: str) -> None:
        """Delete the record if present. Missing records are not an error."""
