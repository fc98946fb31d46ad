# spid_client/token_storage.py
"""Token persistence across several storage backends."""

import logging
from pathlib import Path
from typing import Any, Dict, Hashable, List, Optional, Sequence

from .access_token import AccessToken
from .errors import StorageFailure
from .secure_token_store import SecureTokenStore
from .token_store_factory import TokenStoreBackend, TokenStoreFactory

logger = logging.getLogger(__name__)

ACCESS_TOKEN_IDENTIFIER = "AccessToken"


class TokenStorage:
    """
    Presents one logical token store backed by several physical backends.

    Reads consult ``read_backends`` in order and stop at the first hit.
    Writes go to every backend in ``write_backends``.
    """

    def __init__(
        self,
        read_backends: Sequence[Hashable] = (
            TokenStoreBackend.KEYCHAIN,
            TokenStoreBackend.FILE,
        ),
        write_backends: Sequence[Hashable] = (
            TokenStoreBackend.KEYCHAIN,
            TokenStoreBackend.FILE,
        ),
        identifier: str = ACCESS_TOKEN_IDENTIFIER,
        backends: Optional[Dict[Hashable, SecureTokenStore]] = None,
        token_dir: Optional[Path] = None,
        service_name: str = "spid-client",
        keyring_backend: Any = None,
    ):
        """
        Initialize token storage.

        Args:
            read_backends: Backend tags consulted by load(), in preference order
            write_backends: Backend tags written by store() and update()
            identifier: Record key shared by all backends
            backends: Prebuilt backend instances keyed by tag; when omitted,
                      one instance per distinct tag is created by TokenStoreFactory
            token_dir: Directory for the file backend
            service_name: Keychain service name for the keychain backend
            keyring_backend: Explicit keyring backend for the keychain backend

        Raises:
            ValueError: If a listed tag has no backend instance
        """
        self.identifier = identifier
        self._read_types: List[Hashable] = list(read_backends)
        self._write_types: List[Hashable] = list(write_backends)

        if backends is None:
            backends = {}
            for backend_type in dict.fromkeys(self._read_types + self._write_types):
                backends[backend_type] = TokenStoreFactory.create(
                    backend_type,
                    token_dir=token_dir,
                    service_name=service_name,
                    keyring_backend=keyring_backend,
                )

        missing = [
            t for t in self._read_types + self._write_types if t not in backends
        ]
        if missing:
            raise ValueError(f"No backend instance registered for {missing}")

        self._backends: Dict[Hashable, SecureTokenStore] = dict(backends)

    @property
    def backends(self) -> Dict[Hashable, SecureTokenStore]:
        """Registry of backend instances keyed by tag."""
        return dict(self._backends)

    @property
    def read_backends(self) -> List[SecureTokenStore]:
        return [self._backends[t] for t in self._read_types]

    @property
    def write_backends(self) -> List[SecureTokenStore]:
        return [self._backends[t] for t in self._write_types]

    def _find(self) -> tuple[Optional[AccessToken], Optional[Hashable]]:
        for backend_type in self._read_types:
            try:
                token = self._backends[backend_type].get(self.identifier)
            except StorageFailure as e:
                logger.warning(f"Skipping {backend_type} backend on read: {e}")
                continue
            if token is not None:
                return token, backend_type
        return None, None

    def load(self) -> Optional[AccessToken]:
        """
        Load the token from the first read backend that has one.

        Returns:
            Token if found, None otherwise
        """
        token, _ = self._find()
        return token

    def load_and_replicate(self) -> Optional[AccessToken]:
        """
        Load the token and copy it into every other write backend.

        Replication is best-effort; a failed copy is logged and does not
        affect the returned token.

        Returns:
            Token if found, None otherwise
        """
        token, source_type = self._find()
        if token is None:
            return None

        for backend_type in dict.fromkeys(self._write_types):
            if backend_type == source_type:
                continue
            if not self._backends[backend_type].put(self.identifier, token):
                logger.warning(f"Failed to replicate token into {backend_type} backend")

        return token

    def store(self, token: AccessToken) -> bool:
        """
        Write the token to every write backend.

        Every backend is attempted even after a failure.

        Returns:
            True only if every backend write succeeded
        """
        result = True
        for backend in self.write_backends:
            result &= backend.put(self.identifier, token)
        if not result:
            logger.warning("Token was not stored in every backend")
        return result

    def update(self, token: AccessToken) -> bool:
        """
        Write a refreshed token to every write backend.

        Returns:
            True only if every backend update succeeded
        """
        result = True
        for backend in self.write_backends:
            result &= backend.update(self.identifier, token)
        if not result:
            logger.warning("Token was not updated in every backend")
        return result

    def remove(self) -> None:
        """Delete the token from every registered backend, read or write."""
        for backend in self._backends.values():
            backend.remove(self.identifier)
