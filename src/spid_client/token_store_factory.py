# spid_client/token_store_factory.py
"""Backend selection for token storage."""

from enum import Enum
from pathlib import Path
from typing import Any, Optional

from .file_token_store import FileTokenStore
from .keychain_store import KeychainTokenStore
from .secure_token_store import SecureTokenStore


class TokenStoreBackend(str, Enum):
    """Available token storage backends."""

    KEYCHAIN = "keychain"
    FILE = "file"


class TokenStoreFactory:
    """Creates storage backend instances from a backend tag."""

    @staticmethod
    def create(
        backend: TokenStoreBackend,
        token_dir: Optional[Path] = None,
        service_name: str = "spid-client",
        keyring_backend: Any = None,
    ) -> SecureTokenStore:
        """
        Create a token store.

        Args:
            backend: Backend tag
            token_dir: Directory for the file backend
            service_name: Keychain service name for the keychain backend
            keyring_backend: Explicit keyring backend for the keychain backend

        Returns:
            New SecureTokenStore instance

        Raises:
            ValueError: If the backend tag is unknown
        """
        backend = TokenStoreBackend(backend)
        if backend == TokenStoreBackend.KEYCHAIN:
            return KeychainTokenStore(
                service_name=service_name, keyring_backend=keyring_backend
            )
        if backend == TokenStoreBackend.FILE:
            return FileTokenStore(token_dir=token_dir)
        raise ValueError(f"Unknown token store backend: {backend}")  # pragma: no cover
