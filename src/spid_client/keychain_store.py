# spid_client/keychain_store.py
"""Token backend using the system keychain through keyring."""

import json
import logging
import threading
from typing import Any, Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from .access_token import AccessToken
from .errors import StorageFailure
from .secure_token_store import SecureTokenStore

logger = logging.getLogger(__name__)


class KeychainTokenStore(SecureTokenStore):
    """Stores each token record as a JSON password entry in the OS keychain."""

    def __init__(self, service_name: str = "spid-client", keyring_backend: Any = None):
        """
        Initialize keychain storage.

        Args:
            service_name: Keychain service the entries are filed under
            keyring_backend: Explicit keyring backend instance
                             (default: the keyring module's active backend)
        """
        self.service_name = service_name
        self._keyring = keyring_backend if keyring_backend is not None else keyring
        self._lock = threading.Lock()

    def get(self, identifier: str) -> Optional[AccessToken]:
        with self._lock:
            try:
                value = self._keyring.get_password(self.service_name, identifier)
            except KeyringError as e:
                raise StorageFailure(f"Keychain read failed: {e}") from e

        if value is None:
            return None

        try:
            record = json.loads(value)
        except json.JSONDecodeError:
            logger.warning(f"Discarding unreadable keychain entry for {identifier}")
            return None
        if not isinstance(record, dict):
            logger.warning(f"Discarding non-object keychain entry for {identifier}")
            return None
        return AccessToken.from_record(record)

    def put(self, identifier: str, token: AccessToken) -> bool:
        value = json.dumps(token.to_record())
        with self._lock:
            try:
                self._keyring.set_password(self.service_name, identifier, value)
            except KeyringError as e:
                logger.warning(f"Keychain write failed for {identifier}: {e}")
                return False
        return True

    def remove(self, identifier: str) -> None:
        with self._lock:
            try:
                self._keyring.delete_password(self.service_name, identifier)
            except PasswordDeleteError:
                pass
            except KeyringError as e:
                logger.warning(f"Keychain delete failed for {identifier}: {e}")
