"""Test helpers shared across spid_client tests."""

import asyncio
from typing import Dict, List, Optional

import httpx
from keyring.backend import KeyringBackend
from keyring.errors import KeyringError, PasswordDeleteError

from spid_client.access_token import AccessToken
from spid_client.secure_token_store import SecureTokenStore

NOW = 1_700_000_000.0


class MemoryTokenStore(SecureTokenStore):
    """In-memory backend that records every call."""

    def __init__(self, name: str, put_result: bool = True):
        self.name = name
        self.put_result = put_result
        self.records: Dict[str, AccessToken] = {}
        self.calls: List[tuple] = []

    def get(self, identifier: str) -> Optional[AccessToken]:
        self.calls.append(("get", identifier))
        return self.records.get(identifier)

    def put(self, identifier: str, token: AccessToken) -> bool:
        self.calls.append(("put", identifier, token))
        if self.put_result:
            self.records[identifier] = token
        return self.put_result

    def update(self, identifier: str, token: AccessToken) -> bool:
        self.calls.append(("update", identifier, token))
        if self.put_result:
            self.records[identifier] = token
        return self.put_result

    def remove(self, identifier: str) -> None:
        self.calls.append(("remove", identifier))
        self.records.pop(identifier, None)

    def call_names(self) -> List[str]:
        return [call[0] for call in self.calls]


class InMemoryKeyring(KeyringBackend):
    """Keyring backend holding passwords in a dict."""

    priority = 1

    def __init__(self):
        super().__init__()
        self.passwords: Dict[tuple, str] = {}

    def get_password(self, service, username):
        return self.passwords.get((service, username))

    def set_password(self, service, username, password):
        self.passwords[(service, username)] = password

    def delete_password(self, service, username):
        try:
            del self.passwords[(service, username)]
        except KeyError:
            raise PasswordDeleteError("Password not found")


class BrokenKeyring(KeyringBackend):
    """Keyring backend where every operation fails."""

    priority = 1

    def get_password(self, service, username):
        raise KeyringError("keychain locked")

    def set_password(self, service, username, password):
        raise KeyringError("keychain locked")

    def delete_password(self, service, username):
        raise KeyringError("keychain locked")


def make_token(
    access_token: str = "test_access_token",
    refresh_token: Optional[str] = "test_refresh_token",
    expires_in: float = 3600,
    user_id: Optional[str] = "12345",
) -> AccessToken:
    return AccessToken(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=NOW + expires_in,
        user_id=user_id,
        is_client_token=user_id is None,
    )


async def run_until(predicate, max_iterations: int = 1000) -> None:
    """Yield to the event loop until predicate() is true."""
    for _ in range(max_iterations):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


def mock_http_client(handler) -> httpx.AsyncClient:
    """Build an AsyncClient whose requests are answered by handler."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))
