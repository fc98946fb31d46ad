"""Shared fixtures for spid_client tests."""

import pytest

from helpers import InMemoryKeyring, make_token
from spid_client.config import SPiDConfig


@pytest.fixture
def config(tmp_path):
    """Provide client configuration."""
    return SPiDConfig(
        client_id="test_client_id",
        client_secret="test_client_secret",
        server_url="https://spid.example.com",
        redirect_uri="spid-test://SPiD/login",
        token_dir=tmp_path / "tokens",
    )


@pytest.fixture
def valid_token():
    """Provide an unexpired user token."""
    return make_token()


@pytest.fixture
def expired_token():
    """Provide an expired token that can be refreshed."""
    return make_token(access_token="expired_access_token", expires_in=-1)


@pytest.fixture
def refreshed_token():
    """Provide the token a refresh exchange returns."""
    return make_token(access_token="new_access_token", refresh_token="new_refresh_token")


@pytest.fixture
def keyring_backend():
    """Provide an in-memory keyring backend."""
    return InMemoryKeyring()
