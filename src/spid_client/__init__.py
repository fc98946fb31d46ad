"""SPiD Client Library - OAuth2 access token lifecycle for the SPiD identity API.

This library provides:
- Authorization code and client credentials token exchange
- Expiry tracking with a single shared token refresh
- Bounded refresh-and-resend of rejected API requests
- Token persistence across keychain and file backends with replication
"""

from .access_token import AccessToken
from .client import SPiDClient, TokenState
from .config import SPiDConfig
from .errors import (
    AuthorizationRejected,
    RetryExhausted,
    SPiDError,
    StorageFailure,
    TransportFailure,
    Unrefreshable,
)
from .file_token_store import FileTokenStore
from .keychain_store import KeychainTokenStore
from .request import RetryableRequest
from .secure_token_store import SecureTokenStore
from .token_exchange import TokenExchange
from .token_storage import TokenStorage
from .token_store_factory import TokenStoreBackend, TokenStoreFactory

__version__ = "0.1.0"

__all__ = [
    "AccessToken",
    "SPiDClient",
    "TokenState",
    "SPiDConfig",
    "SPiDError",
    "TransportFailure",
    "AuthorizationRejected",
    "Unrefreshable",
    "RetryExhausted",
    "StorageFailure",
    "SecureTokenStore",
    "KeychainTokenStore",
    "FileTokenStore",
    "TokenStoreBackend",
    "TokenStoreFactory",
    "TokenStorage",
    "RetryableRequest",
    "TokenExchange",
]
