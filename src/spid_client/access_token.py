# spid_client/access_token.py
"""Access token value object."""

import logging
import time
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

# Version of the persisted record layout written by to_record()
TOKEN_SCHEMA_VERSION = 1

# user_id values the token endpoint uses for client-credentials tokens
_CLIENT_USER_IDS = (None, False, 0, "0", "", "false")


class AccessToken(BaseModel):
    """OAuth access token issued by the SPiD token endpoint.

    Tokens are immutable. A refresh produces a new AccessToken that
    replaces the old one; the old value is never modified.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str
    expires_at: float = Field(description="Absolute expiry as a Unix timestamp")
    refresh_token: Optional[str] = None
    user_id: Optional[str] = None
    is_client_token: bool = False

    @classmethod
    def from_token_response(
        cls, payload: Dict[str, Any], now: Optional[float] = None
    ) -> "AccessToken":
        """
        Build a token from a token endpoint JSON payload.

        Args:
            payload: Decoded JSON body with access_token, expires_in,
                     and optionally refresh_token and user_id
            now: Issue time (default: current time)

        Returns:
            New AccessToken

        Raises:
            ValueError: If access_token or expires_in is missing
        """
        if now is None:
            now = time.time()

        access_token = payload.get("access_token")
        expires_in = payload.get("expires_in")
        if not access_token or expires_in is None:
            raise ValueError("Token response is missing access_token or expires_in")

        raw_user_id = payload.get("user_id")
        is_client_token = raw_user_id in _CLIENT_USER_IDS
        user_id = None if is_client_token else str(raw_user_id)

        return cls(
            access_token=access_token,
            expires_at=now + float(expires_in),
            refresh_token=payload.get("refresh_token") or None,
            user_id=user_id,
            is_client_token=is_client_token,
        )

    def is_expired(self, now: Optional[float] = None) -> bool:
        """Check whether the token has expired at ``now``."""
        if now is None:
            now = time.time()
        return now >= self.expires_at

    def time_until_expiry(self, now: Optional[float] = None) -> float:
        """Seconds left before expiry; negative once expired."""
        if now is None:
            now = time.time()
        return self.expires_at - now

    def get_authorization_header(self) -> str:
        return f"Bearer {self.access_token}"

    def to_record(self) -> Dict[str, Any]:
        """Serialize for a storage backend."""
        record = self.model_dump()
        record["schema_version"] = TOKEN_SCHEMA_VERSION
        return record

    @classmethod
    def from_record(cls, record: Any) -> Optional["AccessToken"]:
        """
        Deserialize a stored record.

        Returns None for records written by a newer schema version or
        records that do not validate.
        """
        if not isinstance(record, dict):
            logger.warning(f"Ignoring token record of type {type(record).__name__}")
            return None

        data = dict(record)
        version = data.pop("schema_version", TOKEN_SCHEMA_VERSION)
        if not isinstance(version, int) or isinstance(version, bool):
            logger.warning(f"Ignoring token record with schema version {version!r}")
            return None
        if version > TOKEN_SCHEMA_VERSION:
            logger.warning(f"Ignoring token record with schema version {version}")
            return None

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed token record: {e.error_count()} errors")
            return None
