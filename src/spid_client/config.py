# spid_client/config.py
"""Client configuration."""

import os
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from .token_store_factory import TokenStoreBackend


class SPiDConfig(BaseModel):
    """Settings for talking to a SPiD server."""

    client_id: str
    client_secret: str
    server_url: str
    token_path: str = "/oauth/token"
    app_url_scheme: Optional[str] = None
    redirect_uri: Optional[str] = None
    api_version: str = "2"
    server_client_id: Optional[str] = None
    max_retries: int = Field(default=1, ge=0)
    request_timeout: float = 60.0
    read_backends: List[TokenStoreBackend] = Field(
        default_factory=lambda: [TokenStoreBackend.KEYCHAIN, TokenStoreBackend.FILE]
    )
    write_backends: List[TokenStoreBackend] = Field(
        default_factory=lambda: [TokenStoreBackend.KEYCHAIN, TokenStoreBackend.FILE]
    )
    token_dir: Path = Field(default_factory=lambda: Path.home() / ".spid_client" / "tokens")
    keychain_service: str = "spid-client"

    @model_validator(mode="after")
    def _default_redirect_uri(self) -> "SPiDConfig":
        if self.redirect_uri is None and self.app_url_scheme:
            self.redirect_uri = f"{self.app_url_scheme}://SPiD/login"
        return self

    @property
    def token_url(self) -> str:
        return self.server_url.rstrip("/") + self.token_path

    def api_path(self, path: str) -> str:
        """Prefix an API path with the configured API version."""
        if not path.startswith("/"):
            path = "/" + path
        return f"/api/{self.api_version}{path}"

    @classmethod
    def from_env(cls) -> "SPiDConfig":
        """
        Build configuration from SPID_* environment variables.

        Raises:
            ValueError: If a required variable is not set
        """
        required = {
            "client_id": "SPID_CLIENT_ID",
            "client_secret": "SPID_CLIENT_SECRET",
            "server_url": "SPID_SERVER_URL",
        }
        values = {}
        for field, var in required.items():
            value = os.environ.get(var)
            if not value:
                raise ValueError(f"Environment variable {var} is not set")
            values[field] = value

        optional = {
            "redirect_uri": "SPID_REDIRECT_URI",
            "api_version": "SPID_API_VERSION",
            "max_retries": "SPID_MAX_RETRIES",
            "token_dir": "SPID_TOKEN_DIR",
        }
        for field, var in optional.items():
            value = os.environ.get(var)
            if value:
                values[field] = value

        return cls.model_validate(values)
