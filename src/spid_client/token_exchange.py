# spid_client/token_exchange.py
"""Calls to the SPiD token endpoint."""

import logging
import time
from typing import Any, Callable, Dict, Optional

import httpx

from .access_token import AccessToken
from .config import SPiDConfig
from .errors import AuthorizationRejected, TransportFailure

logger = logging.getLogger(__name__)

# Token endpoint statuses that mean the grant itself was refused
REJECTION_STATUSES = (400, 401, 403)


class TokenExchange:
    """Obtains access tokens from the token endpoint."""

    def __init__(
        self,
        config: SPiDConfig,
        http_client: httpx.AsyncClient,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self._http = http_client
        self._clock = clock

    async def exchange_code(self, code: str) -> AccessToken:
        """
        Exchange an authorization code for a user token.

        Args:
            code: Authorization code received on the redirect URI

        Returns:
            New user access token
        """
        data = {"grant_type": "authorization_code", "code": code}
        if self.config.redirect_uri:
            data["redirect_uri"] = self.config.redirect_uri
        return await self._request_token(data)

    async def refresh(self, refresh_token: str) -> AccessToken:
        """Mint a new access token from a refresh token."""
        return await self._request_token(
            {"grant_type": "refresh_token", "refresh_token": refresh_token}
        )

    async def client_credentials(self) -> AccessToken:
        """Obtain an app-level token that is not bound to a user."""
        return await self._request_token({"grant_type": "client_credentials"})

    async def _request_token(self, data: Dict[str, Any]) -> AccessToken:
        grant_type = data["grant_type"]
        form = {
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            **data,
        }

        try:
            response = await self._http.post(
                self.config.token_url,
                data=form,
                timeout=self.config.request_timeout,
            )
        except httpx.RequestError as e:
            raise TransportFailure(f"Token endpoint unreachable: {e}") from e

        # Anything short of an explicit OAuth rejection is a transport failure
        if response.status_code in REJECTION_STATUSES:
            raise AuthorizationRejected(
                f"Token request ({grant_type}) rejected: "
                f"{_error_description(response)}"
            )
        if not response.is_success:
            raise TransportFailure(
                f"Token endpoint returned HTTP {response.status_code}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise TransportFailure(f"Token endpoint returned non-JSON body: {e}") from e
        if not isinstance(payload, dict):
            raise TransportFailure("Token endpoint returned a non-object JSON body")

        if payload.get("error"):
            raise AuthorizationRejected(
                f"Token request ({grant_type}) rejected: "
                f"{payload.get('error_description') or payload['error']}"
            )

        try:
            token = AccessToken.from_token_response(payload, now=self._clock())
        except (TypeError, ValueError) as e:
            raise TransportFailure(f"Invalid token response: {e}") from e

        logger.debug(f"Obtained token via {grant_type}")
        return token


def _error_description(response: httpx.Response) -> Optional[str]:
    try:
        payload = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(payload, dict):
        return payload.get("error_description") or payload.get("error")
    return f"HTTP {response.status_code}"
