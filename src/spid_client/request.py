# spid_client/request.py
"""API request that can be resent after a token refresh."""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from .access_token import AccessToken

logger = logging.getLogger(__name__)


class RetryableRequest:
    """
    One logical API call together with its completion future.

    The future is resolved exactly once: either with the ``httpx.Response``
    or with an SPiDError. ``attempt`` counts the refresh-and-resend cycles
    the request has consumed.
    """

    def __init__(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ):
        method = (method or "GET").upper()
        if method not in ("GET", "POST"):
            raise ValueError(f"Unsupported HTTP method: {method}")

        self.method = method
        self.path = path
        self.body = body if method == "POST" else None
        self.params = params
        self.attempt = 0
        self._future: Optional[asyncio.Future] = None

    def __repr__(self) -> str:
        return f"<RetryableRequest {self.method} {self.path} attempt={self.attempt}>"

    @property
    def future(self) -> asyncio.Future:
        """Completion future, bound to the running event loop on first access."""
        if self._future is None:
            self._future = asyncio.get_running_loop().create_future()
        return self._future

    @property
    def done(self) -> bool:
        return self._future is not None and self._future.done()

    def succeed(self, response: httpx.Response) -> bool:
        """Deliver the response. Returns False if already completed."""
        if self.future.done():
            return False
        self.future.set_result(response)
        return True

    def fail(self, error: BaseException) -> bool:
        """Deliver an error. Returns False if already completed."""
        if self.future.done():
            return False
        self.future.set_exception(error)
        return True

    def build(
        self, base_url: str, token: AccessToken, timeout: Optional[float] = None
    ) -> httpx.Request:
        """
        Build the HTTP request with the bearer token attached.

        Args:
            base_url: Server base URL
            token: Token to authorize the request with
            timeout: Request timeout in seconds (default: no timeout)

        Returns:
            Request ready to be sent with an httpx client
        """
        url = base_url.rstrip("/") + self.path
        headers = {"Authorization": token.get_authorization_header()}
        logger.debug(f"Building {self.method} {url} (attempt {self.attempt})")
        return httpx.Request(
            self.method,
            url,
            params=self.params,
            data=self.body,
            headers=headers,
            extensions={"timeout": httpx.Timeout(timeout).as_dict()},
        )
