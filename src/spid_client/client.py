# spid_client/client.py
"""Access token lifecycle management and authenticated API calls."""

import asyncio
import logging
import time
from collections import deque
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Set, Union

import httpx

from .access_token import AccessToken
from .config import SPiDConfig
from .errors import (
    AuthorizationRejected,
    RetryExhausted,
    SPiDError,
    TransportFailure,
    Unrefreshable,
)
from .request import RetryableRequest
from .token_exchange import TokenExchange
from .token_storage import TokenStorage

logger = logging.getLogger(__name__)


class TokenState(str, Enum):
    """Lifecycle state of the client's access token."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"
    EXPIRED = "expired"


class SPiDClient:
    """
    Owns the current access token and sends authenticated API requests.

    At most one refresh exchange runs at a time. Requests that need a fresh
    token while a refresh is in flight wait in a FIFO queue and are resent
    once the refresh completes. A request rejected with HTTP 401 is
    refreshed and resent at most ``config.max_retries`` times.
    """

    def __init__(
        self,
        config: SPiDConfig,
        token_storage: Optional[TokenStorage] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        token_exchange: Optional[TokenExchange] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the client and load any persisted token.

        Args:
            config: Client configuration
            token_storage: Token storage (default: built from config backends)
            http_client: HTTP client (default: a new client owned by this instance)
            token_exchange: Token endpoint client (default: built from config)
            clock: Time source returning Unix timestamps
        """
        self.config = config
        self._clock = clock

        self.token_storage = token_storage or TokenStorage(
            read_backends=config.read_backends,
            write_backends=config.write_backends,
            token_dir=config.token_dir,
            service_name=config.keychain_service,
        )

        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=config.request_timeout)
        self.token_exchange = token_exchange or TokenExchange(
            config, self._http, clock=clock
        )

        self._lock = asyncio.Lock()
        self._waiting: Deque[RetryableRequest] = deque()
        self._refresh_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()
        # Bumped whenever the token is replaced outside a refresh; a refresh
        # started under an older generation must not install its result.
        self._generation = 0

        self._access_token: Optional[AccessToken] = (
            self.token_storage.load_and_replicate()
        )
        if self._access_token is not None:
            logger.info("Loaded access token from storage")

    async def __aenter__(self) -> "SPiDClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """
        Cancel pending work and close the HTTP client if this instance created it.

        Requests still waiting for a refresh or still in flight fail with
        SPiDError. The token itself is kept.
        """
        async with self._lock:
            refresh_task = self._refresh_task
            self._refresh_task = None
            waiting = self._drain_locked()
            pending = [task for task in self._tasks if not task.done()]

        if refresh_task is not None and not refresh_task.done():
            pending.append(refresh_task)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        for request in waiting:
            request.fail(SPiDError("Client closed"))

        if self._owns_http:
            await self._http.aclose()

    # ------------------------------------------------------------------
    # Queries

    @property
    def access_token(self) -> Optional[AccessToken]:
        return self._access_token

    @property
    def state(self) -> TokenState:
        if self._refresh_task is not None:
            return TokenState.REFRESHING
        if self._access_token is None:
            return TokenState.UNAUTHENTICATED
        if self._access_token.is_expired(self._clock()):
            return TokenState.EXPIRED
        return TokenState.AUTHENTICATED

    def is_authorized(self) -> bool:
        return self._access_token is not None

    def has_token_expired(self) -> bool:
        token = self._access_token
        return token is None or token.is_expired(self._clock())

    def current_user_id(self) -> Optional[str]:
        token = self._access_token
        return token.user_id if token else None

    def token_expires_at(self) -> Optional[float]:
        token = self._access_token
        return token.expires_at if token else None

    def is_client_token(self) -> bool:
        token = self._access_token
        return token.is_client_token if token else False

    # ------------------------------------------------------------------
    # Authorization

    async def authorize_with_code(self, code: str) -> AccessToken:
        """
        Exchange an authorization code for a user token and persist it.

        Args:
            code: Authorization code delivered on the redirect URI

        Returns:
            The installed access token
        """
        token = await self.token_exchange.exchange_code(code)
        await self._install(token)
        logger.info(f"Authorized user {token.user_id}")
        return token

    async def authorize_client(self) -> AccessToken:
        """Obtain and persist an app-level token via client credentials."""
        token = await self.token_exchange.client_credentials()
        await self._install(token)
        logger.info("Authorized with client token")
        return token

    async def _install(self, token: AccessToken) -> None:
        async with self._lock:
            self._access_token = token
            self._generation += 1
        if not self.token_storage.store(token):
            logger.warning("Access token could not be persisted to every backend")

    async def refresh_access_token(self) -> AccessToken:
        """
        Refresh the access token, joining a refresh already in flight.

        Returns:
            The new access token

        Raises:
            AuthorizationRejected: If there is no token or the server rejects the refresh
            Unrefreshable: If the token has no refresh token
            TransportFailure: If the token endpoint cannot be reached
        """
        unrefreshable = False
        async with self._lock:
            if self._refresh_task is None:
                token = self._access_token
                if token is None:
                    raise AuthorizationRejected("Client is not authorized")
                if not token.refresh_token:
                    self._clear_token_locked()
                    unrefreshable = True
                else:
                    self._start_refresh_locked(token)
            task = self._refresh_task

        if unrefreshable:
            self.token_storage.remove()
            raise Unrefreshable("Access token has no refresh token")

        result = await asyncio.shield(task)
        if isinstance(result, SPiDError):
            raise result
        return result

    async def logout(self) -> None:
        """
        Forget the access token locally and in every storage backend.

        Requests waiting for a refresh fail with AuthorizationRejected.
        """
        async with self._lock:
            self._clear_token_locked()
            waiting = self._drain_locked()

        self.token_storage.remove()
        for request in waiting:
            request.fail(AuthorizationRejected("Client logged out"))
        logger.info("Logged out")

    # ------------------------------------------------------------------
    # Requests

    def send(self, request: RetryableRequest) -> asyncio.Future:
        """
        Schedule an authenticated request without waiting for it.

        Must be called from a running event loop. The returned future
        resolves exactly once, with the ``httpx.Response`` or an SPiDError.
        """
        future = request.future
        self._spawn(self._run(request))
        return future

    async def request(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Send a request and wait for its outcome."""
        return await self.send(RetryableRequest(method, path, body=body, params=params))

    async def api_get(
        self, path: str, params: Optional[Dict[str, Any]] = None
    ) -> httpx.Response:
        return await self.request("GET", self.config.api_path(path), params=params)

    async def api_post(self, path: str, body: Dict[str, Any]) -> httpx.Response:
        return await self.request("POST", self.config.api_path(path), body=body)

    async def get_me(self) -> httpx.Response:
        return await self.api_get("/me")

    async def get_user(self, user_id: str) -> httpx.Response:
        return await self.api_get(f"/user/{user_id}")

    async def get_current_user(self) -> httpx.Response:
        """Fetch the user the current token belongs to."""
        user_id = self.current_user_id()
        if user_id is None:
            raise AuthorizationRejected("No user is logged in")
        return await self.get_user(user_id)

    async def get_user_logins(self, user_id: str) -> httpx.Response:
        return await self.api_get(f"/user/{user_id}/logins")

    async def get_one_time_code(self) -> httpx.Response:
        """Request a one-time code the app's server can exchange for a token."""
        client_id = self.config.server_client_id or self.config.client_id
        return await self.api_post(
            "/oauth/exchange", {"clientId": client_id, "type": "code"}
        )

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, request: RetryableRequest) -> None:
        try:
            await self._submit(request)
        except asyncio.CancelledError:
            request.fail(SPiDError("Client closed"))
            raise
        except Exception as e:
            logger.exception(f"Unexpected error while sending {request!r}")
            request.fail(e)

    async def _submit(self, request: RetryableRequest) -> None:
        unrefreshable = False
        async with self._lock:
            if self._refresh_task is not None:
                self._waiting.append(request)
                return

            token = self._access_token
            if token is None:
                request.fail(AuthorizationRejected("Client is not authorized"))
                return

            if token.is_expired(self._clock()):
                if not token.refresh_token:
                    self._clear_token_locked()
                    unrefreshable = True
                else:
                    self._waiting.append(request)
                    self._start_refresh_locked(token)
                    return

        if unrefreshable:
            logger.info("Access token expired and has no refresh token")
            self.token_storage.remove()
            request.fail(Unrefreshable("Access token expired and cannot be refreshed"))
            return

        await self._perform(request, token)

    async def _perform(self, request: RetryableRequest, token: AccessToken) -> None:
        try:
            http_request = request.build(
                self.config.server_url, token, timeout=self.config.request_timeout
            )
            response = await self._http.send(http_request)
        except httpx.RequestError as e:
            request.fail(TransportFailure(f"{request.method} {request.path} failed: {e}"))
            return

        if response.status_code != 401:
            request.succeed(response)
            return

        logger.info(f"{request.method} {request.path} rejected with 401")
        await self._handle_rejection(request, token)

    async def _handle_rejection(
        self, request: RetryableRequest, token: AccessToken
    ) -> None:
        unrefreshable = False
        resend = False
        async with self._lock:
            if request.attempt >= self.config.max_retries:
                request.fail(
                    RetryExhausted(
                        f"{request.method} {request.path} still rejected after "
                        f"{request.attempt} token refresh(es)",
                        attempts=request.attempt + 1,
                    )
                )
                return

            current = self._access_token
            if self._refresh_task is not None:
                self._waiting.append(request)
            elif current is None:
                request.fail(AuthorizationRejected("Client is not authorized"))
                return
            elif current is not token:
                # Another caller already installed a newer token
                request.attempt += 1
                resend = True
            elif not current.refresh_token:
                self._clear_token_locked()
                unrefreshable = True
            else:
                self._waiting.append(request)
                self._start_refresh_locked(current)

        if unrefreshable:
            self.token_storage.remove()
            request.fail(Unrefreshable("Access token rejected and cannot be refreshed"))
        elif resend:
            await self._submit(request)

    # ------------------------------------------------------------------
    # Refresh

    def _start_refresh_locked(self, token: AccessToken) -> None:
        logger.info("Refreshing access token")
        self._refresh_task = asyncio.get_running_loop().create_task(
            self._refresh(token, self._generation)
        )

    def _clear_token_locked(self) -> None:
        self._access_token = None
        self._generation += 1

    def _drain_locked(self) -> List[RetryableRequest]:
        waiting = list(self._waiting)
        self._waiting.clear()
        return waiting

    async def _refresh(
        self, token: AccessToken, generation: int
    ) -> Union[AccessToken, SPiDError]:
        try:
            new_token = await self.token_exchange.refresh(token.refresh_token)
        except AuthorizationRejected as e:
            logger.warning(f"Token refresh rejected: {e}")
            async with self._lock:
                self._refresh_task = None
                waiting = self._drain_locked()
                current = generation == self._generation
                if current:
                    self._clear_token_locked()
            if current:
                self.token_storage.remove()
                for request in waiting:
                    request.fail(AuthorizationRejected(f"Token refresh failed: {e}"))
            else:
                self._replay(waiting)
            return e
        except Exception as e:
            # The token is kept; the next request may try again
            if isinstance(e, SPiDError):
                error = e
                logger.warning(f"Token refresh failed: {e}")
            else:
                error = SPiDError(f"Token refresh failed: {e}")
                logger.exception("Unexpected error during token refresh")
            async with self._lock:
                self._refresh_task = None
                waiting = self._drain_locked()
            for request in waiting:
                request.fail(error)
            return error

        if new_token.user_id is None and token.user_id is not None:
            new_token = new_token.model_copy(
                update={"user_id": token.user_id, "is_client_token": False}
            )

        async with self._lock:
            self._refresh_task = None
            waiting = self._drain_locked()
            current = generation == self._generation
            if current:
                self._access_token = new_token

        if not current:
            logger.info("Discarding refreshed token from an outdated session")
            self._replay(waiting)
            return AuthorizationRejected("Session changed during token refresh")

        if not self.token_storage.update(new_token):
            logger.warning("Refreshed token could not be persisted to every backend")
        logger.info(f"Access token refreshed, resending {len(waiting)} request(s)")
        self._replay(waiting)
        return new_token

    def _replay(self, waiting: List[RetryableRequest]) -> None:
        for request in waiting:
            request.attempt += 1
            self._spawn(self._run(request))
