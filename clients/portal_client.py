"""
Async API client for the portal with transparent token refresh.

Attaches the stored access token to every call. When the server answers
401 the client refreshes the token pair once, however many requests failed
concurrently, and replays the failed calls with the new token. If the
refresh itself is rejected the stored tokens are cleared, the
session-expired hook fires (send the user back to the login screen) and
every affected call raises SessionExpiredError.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Protocol

import httpx

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Non-success response from the portal API."""

    def __init__(self, status: int, data: Any = None, message: str | None = None):
        self.status = status
        self.data = data
        super().__init__(message or f"API error: {status}")


class SessionExpiredError(APIError):
    """Tokens could not be refreshed. The user must sign in again."""

    def __init__(self, message: str = "Session expired"):
        super().__init__(401, None, message)


class TokenStorage(Protocol):
    """Where the client keeps its token pair."""

    def get_access_token(self) -> str | None: ...

    def get_refresh_token(self) -> str | None: ...

    def set_tokens(self, access_token: str, refresh_token: str) -> None: ...

    def clear_tokens(self) -> None: ...


class MemoryTokenStorage:
    """Process-local token storage."""

    def __init__(self, access_token: str | None = None, refresh_token: str | None = None):
        self._access_token = access_token
        self._refresh_token = refresh_token

    def get_access_token(self) -> str | None:
        return self._access_token

    def get_refresh_token(self) -> str | None:
        return self._refresh_token

    def set_tokens(self, access_token: str, refresh_token: str) -> None:
        self._access_token = access_token
        self._refresh_token = refresh_token

    def clear_tokens(self) -> None:
        self._access_token = None
        self._refresh_token = None


@dataclass
class RequestOptions:
    """Options for one API call.

    `retry` marks a replay after a refresh. A replayed call is never
    refreshed again, which bounds every call to one refresh cycle.
    """

    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, Any] | None = None
    json: Any = None
    retry: bool = False


class RefreshCoordinator:
    """Single-flight state for token refresh. One per client.

    The first caller to acquire the slot performs the refresh; later callers
    park on a future until it settles, then share its outcome.
    """

    def __init__(self):
        self._in_flight = False
        self._waiters: list[asyncio.Future] = []

    @property
    def refresh_in_flight(self) -> bool:
        return self._in_flight

    @property
    def pending_count(self) -> int:
        return len(self._waiters)

    def acquire_refresh_slot(self) -> bool:
        """Claim the refresh. Returns False if another caller holds it."""
        if self._in_flight:
            return False
        self._in_flight = True
        return True

    def release_refresh_slot(self) -> None:
        """End the refresh cycle. Waiters left unsettled are cancelled."""
        self._in_flight = False
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.cancel()

    async def wait_for_refresh(self) -> str:
        """Suspend until the in-flight refresh settles.

        Returns the new access token, or raises the refresh's error.
        """
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        return await waiter

    def resolve_waiters(self, access_token: str) -> None:
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(access_token)

    def reject_waiters(self, error: BaseException) -> None:
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_exception(error)


class PortalAPIClient:
    """
    Portal API client.

    Usage:
        async with PortalAPIClient("https://portal.example/api", storage) as client:
            news = await client.get("/news", params={"page": 1})
    """

    REFRESH_ENDPOINT = "/auth/refresh"

    def __init__(
        self,
        base_url: str,
        storage: TokenStorage | None = None,
        on_session_expired: Callable[[], None] | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            base_url: API root, e.g. https://portal.example/api
            storage: Token storage (defaults to in-memory)
            on_session_expired: Called after tokens are cleared on a terminal
                auth failure, typically to redirect to the login screen
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self._storage = storage if storage is not None else MemoryTokenStorage()
        self._on_session_expired = on_session_expired
        self._coordinator = RefreshCoordinator()
        self._http = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    @property
    def coordinator(self) -> RefreshCoordinator:
        return self._coordinator

    async def close(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "PortalAPIClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def request(self, endpoint: str, options: RequestOptions | None = None) -> Any:
        """Call an endpoint, refreshing tokens once on 401.

        Returns:
            Decoded JSON body, or None for 204

        Raises:
            APIError: Non-success status (including 401 on a replayed call),
                or a success status whose body is not JSON
            SessionExpiredError: Tokens could not be refreshed, or the refresh
                this call was waiting on was interrupted
        """
        options = options or RequestOptions()
        sent_token = self._storage.get_access_token()
        response = await self._send(endpoint, options, sent_token)

        if response.status_code != 401 or options.retry:
            return self._handle_response(response)

        if self._is_refresh_endpoint(endpoint):
            raise self._expire_session("Session expired")

        # Another call already rotated the pair while this one was in flight
        current_token = self._storage.get_access_token()
        if current_token and current_token != sent_token:
            return await self._replay(endpoint, options)

        if not self._coordinator.acquire_refresh_slot():
            await self._coordinator.wait_for_refresh()
            return await self._replay(endpoint, options)

        try:
            access_token = await self._refresh_tokens()
        except SessionExpiredError as e:
            self._coordinator.reject_waiters(e)
            raise
        except BaseException:
            # Cancelled or crashed mid-refresh. Queued callers get a real error
            # instead of this task's cancellation; stored tokens are kept.
            self._coordinator.reject_waiters(SessionExpiredError("Token refresh interrupted"))
            raise
        else:
            self._coordinator.resolve_waiters(access_token)
        finally:
            self._coordinator.release_refresh_slot()

        return await self._replay(endpoint, options)

    async def get(self, endpoint: str, params: dict[str, Any] | None = None, headers: dict[str, str] | None = None) -> Any:
        return await self.request(endpoint, RequestOptions(method="GET", params=params, headers=headers or {}))

    async def post(self, endpoint: str, json: Any = None, headers: dict[str, str] | None = None) -> Any:
        return await self.request(endpoint, RequestOptions(method="POST", json=json, headers=headers or {}))

    async def put(self, endpoint: str, json: Any = None, headers: dict[str, str] | None = None) -> Any:
        return await self.request(endpoint, RequestOptions(method="PUT", json=json, headers=headers or {}))

    async def patch(self, endpoint: str, json: Any = None, headers: dict[str, str] | None = None) -> Any:
        return await self.request(endpoint, RequestOptions(method="PATCH", json=json, headers=headers or {}))

    async def delete(self, endpoint: str, headers: dict[str, str] | None = None) -> Any:
        return await self.request(endpoint, RequestOptions(method="DELETE", headers=headers or {}))

    def _is_refresh_endpoint(self, endpoint: str) -> bool:
        return endpoint.rstrip("/").endswith(self.REFRESH_ENDPOINT)

    async def _send(self, endpoint: str, options: RequestOptions, access_token: str | None) -> httpx.Response:
        headers = dict(options.headers)
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return await self._http.request(
            options.method,
            endpoint,
            headers=headers,
            params=options.params,
            json=options.json,
        )

    async def _replay(self, endpoint: str, options: RequestOptions) -> Any:
        return await self.request(endpoint, replace(options, retry=True))

    async def _refresh_tokens(self) -> str:
        """Exchange the stored refresh token for a new pair.

        Raises:
            SessionExpiredError: No refresh token, or the refresh failed
        """
        refresh_token = self._storage.get_refresh_token()
        if not refresh_token:
            raise self._expire_session("No refresh token")

        try:
            response = await self._http.post(self.REFRESH_ENDPOINT, json={"refresh_token": refresh_token})
        except httpx.HTTPError as e:
            logger.warning(f"Token refresh request failed: {e}")
            raise self._expire_session("Token refresh failed") from e

        if response.status_code != 200:
            logger.info(f"Token refresh rejected with status {response.status_code}")
            raise self._expire_session("Token refresh failed")

        try:
            data = response.json()["data"]
            access_token = data["access_token"]
            new_refresh_token = data["refresh_token"]
        except (ValueError, KeyError, TypeError) as e:
            raise self._expire_session("Malformed refresh response") from e

        self._storage.set_tokens(access_token, new_refresh_token)
        logger.info("Access token refreshed")
        return access_token

    def _expire_session(self, message: str) -> SessionExpiredError:
        """Clear tokens, fire the hook, and build the error to raise."""
        self._storage.clear_tokens()
        if self._on_session_expired is not None:
            self._on_session_expired()
        logger.warning(f"Session ended: {message}")
        return SessionExpiredError(message)

    @staticmethod
    def _handle_response(response: httpx.Response) -> Any:
        if response.status_code == 204:
            return None

        if response.is_success:
            try:
                return response.json()
            except ValueError:
                logger.warning(f"Non-JSON body with status {response.status_code}")
                raise APIError(response.status_code, None, "Malformed response")

        try:
            data = response.json()
        except ValueError:
            data = {"error": response.reason_phrase}

        message = None
        if isinstance(data, dict):
            error = data.get("error")
            if isinstance(error, dict):
                message = error.get("message")
            elif isinstance(error, str):
                message = error
        raise APIError(response.status_code, data, message)
