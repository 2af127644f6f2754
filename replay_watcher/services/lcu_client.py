"""League client API service: connection lifecycle and request action."""

import asyncio
import re
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from ..models import GameId
from .credentials import ClientCredentials, discover_credentials
from .errors import ClientConnectionError, ClientNotFoundError, ClientRequestError

log = structlog.stdlib.get_logger()

LIFECYCLE_EVENTS = ("connecting", "connected", "disconnected")

REPLAY_DOWNLOAD_COMPONENT = "replay-button_match-history"

_PLACEHOLDER = re.compile(r"\{(\w+)\}")

LifecycleListener = Callable[[], None]
CredentialsProvider = Callable[[], ClientCredentials]


def expand_path(template: str, path_params: dict[str, Any] | None = None) -> str:
    """Fill ``{name}`` placeholders of an endpoint path.

    Raises:
        ValueError: If a placeholder has no value
    """
    params = path_params or {}

    def substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in params:
            raise ValueError(f"Missing path parameter '{name}' for {template}")
        return quote(str(params[name]), safe="")

    return _PLACEHOLDER.sub(substitute, template)


class LeagueClientService:
    """Talks to the local League client API.

    Emits ``connecting``, ``connected`` and ``disconnected`` lifecycle events
    to listeners registered with :meth:`on`.
    """

    def __init__(
        self,
        credentials_provider: CredentialsProvider | None = None,
        timeout: float = 10.0,
        connect_retry_delay: float = 2.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize the client service.

        Args:
            credentials_provider: Callable returning the running client's credentials
            timeout: Request timeout in seconds
            connect_retry_delay: Delay between attempts to find the client in seconds
            sleep: Awaitable sleep used between connection attempts
        """
        self._credentials_provider: CredentialsProvider = credentials_provider or discover_credentials
        self.timeout = timeout
        self.connect_retry_delay = connect_retry_delay
        self._sleep = sleep

        self._credentials: ClientCredentials | None = None
        self._client: httpx.AsyncClient | None = None
        self._listeners: dict[str, list[LifecycleListener]] = {name: [] for name in LIFECYCLE_EVENTS}
        self._connect_cancelled = False

    @property
    def credentials(self) -> ClientCredentials | None:
        return self._credentials

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    def on(self, event: str, listener: LifecycleListener) -> None:
        """Register a listener for a lifecycle event."""
        if event not in self._listeners:
            raise ValueError(f"Unknown lifecycle event '{event}', expected one of {LIFECYCLE_EVENTS}")
        self._listeners[event].append(listener)

    def _emit(self, event: str) -> None:
        for listener in self._listeners[event]:
            listener()

    async def connect(self, max_attempts: int | None = None) -> ClientCredentials:
        """Wait for a running client and open an API session to it.

        Args:
            max_attempts: Give up after this many discovery attempts (None = wait forever)

        Returns:
            Credentials of the connected client

        Raises:
            ClientNotFoundError: If ``max_attempts`` discovery attempts all failed
            ClientConnectionError: If waiting was stopped with :meth:`cancel_connect`
        """
        self._emit("connecting")

        attempt = 0
        while True:
            if self._connect_cancelled:
                raise ClientConnectionError("Stopped waiting for the League client.")
            attempt += 1
            try:
                credentials = self._credentials_provider()
                break
            except ClientNotFoundError as e:
                if max_attempts is not None and attempt >= max_attempts:
                    raise
                log.debug("Client not found, waiting", attempt=attempt, error=e.message)
                await self._sleep(self.connect_retry_delay)

        await self._close_session()
        self._credentials = credentials
        self._client = httpx.AsyncClient(
            base_url=credentials.base_url,
            auth=("riot", credentials.token),
            headers={"Accept": "application/json"},
            timeout=httpx.Timeout(self.timeout),
            # The client serves a self-signed certificate
            verify=False,
        )

        log.info("Connected to League client", port=credentials.port, pid=credentials.pid)
        self._emit("connected")
        return credentials

    def cancel_connect(self) -> None:
        """Make pending and future ``connect`` calls give up instead of waiting."""
        self._connect_cancelled = True

    async def mark_disconnected(self) -> None:
        """Drop the API session after the client went away."""
        await self._close_session()
        log.info("Disconnected from League client")
        self._emit("disconnected")

    async def request(
        self,
        method: str,
        path: str,
        *,
        path_params: dict[str, Any] | None = None,
        body: Any = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        """Call a client endpoint.

        Args:
            method: HTTP verb
            path: Endpoint path template, e.g. ``/lol-replays/v1/rofls/{gameId}/download``
            path_params: Values for the template placeholders
            body: JSON body
            params: Optional query parameters

        Returns:
            Decoded JSON response, or None for an empty body

        Raises:
            ClientConnectionError: If not connected or the client is unreachable
            ClientRequestError: If the client answers with an error status
        """
        if self._client is None:
            raise ClientConnectionError("Not connected to the League client.")

        url = expand_path(path, path_params)
        log.debug("Making client request", method=method.upper(), path=url)

        try:
            response = await self._client.request(method.upper(), url, json=body, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            log.warning(
                "Client request failed",
                method=method.upper(),
                path=url,
                status_code=e.response.status_code,
            )
            raise ClientRequestError(
                f"{method.upper()} {url} failed with status {e.response.status_code}.",
                method=method,
                path=url,
                status_code=e.response.status_code,
                original_error=e,
            ) from e
        except httpx.RequestError as e:
            log.warning(
                "Client request failed",
                method=method.upper(),
                path=url,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ClientConnectionError(f"Unable to reach the League client for {url}.", original_error=e) from e

        if not response.content:
            return None
        return response.json()

    async def get_replay_directory(self) -> str:
        """Ask the client where it stores replay files."""
        return await self.request("get", "/lol-replays/v1/rofls/path")

    async def request_replay_download(self, game_id: GameId) -> None:
        """Ask the client to start downloading the replay of ``game_id``."""
        await self.request(
            "post",
            "/lol-replays/v1/rofls/{gameId}/download",
            path_params={"gameId": game_id},
            body={"componentType": REPLAY_DOWNLOAD_COMPONENT},
        )

    async def get_replay_metadata(self, game_id: GameId) -> dict[str, Any]:
        """Fetch the replay metadata (including the download ``state``) of ``game_id``."""
        return await self.request(
            "get",
            "/lol-replays/v1/metadata/{gameId}",
            path_params={"gameId": game_id},
        )

    async def _close_session(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def close(self) -> None:
        """Close the API session and clean up resources."""
        await self._close_session()
        log.info("League client service closed")

    async def __aenter__(self) -> "LeagueClientService":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: type[Exception] | None, exc_val: Exception | None, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
