"""Websocket event feed of the League client.

The client speaks a small subset of WAMP 1.0 over its websocket: a
``[5, topic]`` message subscribes to a topic and events arrive as
``[8, topic, {"uri": ..., "eventType": ..., "data": ...}]``.
"""

import asyncio
import inspect
import json
from collections.abc import Awaitable, Callable
from typing import Any

import aiohttp
import structlog

from ..models import ClientEvent, EventDescriptor
from .errors import ClientConnectionError
from .lcu_client import LeagueClientService

log = structlog.stdlib.get_logger()

WAMP_SUBSCRIBE = 5
WAMP_EVENT = 8

EventHandler = Callable[[ClientEvent], Awaitable[None] | None]


class ClientEventFeed:
    """Subscribes to client events and dispatches them to registered handlers."""

    def __init__(
        self,
        client: LeagueClientService,
        reconnect_delay: float = 2.0,
        heartbeat: float = 30.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize the event feed.

        Args:
            client: Client service providing credentials and lifecycle events
            reconnect_delay: Delay before retrying a failed connection in seconds
            heartbeat: Websocket ping interval in seconds
            sleep: Awaitable sleep used between reconnection attempts
        """
        self._client = client
        self.reconnect_delay = reconnect_delay
        self.heartbeat = heartbeat
        self._sleep = sleep

        self._handlers: dict[EventDescriptor, list[EventHandler]] = {}
        self._tasks: set[asyncio.Future[Any]] = set()
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._running = False

    def register_handler(self, descriptor: EventDescriptor, handler: EventHandler) -> None:
        """Register ``handler`` for events matching ``descriptor``.

        Handlers registered while connected take effect after the next reconnect.
        """
        self._handlers.setdefault(descriptor, []).append(handler)
        log.debug("Event handler registered", event_name=descriptor.name, path=descriptor.path)

    @property
    def topics(self) -> list[str]:
        """Websocket topics to subscribe to, in registration order."""
        return list(dict.fromkeys(descriptor.name for descriptor in self._handlers))

    def dispatch_message(self, raw: str) -> int:
        """Parse one websocket message and start the matching handlers.

        Returns:
            Number of handlers started
        """
        if not raw:
            return 0

        try:
            message = json.loads(raw)
        except ValueError as e:
            log.warning("Ignoring malformed event message", error=str(e))
            return 0

        if not isinstance(message, list) or len(message) < 3 or message[0] != WAMP_EVENT:
            return 0

        topic, payload = message[1], message[2]
        if not isinstance(payload, dict):
            return 0

        event = ClientEvent(
            uri=payload.get("uri", ""),
            event_type=payload.get("eventType", ""),
            data=payload.get("data"),
        )

        started = 0
        for descriptor, handlers in self._handlers.items():
            if descriptor.name != topic or not descriptor.matches(event):
                continue
            for handler in handlers:
                self._start_handler(handler, event)
                started += 1
        return started

    def _start_handler(self, handler: EventHandler, event: ClientEvent) -> None:
        try:
            result = handler(event)
        except Exception as e:
            log.error("Event handler failed", error=str(e), error_type=type(e).__name__, uri=event.uri, exc_info=True)
            return
        if not inspect.isawaitable(result):
            return

        # Handlers run as tasks so a slow workflow never blocks the feed
        task = asyncio.ensure_future(result)
        self._tasks.add(task)
        task.add_done_callback(self._on_handler_done)

    def _on_handler_done(self, task: asyncio.Future[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            log.error("Event handler failed", error=str(error), error_type=type(error).__name__, exc_info=error)

    async def wait_idle(self) -> None:
        """Wait until every running handler has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def listen(self) -> None:
        """Open the websocket, subscribe and dispatch events until it closes.

        Always signals ``disconnected`` on the client when the connection ends.

        Raises:
            ClientConnectionError: If the client is not connected or the websocket fails
        """
        credentials = self._client.credentials
        if credentials is None:
            raise ClientConnectionError("Connect to the League client before listening for events.")

        try:
            async with aiohttp.ClientSession(auth=aiohttp.BasicAuth("riot", credentials.token)) as session:
                async with session.ws_connect(
                    credentials.websocket_url,
                    ssl=False,
                    heartbeat=self.heartbeat,
                ) as ws:
                    self._ws = ws
                    for topic in self.topics:
                        await ws.send_json([WAMP_SUBSCRIBE, topic])
                    log.info("Listening for client events", topics=self.topics)

                    async for msg in ws:
                        if msg.type == aiohttp.WSMsgType.TEXT:
                            self.dispatch_message(msg.data)
                        elif msg.type == aiohttp.WSMsgType.ERROR:
                            log.warning("Event connection error", error=str(ws.exception()))
                            break
        except aiohttp.ClientError as e:
            log.warning("Event connection failed", error=str(e), error_type=type(e).__name__)
            raise ClientConnectionError("Lost the client event connection.", original_error=e) from e
        finally:
            self._ws = None
            await self._client.mark_disconnected()

    async def run_forever(self) -> None:
        """Connect and listen, reconnecting whenever the connection drops."""
        self._running = True
        while self._running:
            try:
                if not self._client.is_connected:
                    await self._client.connect()
                await self.listen()
            except ClientConnectionError as e:
                log.warning("Could not connect to client events", error=e.message)
                if self._running:
                    await self._sleep(self.reconnect_delay)

    async def stop(self) -> None:
        """Stop reconnecting and close the current connection."""
        self._running = False
        if self._ws is not None:
            await self._ws.close()
