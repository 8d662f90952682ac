"""
Async client for the chat websocket.

Used by Python consumers of the chat (integration tooling, bots, load
scripts) to talk to ws/chat/ the way the browser client does.

States:
    disconnected -> connecting -> connected -> disconnected

    An unexpected drop triggers bounded reconnection: up to
    ``max_attempts`` attempts with a fixed ``delay`` between them, then
    the connection gives up and stays disconnected. An authentication
    rejection (handshake refused, or close code 4001) is never retried.

    While connected the client pings every ``heartbeat`` seconds so the
    server keeps showing the user as online.

Events are delivered through subscriptions instead of callbacks:

    async with ChatConnection("ws://host/ws/chat/", token) as connection:
        messages = connection.subscribe("message")
        await connection.send_message(chat_id=3, content="Hello")
        async for event in messages:
            print(event["message"]["content"])

``disconnect()`` stops delivery but keeps subscriptions; ``dispose()``
also closes every subscription and makes the connection unusable.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from enum import Enum
from typing import Any, Callable
from urllib.parse import urlencode, urlsplit, urlunsplit

import websockets
from websockets.exceptions import (
    ConnectionClosed,
    InvalidHandshake,
    WebSocketException,
)

from chat.constants import REALTIME_CONFIG

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ConnectionRejected(Exception):
    """The server refused the connection (missing, invalid or expired token)."""


class NotConnectedError(RuntimeError):
    """A frame was sent while the connection is not established."""


class SubscriptionClosed(Exception):
    """get() was called on a closed subscription."""


_CLOSED = object()


class Subscription:
    """
    Channel of events of one type.

    Events queue up until read with ``get()`` or ``async for``. Iteration
    ends when the subscription is closed.

    At most ``maxsize`` events are buffered. When a slow reader lets the
    buffer fill up, the oldest event is dropped to make room and counted
    in ``dropped``.
    """

    def __init__(
        self,
        event_type: str,
        on_close: Callable[[Subscription], None],
        maxsize: int = REALTIME_CONFIG.SUBSCRIPTION_BUFFER_SIZE,
    ):
        self.event_type = event_type
        # One slot above maxsize is kept free for the close sentinel
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize + 1)
        self._maxsize = maxsize
        self._on_close = on_close
        self.closed = False
        self.dropped = 0

    def _put(self, event: dict[str, Any]) -> None:
        if self.closed:
            return
        if self._queue.qsize() >= self._maxsize:
            self._queue.get_nowait()
            self.dropped += 1
            if self.dropped == 1 or self.dropped % 100 == 0:
                logger.warning(
                    f"Subscription '{self.event_type}' buffer full, "
                    f"dropped {self.dropped} event(s)"
                )
        self._queue.put_nowait(event)

    async def get(self) -> dict[str, Any]:
        """Wait for the next event."""
        if self.closed and self._queue.empty():
            raise SubscriptionClosed(self.event_type)
        item = await self._queue.get()
        if item is _CLOSED:
            raise SubscriptionClosed(self.event_type)
        return item

    def close(self) -> None:
        """Stop receiving events and wake up pending readers."""
        if self.closed:
            return
        self.closed = True
        self._queue.put_nowait(_CLOSED)
        self._on_close(self)

    def __aiter__(self):
        return self

    async def __anext__(self) -> dict[str, Any]:
        try:
            return await self.get()
        except SubscriptionClosed:
            raise StopAsyncIteration from None


class ChatConnection:
    """
    One websocket session to the chat server.

    Args:
        url: Websocket endpoint, e.g. "ws://localhost:8000/ws/chat/"
        token: JWT access token, sent as ?token= on every (re)connect
        max_attempts: Reconnection attempts after an unexpected drop
        delay: Seconds between reconnection attempts
        heartbeat: Seconds between pings while connected (None disables).
            Pings keep the user shown as online to counterparties.
        connect: Factory returning an awaitable connection for a URL
            (websockets.connect by default)
    """

    def __init__(
        self,
        url: str,
        token: str,
        *,
        max_attempts: int = REALTIME_CONFIG.RECONNECT_ATTEMPTS,
        delay: float = REALTIME_CONFIG.RECONNECT_DELAY_SECONDS,
        heartbeat: float | None = REALTIME_CONFIG.HEARTBEAT_INTERVAL_SECONDS,
        connect: Callable | None = None,
    ):
        self.url = url
        self.token = token
        self.max_attempts = max_attempts
        self.delay = delay
        self.heartbeat = heartbeat
        self._connect_factory = connect or websockets.connect

        self.state = ConnectionState.DISCONNECTED
        self.last_close_code: int | None = None
        self._ws = None
        self._reader: asyncio.Task | None = None
        self._heartbeat_task: asyncio.Task | None = None
        self._closing = False
        self._disposed = False
        self._subscriptions: dict[str, list[Subscription]] = {}

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def connect(self) -> None:
        """
        Open the connection.

        Raises:
            ConnectionRejected: Server refused the token
            OSError / WebSocketException: Server unreachable
        """
        if self._disposed:
            raise RuntimeError("Connection has been disposed")
        if self.state != ConnectionState.DISCONNECTED:
            return

        self._closing = False
        await self._open()
        self._reader = asyncio.create_task(self._read_loop())
        if self.heartbeat:
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())

    async def disconnect(self) -> None:
        """Close the connection without reconnecting. Subscriptions stay open."""
        self._closing = True
        tasks = [self._reader, self._heartbeat_task]
        self._reader = self._heartbeat_task = None
        ws, self._ws = self._ws, None

        if ws is not None:
            await ws.close()
        for task in tasks:
            if task is not None and task is not asyncio.current_task():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

        self._set_state(ConnectionState.DISCONNECTED)

    async def dispose(self) -> None:
        """Disconnect and close every subscription."""
        await self.disconnect()
        for subscriptions in list(self._subscriptions.values()):
            for subscription in list(subscriptions):
                subscription.close()
        self._subscriptions.clear()
        self._disposed = True

    async def __aenter__(self) -> ChatConnection:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.dispose()

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def subscribe(
        self,
        event_type: str,
        maxsize: int = REALTIME_CONFIG.SUBSCRIPTION_BUFFER_SIZE,
    ) -> Subscription:
        """Receive server events whose "type" equals ``event_type``."""
        if self._disposed:
            raise RuntimeError("Connection has been disposed")
        subscription = Subscription(event_type, self._unsubscribe, maxsize=maxsize)
        self._subscriptions.setdefault(event_type, []).append(subscription)
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        subscriptions = self._subscriptions.get(subscription.event_type, [])
        if subscription in subscriptions:
            subscriptions.remove(subscription)

    def _dispatch(self, raw) -> None:
        try:
            event = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring non-JSON chat frame: {raw!r}")
            return
        if not isinstance(event, dict):
            return

        for subscription in list(self._subscriptions.get(event.get("type"), ())):
            subscription._put(event)

    # =========================================================================
    # Outgoing frames
    # =========================================================================

    async def send(self, frame: dict[str, Any]) -> None:
        if self.state != ConnectionState.CONNECTED or self._ws is None:
            raise NotConnectedError("Chat connection is not established")
        await self._ws.send(json.dumps(frame))

    async def send_message(self, chat_id: int, content: str) -> None:
        await self.send({"type": "message", "chat_id": chat_id, "content": content})

    async def send_typing(self, chat_id: int, is_typing: bool = True) -> None:
        await self.send({"type": "typing", "chat_id": chat_id, "is_typing": is_typing})

    async def mark_read(self, message_id: int) -> None:
        await self.send({"type": "read", "message_id": message_id})

    async def mark_delivered(self, message_id: int) -> None:
        await self.send({"type": "delivered", "message_id": message_id})

    async def ping(self) -> None:
        await self.send({"type": "ping"})

    # =========================================================================
    # Internals
    # =========================================================================

    def _set_state(self, state: ConnectionState) -> None:
        if state != self.state:
            logger.debug(f"Chat connection {self.state.value} -> {state.value}")
            self.state = state

    def _build_url(self) -> str:
        parts = urlsplit(self.url)
        query = "&".join(filter(None, [parts.query, urlencode({"token": self.token})]))
        return urlunsplit(parts._replace(query=query))

    async def _open(self) -> None:
        self._set_state(ConnectionState.CONNECTING)
        try:
            self._ws = await self._connect_factory(self._build_url())
        except InvalidHandshake as e:
            self._set_state(ConnectionState.DISCONNECTED)
            raise ConnectionRejected(str(e)) from e
        except BaseException:
            self._set_state(ConnectionState.DISCONNECTED)
            raise
        self.last_close_code = None
        self._set_state(ConnectionState.CONNECTED)

    async def _read_loop(self) -> None:
        while True:
            ws = self._ws
            try:
                async for raw in ws:
                    self._dispatch(raw)
            except ConnectionClosed:
                pass

            if self._closing:
                return

            self.last_close_code = getattr(ws, "close_code", None)
            self._ws = None
            self._set_state(ConnectionState.DISCONNECTED)

            if self.last_close_code == REALTIME_CONFIG.CLOSE_CODE_UNAUTHORIZED:
                logger.warning("Chat connection closed: authentication rejected")
                return

            logger.info(
                f"Chat connection dropped (code={self.last_close_code}), reconnecting"
            )
            if not await self._reconnect():
                return

    async def _heartbeat_loop(self) -> None:
        reader = self._reader
        while not self._closing and reader is not None and not reader.done():
            await asyncio.sleep(self.heartbeat)
            if self.state != ConnectionState.CONNECTED:
                continue
            try:
                await self.ping()
            except (NotConnectedError, ConnectionClosed):
                continue

    async def _reconnect(self) -> bool:
        for attempt in range(1, self.max_attempts + 1):
            await asyncio.sleep(self.delay)
            if self._closing:
                return False
            try:
                await self._open()
            except ConnectionRejected:
                logger.warning("Chat reconnection rejected by server")
                return False
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                logger.info(
                    f"Chat reconnection attempt {attempt}/{self.max_attempts} "
                    f"failed: {e}"
                )
                continue
            logger.info(f"Chat connection restored after {attempt} attempt(s)")
            return True

        logger.warning(
            f"Giving up on chat connection after {self.max_attempts} attempts"
        )
        self._set_state(ConnectionState.DISCONNECTED)
        return False
