"""WebSocket transport adapter for the Home Assistant hub."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed

from ..errors import HassConnectionError, HassConnectionLost
from .base import FrameHandler, Transport
from .ws import connect_websocket

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

_LOGGER = logging.getLogger(__name__)

CLOSE_TIMEOUT = 2.0


class HassWsMessageType(Enum):
    """Normalized WebSocket message types."""

    TEXT = "text"
    BINARY = "binary"
    CLOSED = "closed"
    ERROR = "error"


@dataclass(frozen=True)
class HassWsMessage:
    """Normalized WebSocket message payload."""

    type: HassWsMessageType
    data: str | bytes | BaseException | None = None


class HassWsClient(Transport):
    """Transport over the websockets library.

    A reader task iterates the connection and forwards every frame to the
    handler. The handler sees ``on_disconnected`` once per connection, from
    the reader when the peer goes away or from :meth:`disconnect`.
    """

    def __init__(self, handler: FrameHandler) -> None:
        self._handler = handler
        self._ws: ClientConnection | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._pong_tasks: set[asyncio.Task[None]] = set()

    @property
    def is_connected(self) -> bool:
        return self._ws is not None

    async def connect(self, url: str, *, timeout: float = 10.0) -> None:
        """Connect to the hub websocket."""
        if self._ws is not None:
            raise HassConnectionError("WebSocket is already connected")
        ws = await connect_websocket(url, timeout=timeout)
        self._ws = ws
        self._handler.on_connected()
        self._reader_task = asyncio.create_task(self._read_loop(ws))

    async def disconnect(self) -> None:
        """Close the websocket connection."""
        ws = self._ws
        if ws is None:
            return
        self._report_closed(ws, "closed locally")

        reader = self._reader_task
        self._reader_task = None
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
        for task in list(self._pong_tasks):
            task.cancel()

        await self._close(ws)

    async def send_text(self, text: str) -> None:
        """Send one text frame."""
        ws = self._ws
        if ws is None:
            raise HassConnectionError("WebSocket is not connected")
        try:
            await ws.send(text)
        except ConnectionClosed as err:
            raise HassConnectionLost("WebSocket closed during send") from err

    async def send_ping(self) -> None:
        """Send a ping frame and report its pong to the handler."""
        ws = self._ws
        if ws is None:
            raise HassConnectionError("WebSocket is not connected")
        try:
            pong_waiter = await ws.ping()
        except ConnectionClosed as err:
            raise HassConnectionLost("WebSocket closed during ping") from err
        task = asyncio.create_task(self._await_pong(ws, pong_waiter))
        self._pong_tasks.add(task)
        task.add_done_callback(self._pong_tasks.discard)

    async def _await_pong(self, ws: ClientConnection, pong_waiter: Any) -> None:
        try:
            latency = await pong_waiter
        except ConnectionClosed:
            return
        if self._ws is ws:
            self._handler.on_pong(latency)

    async def _read_loop(self, ws: ClientConnection) -> None:
        reason = "closed by server"
        failed = False
        async for msg in self._iter_messages(ws):
            if msg.type is HassWsMessageType.CLOSED:
                break
            if msg.type is HassWsMessageType.ERROR:
                reason = "transport error"
                failed = True
                self._dispatch(self._handler.on_error, msg.data)
                break
            if msg.type is HassWsMessageType.TEXT:
                self._dispatch(self._handler.on_text, msg.data)
            elif msg.type is HassWsMessageType.BINARY:
                self._dispatch(self._handler.on_binary, msg.data)

        self._report_closed(ws, reason)
        if failed:
            # The library may still hold the socket open after a read error
            await self._close(ws)

    async def _close(self, ws: ClientConnection) -> None:
        try:
            await asyncio.wait_for(ws.close(), timeout=CLOSE_TIMEOUT)
        except TimeoutError:
            _LOGGER.warning("WebSocket close timed out")

    def _dispatch(self, callback: Any, data: Any) -> None:
        try:
            callback(data)
        except Exception as err:
            _LOGGER.exception("Frame handler error: %s", err)

    def _report_closed(self, ws: ClientConnection, reason: str) -> None:
        # Only the connection that is still current reports, and only once
        if self._ws is not ws:
            return
        self._ws = None
        self._handler.on_disconnected(reason)

    async def _iter_messages(
        self, ws: ClientConnection
    ) -> AsyncIterator[HassWsMessage]:
        try:
            async for msg in ws:
                yield self._normalize_message(msg)
        except ConnectionClosed:
            yield HassWsMessage(type=HassWsMessageType.CLOSED)
        except Exception as err:
            yield HassWsMessage(type=HassWsMessageType.ERROR, data=err)
        else:
            # Normal iteration completion means the peer closed gracefully.
            yield HassWsMessage(type=HassWsMessageType.CLOSED)

    @staticmethod
    def _normalize_message(msg: str | bytes) -> HassWsMessage:
        """Normalize library frames into HassWsMessage."""
        if isinstance(msg, bytes):
            return HassWsMessage(HassWsMessageType.BINARY, msg)
        return HassWsMessage(HassWsMessageType.TEXT, msg)
