"""WebSocket helpers for the Home Assistant hub transport."""

from __future__ import annotations

import asyncio

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import (
    InvalidHandshake,
    InvalidURI,
    WebSocketException,
)

from ..errors import (
    HassConnectionError,
    HassHandshakeError,
    HassTimeout,
)


async def connect_websocket(
    url: str,
    *,
    ping_interval: float | None = None,
    timeout: float = 10.0,
) -> ClientConnection:
    """Open the hub API socket.

    Library keepalive is off by default. HassSession sends its own pings
    through HassWsClient.send_ping, counts any inbound frame as proof of life
    and applies its reconnection backoff when the hub goes silent; a second,
    library-driven timeout would close the socket behind its back. Pings sent
    by the hub are still answered by websockets. Messages are not size
    limited because a get_states result grows with the number of entities.

    Args:
        url: ws:// or wss:// URL of the hub API
        ping_interval: Interval for library ping frames (None disables)
        timeout: Connection timeout
    """
    try:
        return await asyncio.wait_for(
            websockets.connect(
                url,
                ping_interval=ping_interval,
                close_timeout=5,
                max_size=None,
            ),
            timeout=timeout,
        )
    except TimeoutError as err:
        raise HassTimeout("WebSocket connection timed out") from err
    except (InvalidHandshake, InvalidURI) as err:
        raise HassHandshakeError("WebSocket handshake failed") from err
    except (OSError, WebSocketException) as err:
        raise HassConnectionError("WebSocket connection failed") from err
