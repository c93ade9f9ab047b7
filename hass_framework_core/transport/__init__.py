"""Transport layer for the hub session.

Components:
- base: Transport and FrameHandler interfaces
- ws: WebSocket connection helper
- ws_client: websockets-backed Transport implementation
"""

from .base import FrameHandler, Transport
from .ws import connect_websocket
from .ws_client import HassWsClient, HassWsMessage, HassWsMessageType

__all__ = [
    "FrameHandler",
    "HassWsClient",
    "HassWsMessage",
    "HassWsMessageType",
    "Transport",
    "connect_websocket",
]
