"""Client error types for Home Assistant hub interactions."""

from __future__ import annotations

from typing import Any


class HassClientError(Exception):
    """Base error for Home Assistant client failures."""


class HassConfigurationError(HassClientError):
    """Server URL or access token missing or invalid."""


class HassTimeout(HassClientError):
    """Timeout while communicating with the hub."""


class HassConnectionError(HassClientError):
    """Network connection to the hub failed."""


class HassHandshakeError(HassConnectionError):
    """WebSocket upgrade handshake failed."""


class HassConnectionLost(HassConnectionError):
    """The WebSocket was closed while a request was outstanding."""


class HassAuthenticationFailed(HassClientError):
    """The hub rejected the access token."""


class HassProtocolError(HassClientError):
    """Inbound frame is malformed or cannot be classified."""


class HassDecodingError(HassProtocolError):
    """Inbound payload could not be decoded."""


class HassEncodingError(HassClientError):
    """Outbound payload could not be serialized."""


class HassQueueFullError(HassClientError):
    """Outbound queue is at capacity."""


class HassUnreachableError(HassClientError):
    """Reconnection attempts exhausted."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"Hub unreachable after {attempts} reconnection attempts")
        self.attempts = attempts


class HassResultError(HassClientError):
    """The hub answered a command with ``success: false``."""

    def __init__(self, code: str, message: str, *, details: Any = None) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
        self.details = details


class HassResponseError(HassClientError):
    """HTTP response error from the REST API."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status
