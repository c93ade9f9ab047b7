"""Transport interfaces between the session and the WebSocket library."""

from __future__ import annotations

from abc import ABC, abstractmethod


class FrameHandler(ABC):
    """Receiver of transport lifecycle and frame callbacks.

    A transport reports exactly one ``on_disconnected`` for every
    ``on_connected``, whether the connection was lost or closed locally.
    Callbacks run on the event loop and must not block.
    """

    @abstractmethod
    def on_connected(self) -> None:
        """The WebSocket is open."""

    @abstractmethod
    def on_disconnected(self, reason: str) -> None:
        """The WebSocket is closed."""

    @abstractmethod
    def on_text(self, text: str) -> None:
        """A text frame arrived."""

    @abstractmethod
    def on_binary(self, data: bytes) -> None:
        """A binary frame arrived."""

    @abstractmethod
    def on_pong(self, latency: float) -> None:
        """A pong answered a ping sent with :meth:`Transport.send_ping`."""

    @abstractmethod
    def on_error(self, err: BaseException) -> None:
        """The connection failed; ``on_disconnected`` follows."""


class Transport(ABC):
    """A single WebSocket connection owned by one session."""

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """True while a connection is open."""

    @abstractmethod
    async def connect(self, url: str, *, timeout: float) -> None:
        """Open the connection and report ``on_connected``.

        Raises:
            HassClientError: If the connection could not be opened
        """

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the connection; a no-op when already closed."""

    @abstractmethod
    async def send_text(self, text: str) -> None:
        """Write one text frame.

        Raises:
            HassConnectionError: If the connection is not open
        """

    @abstractmethod
    async def send_ping(self) -> None:
        """Write a ping frame; its pong is reported through ``on_pong``."""
