"""Pytest configuration and fixtures for hass_framework_core tests."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from hass_framework_core import HassSession, SessionConfig, StaticCredentials
from hass_framework_core.errors import HassConnectionError
from hass_framework_core.transport.base import FrameHandler, Transport

SERVER_URL = "ws://hass.local:8123/api/websocket"
TOKEN = "T"


class FakeTransport(Transport):
    """In-memory transport recording outbound frames.

    Tests drive the session by injecting inbound frames and lifecycle events.
    """

    def __init__(self, handler: FrameHandler) -> None:
        self.handler = handler
        self.sent: list[str] = []
        self.pings = 0
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.fail_connect: Exception | None = None
        self.auto_pong = False
        self._open = False

    @property
    def is_connected(self) -> bool:
        return self._open

    @property
    def sent_json(self) -> list[dict[str, Any]]:
        return [json.loads(text) for text in self.sent]

    async def connect(self, url: str, *, timeout: float) -> None:
        self.connect_calls += 1
        await asyncio.sleep(0)
        if self.fail_connect is not None:
            raise self.fail_connect
        self._open = True
        self.handler.on_connected()

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        if not self._open:
            return
        self._open = False
        self.handler.on_disconnected("closed locally")

    async def send_text(self, text: str) -> None:
        if not self._open:
            raise HassConnectionError("WebSocket is not connected")
        self.sent.append(text)

    async def send_ping(self) -> None:
        self.pings += 1
        if self.auto_pong:
            self.handler.on_pong(0.001)

    def inject(self, frame: dict[str, Any] | str) -> None:
        """Deliver an inbound text frame."""
        text = frame if isinstance(frame, str) else json.dumps(frame)
        self.handler.on_text(text)

    def drop(self, reason: str = "closed by server") -> None:
        """Simulate the peer closing the connection."""
        if self._open:
            self._open = False
            self.handler.on_disconnected(reason)


SessionFactory = Callable[..., tuple[HassSession, FakeTransport]]


@pytest.fixture
async def make_session() -> AsyncIterator[SessionFactory]:
    """Build sessions over FakeTransport and close them after the test."""
    sessions: list[HassSession] = []

    def _make(**overrides: Any) -> tuple[HassSession, FakeTransport]:
        options: dict[str, Any] = {
            "ping_interval": 3600.0,
            "reconnect_base_delay": 10.0,
            "reconnect_max_delay": 60.0,
        }
        options.update(overrides)
        session = HassSession(
            StaticCredentials(SERVER_URL, TOKEN),
            config=SessionConfig(**options),
            transport_factory=FakeTransport,
        )
        sessions.append(session)
        transport = session._transport
        assert isinstance(transport, FakeTransport)
        return session, transport

    yield _make

    for session in sessions:
        await session.close()


async def authenticate(session: HassSession, transport: FakeTransport) -> None:
    """Connect and complete the auth handshake."""
    assert await session.connect() is True
    transport.inject({"type": "auth_required"})
    transport.inject({"type": "auth_ok"})
    await session.drain()


async def wait_for(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Poll until ``predicate`` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


def state_changed_event(
    entity_id: str = "switch.garage",
    old: str | None = "off",
    new: str | None = "on",
    subscription: int = 1,
) -> dict[str, Any]:
    """Build a state_changed event frame as the hub sends it."""

    def _state(value: str | None) -> dict[str, Any] | None:
        if value is None:
            return None
        return {
            "entity_id": entity_id,
            "state": value,
            "attributes": {"friendly_name": "Garage"},
            "last_changed": "2023-10-10T12:00:00.123456+00:00",
            "last_updated": "2023-10-10T12:00:00.123456+00:00",
            "context": {"id": "01HCTX", "parent_id": None, "user_id": None},
        }

    return {
        "id": subscription,
        "type": "event",
        "event": {
            "event_type": "state_changed",
            "data": {
                "entity_id": entity_id,
                "old_state": _state(old),
                "new_state": _state(new),
            },
            "origin": "LOCAL",
            "time_fired": "2023-10-10T12:00:01.000001+00:00",
            "context": {"id": "01HCTX", "parent_id": None, "user_id": "u1"},
        },
    }


@pytest.fixture
def mock_session() -> MagicMock:
    """Create a mock aiohttp ClientSession."""
    import aiohttp

    return MagicMock(spec=aiohttp.ClientSession)


def create_mock_response(
    status: int = 200,
    json_data: Any = None,
    text_data: str | None = None,
) -> AsyncMock:
    """Create a configured mock response.

    Args:
        status: HTTP status code
        json_data: Data to return from json() call
        text_data: Data to return from text() call

    Returns:
        Configured AsyncMock response
    """
    response = AsyncMock()
    response.status = status
    response.reason = "Error"

    if json_data is not None:
        response.json.return_value = json_data
    response.text.return_value = text_data or ""

    response.__aenter__.return_value = response
    response.__aexit__.return_value = None

    return response
