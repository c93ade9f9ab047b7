"""Persistent WebSocket session with the Home Assistant hub.

This module provides the canonical API for applications talking to the hub
over its WebSocket API. It handles:
- Connection management and the auth_required/auth/auth_ok handshake
- Outbound queueing while the session is not ready
- Correlation of command ids to result frames
- Event subscription and fan-out to listeners
- Heartbeat and reconnection with exponential backoff

All state is mutated from synchronous methods running on the session's event
loop, so the loop itself serializes every change. Observers subscribe to
change notifications rather than polling.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Final
from urllib.parse import urlsplit

from .config import SessionConfig
from .correlation import CorrelationTable
from .credentials import CredentialProvider
from .errors import (
    HassAuthenticationFailed,
    HassClientError,
    HassConnectionLost,
    HassDecodingError,
    HassEncodingError,
    HassProtocolError,
    HassQueueFullError,
    HassResultError,
    HassUnreachableError,
)
from .events import Listener, ListenerRegistry
from .models import HassEvent, HassState
from .protocol import (
    MessageType,
    build_auth,
    build_call_service,
    build_get_config,
    build_get_states,
    build_ping,
    build_subscribe_events,
    build_unsubscribe_events,
    classify_message,
    decode_frame,
    encode_frame,
    parse_message_id,
    with_id,
)
from .transport.base import FrameHandler, Transport
from .transport.ws_client import HassWsClient

_LOGGER = logging.getLogger(__name__)

# Sentinel value meaning "use SessionConfig.request_timeout"
_DEFAULT_TIMEOUT: Final = object()


class ConnectionState(Enum):
    """Transport connection state."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class AuthState(Enum):
    """Authentication state of the current connection."""

    NOT_AUTHENTICATED = "not_authenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


_LEGAL_TRANSITIONS: dict[ConnectionState, frozenset[ConnectionState]] = {
    ConnectionState.DISCONNECTED: frozenset({ConnectionState.CONNECTING}),
    ConnectionState.CONNECTING: frozenset(
        {ConnectionState.CONNECTED, ConnectionState.DISCONNECTED}
    ),
    ConnectionState.CONNECTED: frozenset({ConnectionState.DISCONNECTED}),
}


@dataclass(slots=True)
class _OutboundFrame:
    """Serialized frame on its way to the transport."""

    text: str
    msg_id: int | None = None
    control: bool = False


TransportFactory = Callable[[FrameHandler], Transport]


class HassSession(FrameHandler):
    """Session manager for one hub WebSocket connection.

    Usage:
        session = HassSession(StaticCredentials(url, token))
        session.add_event_listener(my_event_handler)
        session.on_connection_state_changed(my_state_handler)
        await session.connect()
        states = await session.get_states()
        await session.call_service("switch", "toggle", {"entity_id": "switch.garage"})
        await session.close()
    """

    def __init__(
        self,
        credentials: CredentialProvider,
        *,
        config: SessionConfig | None = None,
        name: str | None = None,
        transport_factory: TransportFactory = HassWsClient,
    ) -> None:
        """Initialize session.

        Args:
            credentials: Source of the server URL and access token
            config: Session tunables
            name: Label used in log messages (default: server host)
            transport_factory: Builds the transport, given this session as
                its frame handler

        Raises:
            HassConfigurationError: If the URL or token is missing
        """
        self._url = credentials.server_url()
        self._token = credentials.access_token()
        self.config = config or SessionConfig()
        self.name = name or urlsplit(self._url).hostname or self._url

        self._transport = transport_factory(self)

        # Connection state
        self._connection_state = ConnectionState.DISCONNECTED
        self._auth_state = AuthState.NOT_AUTHENTICATED
        self._auth_rejected = False
        self._subscription_id: int | None = None
        self._connect_task: asyncio.Task[bool] | None = None
        self._should_reconnect = False
        self._closed = False

        # Reconnection
        self._reconnect_task: asyncio.Task[None] | None = None
        self._reconnect_attempts = 0

        # Keepalive
        self._heartbeat_task: asyncio.Task[None] | None = None
        self._last_received = 0.0
        self._last_pong_latency: float | None = None

        # Inactivity
        self._idle_handle: asyncio.TimerHandle | None = None
        self._idle_disconnected = False

        # Outbound path
        self._requests = CorrelationTable(on_discard=self._discard_queued)
        self._outbound: deque[_OutboundFrame] = deque()
        self._wire: asyncio.Queue[_OutboundFrame] | None = None
        self._writer_task: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task[Any]] = set()

        # Listeners
        self._event_listeners: ListenerRegistry[HassEvent] = ListenerRegistry("Event")
        self._connection_listeners: ListenerRegistry[ConnectionState] = (
            ListenerRegistry("Connection state")
        )
        self._auth_listeners: ListenerRegistry[AuthState] = ListenerRegistry(
            "Auth state"
        )
        self._auth_failed_listeners: ListenerRegistry[HassAuthenticationFailed] = (
            ListenerRegistry("Auth failure")
        )
        self._unreachable_listeners: ListenerRegistry[HassUnreachableError] = (
            ListenerRegistry("Unreachable")
        )

    # -------------------------------------------------------------------------
    # Public API: Connection Management
    # -------------------------------------------------------------------------

    @property
    def url(self) -> str:
        return self._url

    @property
    def connection_state(self) -> ConnectionState:
        return self._connection_state

    @property
    def auth_state(self) -> AuthState:
        return self._auth_state

    @property
    def is_ready(self) -> bool:
        """Check if session is connected and authenticated."""
        return (
            self._connection_state is ConnectionState.CONNECTED
            and self._auth_state is AuthState.AUTHENTICATED
        )

    @property
    def is_attempting_reconnect(self) -> bool:
        return self._reconnect_task is not None

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    @property
    def subscription_id(self) -> int | None:
        """Id of the automatic event subscription on this connection."""
        return self._subscription_id

    @property
    def pending_requests(self) -> int:
        return len(self._requests)

    @property
    def queued_frames(self) -> int:
        """Frames waiting for the session to become ready."""
        return len(self._outbound)

    @property
    def last_message_id(self) -> int:
        return self._requests.last_id

    @property
    def last_pong_latency(self) -> float | None:
        return self._last_pong_latency

    async def connect(self) -> bool:
        """Connect to the hub and start the handshake.

        Idempotent: while a connection attempt is in flight this waits for
        it, and when already connected it returns at once. Authentication
        completes in the background; observe it with
        :meth:`on_auth_state_changed`.

        Returns:
            True if the WebSocket is open, False otherwise
        """
        if self._closed:
            _LOGGER.debug("[%s] Connection aborted: session closed", self.name)
            return False

        self._should_reconnect = True
        self._idle_disconnected = False
        self._cancel_reconnect()
        self._reconnect_attempts = 0
        self._touch()
        return await self._connect()

    async def disconnect(self) -> None:
        """Close the connection without scheduling a reconnection."""
        self._should_reconnect = False
        self._cancel_reconnect()
        if self._connect_task is not None:
            await asyncio.shield(self._connect_task)
        await self._transport.disconnect()
        if not self._closed:
            self._abandon_requests(HassConnectionLost("Session disconnected"))

    async def close(self) -> None:
        """Shut the session down for good.

        Every pending request fails with HassConnectionLost, including those
        still waiting in the outbound queue. Tasks started for coroutine
        listeners are cancelled.
        """
        _LOGGER.info("[%s] Closing session", self.name)
        self._closed = True
        if self._idle_handle is not None:
            self._idle_handle.cancel()
            self._idle_handle = None

        await self.disconnect()

        self._abandon_requests(HassConnectionLost("Session closed"))

        for task in list(self._background):
            task.cancel()
        for registry in (
            self._event_listeners,
            self._connection_listeners,
            self._auth_listeners,
            self._auth_failed_listeners,
            self._unreachable_listeners,
        ):
            registry.cancel_pending()

    async def drain(self) -> None:
        """Wait until every frame handed to the writer has been written."""
        wire = self._wire
        if wire is not None:
            await wire.join()

    def touch(self) -> None:
        """Record caller activity for the inactivity timeout."""
        self._touch()

    # -------------------------------------------------------------------------
    # Public API: Listeners
    # -------------------------------------------------------------------------

    def add_event_listener(self, listener: Listener[HassEvent]) -> Callable[[], None]:
        """Register a listener for every decoded push event.

        Listeners run in registration order on the receive path; long work
        should be handed off (a coroutine result is scheduled as a task).

        Returns:
            Callable removing the listener
        """
        return self._event_listeners.add_listener(listener)

    def remove_event_listener(self, listener: Listener[HassEvent]) -> bool:
        return self._event_listeners.remove_listener(listener)

    def on_connection_state_changed(
        self, listener: Listener[ConnectionState]
    ) -> Callable[[], None]:
        """Register callback for connection state changes."""
        return self._connection_listeners.add_listener(listener)

    def on_auth_state_changed(self, listener: Listener[AuthState]) -> Callable[[], None]:
        """Register callback for authentication state changes."""
        return self._auth_listeners.add_listener(listener)

    def on_auth_failed(
        self, listener: Listener[HassAuthenticationFailed]
    ) -> Callable[[], None]:
        """Register callback for token rejection (trigger a reauth flow)."""
        return self._auth_failed_listeners.add_listener(listener)

    def on_unreachable(self, listener: Listener[HassUnreachableError]) -> Callable[[], None]:
        """Register callback for exhausted reconnection attempts."""
        return self._unreachable_listeners.add_listener(listener)

    # -------------------------------------------------------------------------
    # Public API: Sending
    # -------------------------------------------------------------------------

    def send(self, payload: dict[str, Any]) -> int:
        """Send a command without waiting for its result.

        The frame is tagged with a fresh id as the protocol requires, but no
        handler is registered; its result frame is discarded.

        Returns:
            The id assigned to the frame

        Raises:
            HassEncodingError: If the payload cannot be serialized
            HassQueueFullError: If the session is not ready and the queue is full
        """
        msg_id = self._requests.next_id()
        text = encode_frame(with_id(payload, msg_id))
        self._touch()
        self._submit(_OutboundFrame(text))
        return msg_id

    def send_correlated(
        self,
        payload: dict[str, Any],
        *,
        timeout: float | None | object = _DEFAULT_TIMEOUT,
    ) -> asyncio.Future[Any]:
        """Send a command and return a future for its result.

        The future resolves exactly once: with the ``result`` payload, or
        with HassResultError, HassConnectionLost, HassTimeout,
        HassEncodingError or HassQueueFullError. Cancelling the future
        withdraws the request.

        Args:
            payload: Command without ``id``
            timeout: Seconds to wait for the result (default from config,
                None waits forever)
        """
        _, future = self._send_correlated(payload, timeout=timeout)
        return future

    async def request(
        self,
        payload: dict[str, Any],
        *,
        timeout: float | None | object = _DEFAULT_TIMEOUT,
    ) -> Any:
        """Send a command and wait for its result payload."""
        return await self.send_correlated(payload, timeout=timeout)

    async def subscribe_events(
        self,
        event_type: str | None = None,
        *,
        timeout: float | None | object = _DEFAULT_TIMEOUT,
    ) -> int:
        """Subscribe to hub events.

        Returns:
            Subscription id carried by the resulting event frames
        """
        msg_id, future = self._send_correlated(
            build_subscribe_events(event_type), timeout=timeout
        )
        await future
        return msg_id

    async def unsubscribe_events(
        self,
        subscription: int,
        *,
        timeout: float | None | object = _DEFAULT_TIMEOUT,
    ) -> None:
        await self.request(build_unsubscribe_events(subscription), timeout=timeout)
        if subscription == self._subscription_id:
            self._subscription_id = None

    async def call_service(
        self,
        domain: str,
        service: str,
        service_data: dict[str, Any] | None = None,
        *,
        target: dict[str, Any] | None = None,
        timeout: float | None | object = _DEFAULT_TIMEOUT,
    ) -> Any:
        """Call a hub service and wait for its result."""
        payload = build_call_service(
            domain=domain,
            service=service,
            service_data=service_data,
            target=target,
        )
        return await self.request(payload, timeout=timeout)

    async def get_states(
        self, *, timeout: float | None | object = _DEFAULT_TIMEOUT
    ) -> list[HassState]:
        """Fetch the state of every entity."""
        result = await self.request(build_get_states(), timeout=timeout)
        if not isinstance(result, list):
            raise HassDecodingError("get_states result must be a list")
        return [HassState.from_dict(item) for item in result]

    async def get_config(
        self, *, timeout: float | None | object = _DEFAULT_TIMEOUT
    ) -> dict[str, Any]:
        """Fetch the hub configuration."""
        result = await self.request(build_get_config(), timeout=timeout)
        if not isinstance(result, dict):
            raise HassDecodingError("get_config result must be an object")
        return result

    async def ping(self, *, timeout: float | None | object = _DEFAULT_TIMEOUT) -> None:
        """Round-trip an application-level ping command."""
        await self.request(build_ping(), timeout=timeout)

    # -------------------------------------------------------------------------
    # FrameHandler: transport callbacks
    # -------------------------------------------------------------------------

    def on_connected(self) -> None:
        if self._connection_state is ConnectionState.DISCONNECTED:
            self._set_connection_state(ConnectionState.CONNECTING)

        self._auth_rejected = False
        self._subscription_id = None
        self._last_received = asyncio.get_running_loop().time()

        wire: asyncio.Queue[_OutboundFrame] = asyncio.Queue()
        self._wire = wire
        self._writer_task = asyncio.create_task(self._write_loop(wire))
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())

        _LOGGER.info("[%s] WebSocket connected, awaiting auth_required", self.name)
        self._set_connection_state(ConnectionState.CONNECTED)

    def on_disconnected(self, reason: str) -> None:
        self._handle_disconnect(reason)

    def on_text(self, text: str) -> None:
        self._last_received = asyncio.get_running_loop().time()
        try:
            data = decode_frame(text)
            self._dispatch_message(data)
        except HassProtocolError as err:
            _LOGGER.warning("[%s] Dropping invalid frame: %s", self.name, err)

    def on_binary(self, data: bytes) -> None:
        self._last_received = asyncio.get_running_loop().time()
        _LOGGER.debug("[%s] Ignoring binary frame (%d bytes)", self.name, len(data))

    def on_pong(self, latency: float) -> None:
        self._last_received = asyncio.get_running_loop().time()
        self._last_pong_latency = latency
        _LOGGER.debug("[%s] Pong (%.3fs)", self.name, latency)

    def on_error(self, err: BaseException) -> None:
        _LOGGER.warning("[%s] WebSocket error: %s", self.name, err)

    # -------------------------------------------------------------------------
    # Internal: Connection State Machine
    # -------------------------------------------------------------------------

    def _set_connection_state(self, state: ConnectionState) -> None:
        """Update connection state and notify listeners."""
        current = self._connection_state
        if current is state:
            return
        if state not in _LEGAL_TRANSITIONS[current]:
            raise RuntimeError(f"Illegal connection transition {current} → {state}")
        _LOGGER.debug("[%s] State: %s → %s", self.name, current.value, state.value)
        self._connection_state = state
        self._connection_listeners.dispatch(state)

    def _set_auth_state(self, state: AuthState) -> None:
        if self._auth_state is state:
            return
        _LOGGER.debug(
            "[%s] Auth: %s → %s", self.name, self._auth_state.value, state.value
        )
        self._auth_state = state
        self._auth_listeners.dispatch(state)

    async def _connect(self) -> bool:
        if self._connection_state is ConnectionState.CONNECTED:
            return True
        if self._connect_task is None:
            self._set_connection_state(ConnectionState.CONNECTING)
            self._connect_task = asyncio.create_task(self._open_transport())
        return await asyncio.shield(self._connect_task)

    async def _open_transport(self) -> bool:
        try:
            _LOGGER.info(
                "[%s] Connecting to %s (attempt #%d)",
                self.name,
                self._url,
                self._reconnect_attempts + 1,
            )
            await self._transport.connect(self._url, timeout=self.config.connect_timeout)
            return True
        except HassClientError as err:
            _LOGGER.warning("[%s] Connection failed: %s", self.name, err)
            if self._connection_state is ConnectionState.CONNECTING:
                self._set_connection_state(ConnectionState.DISCONNECTED)
            self._schedule_reconnect()
            return False
        finally:
            self._connect_task = None

    def _handle_disconnect(self, reason: str) -> None:
        """Tear down per-connection state after the transport closed."""
        if self._connection_state is ConnectionState.DISCONNECTED:
            # Overlapping disconnect signals collapse into one reconnection
            self._schedule_reconnect()
            return

        _LOGGER.info("[%s] Disconnected (%s)", self.name, reason)
        self._stop_task(self._heartbeat_task)
        self._heartbeat_task = None
        self._stop_task(self._writer_task)
        self._writer_task = None
        self._requeue_unwritten()

        self._subscription_id = None
        self._set_auth_state(AuthState.NOT_AUTHENTICATED)

        failed = self._requests.fail_sent(HassConnectionLost(reason))
        if failed:
            _LOGGER.info("[%s] Failed %d in-flight requests", self.name, failed)

        self._set_connection_state(ConnectionState.DISCONNECTED)
        if self._should_reconnect:
            self._schedule_reconnect()
        elif not self._closed and not self._idle_disconnected:
            # Nothing will reopen the connection (disconnect() or a rejected
            # token), so queued requests cannot be sent
            self._abandon_requests(HassConnectionLost(reason))

    async def _force_disconnect(self, reason: str) -> None:
        _LOGGER.warning("[%s] Forcing disconnect: %s", self.name, reason)
        await self._transport.disconnect()
        if self._connection_state is not ConnectionState.DISCONNECTED:
            self._handle_disconnect(reason)

    def _schedule_reconnect(self) -> None:
        """Schedule reconnection attempt with exponential backoff."""
        if self._closed or not self._should_reconnect:
            return
        if self._reconnect_task is not None:
            _LOGGER.debug("[%s] Reconnect already scheduled", self.name)
            return

        limit = self.config.max_reconnect_attempts
        if limit is not None and self._reconnect_attempts >= limit:
            _LOGGER.error(
                "[%s] Hub unreachable after %d reconnection attempts",
                self.name,
                self._reconnect_attempts,
            )
            self._should_reconnect = False
            self._abandon_requests(HassUnreachableError(self._reconnect_attempts))
            self._unreachable_listeners.dispatch(
                HassUnreachableError(self._reconnect_attempts)
            )
            return

        self._reconnect_attempts += 1
        delay = self.config.reconnect_delay(self._reconnect_attempts)
        _LOGGER.info(
            "[%s] Reconnecting in %.1fs (attempt %d)",
            self.name,
            delay,
            self._reconnect_attempts,
        )
        self._reconnect_task = asyncio.create_task(self._reconnect_after_delay(delay))

    async def _reconnect_after_delay(self, delay: float) -> None:
        """Reconnect after delay."""
        try:
            await asyncio.sleep(delay)
            # Cleared before connecting so a failed attempt can schedule the next
            self._reconnect_task = None
            await self._connect()
        except asyncio.CancelledError:
            _LOGGER.debug("[%s] Reconnect cancelled", self.name)
        finally:
            if self._reconnect_task is asyncio.current_task():
                self._reconnect_task = None

    def _cancel_reconnect(self) -> None:
        task = self._reconnect_task
        self._reconnect_task = None
        self._stop_task(task)

    @staticmethod
    def _stop_task(task: asyncio.Task[Any] | None) -> None:
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    # -------------------------------------------------------------------------
    # Internal: Message Dispatch
    # -------------------------------------------------------------------------

    def _dispatch_message(self, data: dict[str, Any]) -> None:
        msg_type = classify_message(data)

        if msg_type is MessageType.AUTH_REQUIRED:
            self._handle_auth_required()
        elif msg_type is MessageType.AUTH_OK:
            self._handle_auth_ok()
        elif msg_type is MessageType.AUTH_INVALID:
            self._handle_auth_invalid(data)
        elif msg_type is MessageType.EVENT:
            self._handle_event(data)
        elif msg_type is MessageType.RESULT:
            self._handle_result(data)
        elif msg_type is MessageType.PONG:
            self._handle_pong(data)
        else:
            _LOGGER.debug(
                "[%s] Unknown message type: %s", self.name, data.get("type")
            )

    def _handle_auth_required(self) -> None:
        if self._auth_rejected or self._auth_state is not AuthState.NOT_AUTHENTICATED:
            _LOGGER.debug(
                "[%s] Ignoring auth_required in auth state %s",
                self.name,
                self._auth_state.value,
            )
            return
        self._set_auth_state(AuthState.AUTHENTICATING)
        self._send_control(build_auth(self._token))
        _LOGGER.debug("[%s] Auth sent", self.name)

    def _handle_auth_ok(self) -> None:
        if self._auth_state is AuthState.AUTHENTICATED:
            _LOGGER.debug("[%s] Duplicate auth_ok ignored", self.name)
            return

        self._reconnect_attempts = 0
        if self.config.subscribe_event_type and self._subscription_id is None:
            self._subscribe()
        flushed = self._flush_outbound()
        _LOGGER.info(
            "[%s] Authenticated (%d queued frames flushed)", self.name, flushed
        )
        # Listeners are told last so anything they send lands behind the
        # flushed queue
        self._set_auth_state(AuthState.AUTHENTICATED)

    def _handle_auth_invalid(self, data: dict[str, Any]) -> None:
        message = data.get("message") or "Invalid access token"
        _LOGGER.error("[%s] Authentication rejected: %s", self.name, message)
        self._auth_rejected = True
        # Retrying with the same token cannot succeed
        self._should_reconnect = False
        self._set_auth_state(AuthState.NOT_AUTHENTICATED)
        self._auth_failed_listeners.dispatch(HassAuthenticationFailed(str(message)))

    def _handle_event(self, data: dict[str, Any]) -> None:
        event = HassEvent.from_message(data)
        delivered = self._event_listeners.dispatch(event)
        _LOGGER.debug(
            "[%s] Event %s delivered to %d listeners",
            self.name,
            event.event_type,
            delivered,
        )

    def _handle_result(self, data: dict[str, Any]) -> None:
        msg_id = parse_message_id(data)
        if msg_id not in self._requests:
            _LOGGER.debug("[%s] Discarding result for unknown id %d", self.name, msg_id)
            return

        if data.get("success") is True:
            self._requests.resolve(msg_id, data.get("result"))
            return

        error = data.get("error")
        if not isinstance(error, dict):
            error = {}
        self._requests.reject(
            msg_id,
            HassResultError(
                str(error.get("code", "unknown_error")),
                str(error.get("message", "Command failed")),
                details=error,
            ),
        )

    def _handle_pong(self, data: dict[str, Any]) -> None:
        msg_id = parse_message_id(data)
        if not self._requests.resolve(msg_id, None):
            _LOGGER.debug("[%s] Discarding pong for unknown id %d", self.name, msg_id)

    # -------------------------------------------------------------------------
    # Internal: Outbound Path
    # -------------------------------------------------------------------------

    def _send_correlated(
        self, payload: dict[str, Any], *, timeout: float | None | object
    ) -> tuple[int, asyncio.Future[Any]]:
        if timeout is _DEFAULT_TIMEOUT:
            timeout = self.config.request_timeout
        msg_id = self._requests.next_id()
        try:
            text = encode_frame(with_id(payload, msg_id))
        except HassEncodingError as err:
            # Nothing is registered for a frame that can never be sent
            failed: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
            failed.set_exception(err)
            return msg_id, failed
        future = self._requests.register(msg_id, timeout=timeout)  # type: ignore[arg-type]
        self._touch()
        try:
            self._submit(_OutboundFrame(text, msg_id))
        except HassQueueFullError as err:
            self._requests.reject(msg_id, err)
        return msg_id, future

    def _submit(self, frame: _OutboundFrame) -> None:
        if self.is_ready and self._wire is not None:
            self._wire.put_nowait(frame)
            return
        if len(self._outbound) >= self.config.max_queue_size:
            raise HassQueueFullError(
                f"Outbound queue full ({self.config.max_queue_size} frames)"
            )
        self._outbound.append(frame)
        _LOGGER.debug(
            "[%s] Session not ready, queued frame (%d waiting)",
            self.name,
            len(self._outbound),
        )

    def _send_control(self, payload: dict[str, Any], msg_id: int | None = None) -> None:
        """Hand a handshake frame straight to the writer, bypassing the queue."""
        if self._wire is None:
            return
        self._wire.put_nowait(_OutboundFrame(encode_frame(payload), msg_id, control=True))

    def _subscribe(self) -> None:
        msg_id = self._requests.next_id()
        future = self._requests.register(msg_id, timeout=self.config.request_timeout)
        future.add_done_callback(self._subscription_done)
        self._subscription_id = msg_id
        self._send_control(
            with_id(build_subscribe_events(self.config.subscribe_event_type), msg_id),
            msg_id,
        )

    def _subscription_done(self, future: asyncio.Future[Any]) -> None:
        if future.cancelled():
            return
        err = future.exception()
        if err is not None:
            _LOGGER.warning("[%s] Event subscription failed: %s", self.name, err)

    def _flush_outbound(self) -> int:
        wire = self._wire
        if wire is None:
            return 0
        count = len(self._outbound)
        while self._outbound:
            wire.put_nowait(self._outbound.popleft())
        return count

    def _requeue_unwritten(self) -> None:
        """Return frames the writer never reached to the head of the queue."""
        wire = self._wire
        self._wire = None
        if wire is None:
            return

        unwritten: list[_OutboundFrame] = []
        while not wire.empty():
            frame = wire.get_nowait()
            wire.task_done()
            if frame.control:
                # Handshake frames belong to the closed connection
                if frame.msg_id is not None:
                    self._requests.reject(
                        frame.msg_id, HassConnectionLost("Connection closed")
                    )
                continue
            unwritten.append(frame)
        self._outbound.extendleft(reversed(unwritten))

    def _abandon_requests(self, err: HassClientError) -> None:
        """Fail every pending request and drop the outbound queue."""
        failed = self._requests.fail_all(err)
        dropped = len(self._outbound)
        self._outbound.clear()
        if failed or dropped:
            _LOGGER.info(
                "[%s] Abandoned %d pending requests and %d queued frames: %s",
                self.name,
                failed,
                dropped,
                err,
            )

    def _discard_queued(self, msg_id: int) -> None:
        """Drop a queued frame whose request timed out or was cancelled."""
        for frame in self._outbound:
            if frame.msg_id == msg_id:
                self._outbound.remove(frame)
                _LOGGER.debug("[%s] Dropped queued request id=%d", self.name, msg_id)
                return

    async def _write_loop(self, wire: asyncio.Queue[_OutboundFrame]) -> None:
        """Write frames to the transport strictly in hand-off order."""
        while True:
            frame = await wire.get()
            try:
                if frame.msg_id is not None:
                    self._requests.mark_sent(frame.msg_id)
                await self._transport.send_text(frame.text)
            except HassClientError as err:
                _LOGGER.warning("[%s] Failed to send frame: %s", self.name, err)
            finally:
                wire.task_done()

    # -------------------------------------------------------------------------
    # Internal: Keepalive
    # -------------------------------------------------------------------------

    async def _heartbeat_loop(self) -> None:
        """Ping periodically and drop the connection when the hub goes silent."""
        loop = asyncio.get_running_loop()
        try:
            while True:
                await asyncio.sleep(self.config.ping_interval)
                sent_at = loop.time()
                try:
                    await self._transport.send_ping()
                except HassClientError as err:
                    _LOGGER.warning("[%s] Ping failed: %s", self.name, err)

                await asyncio.sleep(self.config.ping_timeout)
                if self._last_received < sent_at:
                    await self._force_disconnect(
                        f"no pong within {self.config.ping_timeout:.1f}s"
                    )
                    return
        except asyncio.CancelledError:
            _LOGGER.debug("[%s] Heartbeat cancelled", self.name)

    # -------------------------------------------------------------------------
    # Internal: Inactivity
    # -------------------------------------------------------------------------

    def _touch(self) -> None:
        if self.config.idle_timeout is None or self._closed:
            return
        if self._idle_handle is not None:
            self._idle_handle.cancel()
        loop = asyncio.get_running_loop()
        self._idle_handle = loop.call_later(self.config.idle_timeout, self._on_idle)

        if self._idle_disconnected:
            # Activity after an idle disconnect brings the connection back
            self._idle_disconnected = False
            self._spawn(self.connect())

    def _on_idle(self) -> None:
        self._idle_handle = None
        if self._connection_state is ConnectionState.DISCONNECTED:
            return
        _LOGGER.info(
            "[%s] Disconnecting after %.0fs of inactivity",
            self.name,
            self.config.idle_timeout,
        )
        self._idle_disconnected = True
        self._should_reconnect = False
        self._cancel_reconnect()
        self._spawn(self._transport.disconnect())

    def _spawn(self, coro: Any) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
