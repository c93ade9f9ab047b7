"""Tunables for the WebSocket session."""

from __future__ import annotations

from dataclasses import dataclass

from .errors import HassConfigurationError


@dataclass(frozen=True)
class SessionConfig:
    """Configuration for a :class:`HassSession`.

    Attributes:
        connect_timeout: WebSocket open timeout (seconds)
        ping_interval: Heartbeat ping interval (seconds)
        ping_timeout: Time allowed for a pong or other traffic after a ping (seconds)
        reconnect_base_delay: First reconnection delay (seconds)
        reconnect_factor: Backoff multiplier between attempts
        reconnect_max_delay: Upper bound of the reconnection delay (seconds)
        max_reconnect_attempts: Consecutive attempts before the hub is
            reported unreachable (None retries forever)
        max_queue_size: Frames held while the session is not ready
        request_timeout: Default correlated request timeout (None waits forever)
        idle_timeout: Disconnect after this long without caller activity
            (None keeps the connection open)
        subscribe_event_type: Event type subscribed to after authentication
            (None skips the subscription)
    """

    connect_timeout: float = 10.0
    ping_interval: float = 60.0
    ping_timeout: float = 10.0
    reconnect_base_delay: float = 1.0
    reconnect_factor: float = 2.0
    reconnect_max_delay: float = 60.0
    max_reconnect_attempts: int | None = 10
    max_queue_size: int = 256
    request_timeout: float | None = 30.0
    idle_timeout: float | None = None
    subscribe_event_type: str | None = "state_changed"

    def __post_init__(self) -> None:
        for name in (
            "connect_timeout",
            "ping_interval",
            "ping_timeout",
            "reconnect_base_delay",
            "reconnect_max_delay",
        ):
            if getattr(self, name) <= 0:
                raise HassConfigurationError(f"{name} must be positive")
        if self.reconnect_factor < 1:
            raise HassConfigurationError("reconnect_factor must be >= 1")
        if self.reconnect_max_delay < self.reconnect_base_delay:
            raise HassConfigurationError(
                "reconnect_max_delay must not be below reconnect_base_delay"
            )
        if self.max_reconnect_attempts is not None and self.max_reconnect_attempts < 1:
            raise HassConfigurationError("max_reconnect_attempts must be >= 1")
        if self.max_queue_size < 1:
            raise HassConfigurationError("max_queue_size must be >= 1")
        if self.request_timeout is not None and self.request_timeout <= 0:
            raise HassConfigurationError("request_timeout must be positive")
        if self.idle_timeout is not None and self.idle_timeout <= 0:
            raise HassConfigurationError("idle_timeout must be positive")

    def reconnect_delay(self, attempt: int) -> float:
        """Return the backoff delay before reconnection ``attempt`` (1-based)."""
        delay = self.reconnect_base_delay * (self.reconnect_factor ** (attempt - 1))
        return min(delay, self.reconnect_max_delay)
