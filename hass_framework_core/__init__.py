"""Persistent WebSocket session core for Home Assistant hub clients."""

__version__ = "0.1.0"

from .config import SessionConfig
from .credentials import (
    CredentialProvider,
    SecretsFileCredentials,
    StaticCredentials,
)
from .errors import (
    HassAuthenticationFailed,
    HassClientError,
    HassConfigurationError,
    HassConnectionError,
    HassConnectionLost,
    HassDecodingError,
    HassEncodingError,
    HassHandshakeError,
    HassProtocolError,
    HassQueueFullError,
    HassResponseError,
    HassResultError,
    HassTimeout,
    HassUnreachableError,
)
from .http import HassRestClient, rest_base_url
from .models import HassContext, HassEvent, HassState, StateChange
from .session import AuthState, ConnectionState, HassSession

__all__ = [
    "AuthState",
    "ConnectionState",
    "CredentialProvider",
    "HassAuthenticationFailed",
    "HassClientError",
    "HassConfigurationError",
    "HassConnectionError",
    "HassConnectionLost",
    "HassContext",
    "HassDecodingError",
    "HassEncodingError",
    "HassEvent",
    "HassHandshakeError",
    "HassProtocolError",
    "HassQueueFullError",
    "HassResponseError",
    "HassRestClient",
    "HassResultError",
    "HassSession",
    "HassState",
    "HassTimeout",
    "HassUnreachableError",
    "SecretsFileCredentials",
    "SessionConfig",
    "StateChange",
    "StaticCredentials",
    "__version__",
    "rest_base_url",
]
