"""Credential providers for the hub server URL and access token.

The session resolves both values once at construction. A missing value is a
configuration error, never a condition to retry.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import yaml

from .errors import HassConfigurationError

_URL_KEYS = ("server_url", "HomeAssistantServerURL")
_TOKEN_KEYS = ("access_token", "HomeAssistantAccessToken")
_WS_SCHEMES = frozenset({"ws", "wss"})


class CredentialProvider(ABC):
    """Source of the WebSocket URL and long-lived access token."""

    @abstractmethod
    def server_url(self) -> str:
        """Return the hub WebSocket URL."""

    @abstractmethod
    def access_token(self) -> str:
        """Return the access token."""


def validate_server_url(url: str | None) -> str:
    """Return ``url`` if it is an absolute ws:// or wss:// URL."""
    if not url:
        raise HassConfigurationError("Server URL is not configured")
    parts = urlsplit(url)
    if parts.scheme not in _WS_SCHEMES or not parts.hostname:
        raise HassConfigurationError(f"Server URL is malformed: {url}")
    return url


class StaticCredentials(CredentialProvider):
    """Credentials supplied directly by the caller."""

    def __init__(self, server_url: str, access_token: str) -> None:
        self._server_url = server_url
        self._access_token = access_token

    def server_url(self) -> str:
        return validate_server_url(self._server_url)

    def access_token(self) -> str:
        if not self._access_token:
            raise HassConfigurationError("Access token is not configured")
        return self._access_token


class SecretsFileCredentials(CredentialProvider):
    """Credentials read from a YAML secrets file.

    Example ``secrets.yaml``::

        server_url: ws://homeassistant.local:8123/api/websocket
        access_token: eyJhbGciOi...
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._data: dict[str, Any] | None = None

    def _load(self) -> dict[str, Any]:
        if self._data is None:
            if not self._path.exists():
                raise HassConfigurationError(f"Secrets file not found: {self._path}")
            try:
                with self._path.open(encoding="utf-8") as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as err:
                raise HassConfigurationError(
                    f"Secrets file is not valid YAML: {self._path}"
                ) from err
            if not isinstance(data, dict):
                raise HassConfigurationError(
                    f"Secrets file must contain a mapping: {self._path}"
                )
            self._data = data
        return self._data

    def _lookup(self, keys: tuple[str, ...]) -> str | None:
        data = self._load()
        for key in keys:
            value = data.get(key)
            if value:
                return str(value)
        return None

    def server_url(self) -> str:
        return validate_server_url(self._lookup(_URL_KEYS))

    def access_token(self) -> str:
        token = self._lookup(_TOKEN_KEYS)
        if not token:
            raise HassConfigurationError(
                f"Access token missing from secrets file: {self._path}"
            )
        return token
