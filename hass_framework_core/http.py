"""HTTP client for the Home Assistant REST API.

This is the secondary channel: plain request/response calls over aiohttp,
never multiplexed with the WebSocket session.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlsplit, urlunsplit

import aiohttp

from .errors import (
    HassConnectionError,
    HassDecodingError,
    HassResponseError,
    HassTimeout,
)
from .models import HassState

_HTTP_SCHEMES = {"ws": "http", "wss": "https"}


def rest_base_url(ws_url: str) -> str:
    """Derive the REST base URL from the WebSocket API URL.

    ``ws://hass.local:8123/api/websocket`` becomes ``http://hass.local:8123/``.
    """
    parts = urlsplit(ws_url)
    scheme = _HTTP_SCHEMES.get(parts.scheme, parts.scheme)
    return urlunsplit((scheme, parts.netloc, "/", "", ""))


class HassRestClient:
    """HTTP client wrapper for the hub REST API."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: str,
        token: str,
        *,
        timeout: float = 10.0,
    ) -> None:
        self._session = session
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout

    def _url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
        }

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """Perform an authenticated request and decode the JSON body.

        Raises:
            HassResponseError: If the hub returns a non-2xx status
            HassDecodingError: If the body is not JSON
            HassTimeout: If the request times out
            HassConnectionError: If the network request fails
        """
        url = self._url(path)
        try:
            async with self._session.request(
                method,
                url,
                headers=self._headers(),
                json=json,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as resp:
                if resp.status // 100 != 2:
                    text = await resp.text()
                    raise HassResponseError(
                        resp.status, f"{method} {path} failed: {text or resp.reason}"
                    )
                try:
                    return await resp.json()
                except (aiohttp.ContentTypeError, ValueError) as err:
                    raise HassDecodingError(f"{method} {path} returned no JSON") from err
        except TimeoutError as err:
            raise HassTimeout(f"{method} {path} timed out") from err
        except aiohttp.ClientError as err:
            raise HassConnectionError(f"{method} {path} failed") from err

    async def fetch_state(self, entity_id: str) -> HassState:
        """Fetch the state of one entity from /api/states/<entity_id>."""
        data = await self.request("GET", f"api/states/{entity_id}")
        return HassState.from_dict(data)

    async def fetch_states(self) -> list[HassState]:
        """Fetch the state of every entity from /api/states."""
        data = await self.request("GET", "api/states")
        if not isinstance(data, list):
            raise HassDecodingError("/api/states must return a list")
        return [HassState.from_dict(item) for item in data]

    async def call_service(
        self,
        domain: str,
        service: str,
        service_data: dict[str, Any] | None = None,
    ) -> list[HassState]:
        """Call a service via POST /api/services/<domain>/<service>.

        Returns:
            States that changed while the service executed
        """
        data = await self.request(
            "POST", f"api/services/{domain}/{service}", json=service_data or {}
        )
        if not isinstance(data, list):
            return []
        return [HassState.from_dict(item) for item in data]
