"""Test HassRestClient against the hub REST API."""

from __future__ import annotations

from unittest.mock import MagicMock

import aiohttp
import pytest

from hass_framework_core import HassRestClient, rest_base_url
from hass_framework_core.errors import (
    HassConnectionError,
    HassDecodingError,
    HassResponseError,
    HassTimeout,
)

from .conftest import create_mock_response

STATE = {
    "entity_id": "sensor.outside",
    "state": "12.5",
    "attributes": {"unit_of_measurement": "°C", "friendly_name": "Outside"},
    "last_changed": "2023-10-10T12:00:00+00:00",
    "last_updated": "2023-10-10T12:00:00+00:00",
    "context": {"id": "01HCTX", "parent_id": None, "user_id": None},
}


def _client(mock_session: MagicMock) -> HassRestClient:
    return HassRestClient(mock_session, "http://hass.local:8123/", "secret-token")


@pytest.mark.parametrize(
    ("ws_url", "expected"),
    [
        ("ws://hass.local:8123/api/websocket", "http://hass.local:8123/"),
        ("wss://example.duckdns.org/api/websocket", "https://example.duckdns.org/"),
    ],
)
def test_rest_base_url(ws_url, expected):
    """Test the REST base URL is derived from the WebSocket URL."""
    assert rest_base_url(ws_url) == expected


class TestRequest:
    """Tests for HassRestClient.request()."""

    async def test_bearer_token_sent(self, mock_session: MagicMock) -> None:
        """Test every request carries the access token."""
        mock_session.request.return_value = create_mock_response(json_data=STATE)

        await _client(mock_session).request("GET", "api/states/sensor.outside")

        call_args = mock_session.request.call_args
        assert call_args.args == (
            "GET",
            "http://hass.local:8123/api/states/sensor.outside",
        )
        headers = call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer secret-token"

    async def test_non_2xx_raises_response_error(self, mock_session: MagicMock) -> None:
        """Test an error status raises HassResponseError with the status."""
        mock_session.request.return_value = create_mock_response(
            status=401, text_data="401: Unauthorized"
        )

        with pytest.raises(HassResponseError, match="Unauthorized") as exc_info:
            await _client(mock_session).request("GET", "api/states")

        assert exc_info.value.status == 401

    async def test_invalid_json_raises_decoding_error(
        self, mock_session: MagicMock
    ) -> None:
        """Test a non-JSON body raises HassDecodingError."""
        response = create_mock_response(status=200)
        response.json.side_effect = ValueError("not json")
        mock_session.request.return_value = response

        with pytest.raises(HassDecodingError):
            await _client(mock_session).request("GET", "api/states")

    async def test_timeout_raises_timeout(self, mock_session: MagicMock) -> None:
        """Test a timeout is reported as HassTimeout."""
        mock_session.request.side_effect = TimeoutError()

        with pytest.raises(HassTimeout):
            await _client(mock_session).request("GET", "api/states")

    async def test_client_error_raises_connection_error(
        self, mock_session: MagicMock
    ) -> None:
        """Test network errors are reported as HassConnectionError."""
        mock_session.request.side_effect = aiohttp.ClientConnectionError("refused")

        with pytest.raises(HassConnectionError):
            await _client(mock_session).request("GET", "api/states")


class TestStates:
    """Tests for state fetching."""

    async def test_fetch_state(self, mock_session: MagicMock) -> None:
        """Test fetching a single entity state."""
        mock_session.request.return_value = create_mock_response(json_data=STATE)

        state = await _client(mock_session).fetch_state("sensor.outside")

        assert state.entity_id == "sensor.outside"
        assert state.state == "12.5"
        assert state.attributes["unit_of_measurement"] == "°C"
        assert state.last_updated is not None

    async def test_fetch_states(self, mock_session: MagicMock) -> None:
        """Test fetching every entity state."""
        mock_session.request.return_value = create_mock_response(json_data=[STATE])

        states = await _client(mock_session).fetch_states()

        assert [s.friendly_name for s in states] == ["Outside"]

    async def test_fetch_states_rejects_non_list(self, mock_session: MagicMock) -> None:
        """Test an unexpected body shape raises HassDecodingError."""
        mock_session.request.return_value = create_mock_response(json_data={})

        with pytest.raises(HassDecodingError):
            await _client(mock_session).fetch_states()


class TestCallService:
    """Tests for service calls over REST."""

    async def test_call_service_posts_data(self, mock_session: MagicMock) -> None:
        """Test POST to the service endpoint returns changed states."""
        mock_session.request.return_value = create_mock_response(json_data=[STATE])

        changed = await _client(mock_session).call_service(
            "switch", "toggle", {"entity_id": "switch.garage"}
        )

        call_args = mock_session.request.call_args
        assert call_args.args == (
            "POST",
            "http://hass.local:8123/api/services/switch/toggle",
        )
        assert call_args.kwargs["json"] == {"entity_id": "switch.garage"}
        assert [s.entity_id for s in changed] == ["sensor.outside"]

    async def test_call_service_without_changes(self, mock_session: MagicMock) -> None:
        """Test an empty response yields no changed states."""
        mock_session.request.return_value = create_mock_response(json_data=[])

        assert await _client(mock_session).call_service("homeassistant", "check_config") == []
