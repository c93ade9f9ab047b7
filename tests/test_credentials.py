"""Test credential providers."""

from __future__ import annotations

from pathlib import Path

import pytest

from hass_framework_core import SecretsFileCredentials, StaticCredentials
from hass_framework_core.credentials import validate_server_url
from hass_framework_core.errors import HassConfigurationError


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "secrets.yaml"
    path.write_text(text, encoding="utf-8")
    return path


@pytest.mark.parametrize(
    "url",
    [
        "ws://homeassistant.local:8123/api/websocket",
        "wss://example.duckdns.org/api/websocket",
    ],
)
def test_valid_urls(url):
    assert validate_server_url(url) == url


@pytest.mark.parametrize(
    "url",
    [None, "", "homeassistant.local", "https://homeassistant.local/api/websocket", "ws://"],
)
def test_invalid_urls(url):
    with pytest.raises(HassConfigurationError):
        validate_server_url(url)


class TestStaticCredentials:
    """Tests for StaticCredentials."""

    def test_returns_values(self):
        creds = StaticCredentials("ws://hass.local:8123/api/websocket", "abc")

        assert creds.server_url() == "ws://hass.local:8123/api/websocket"
        assert creds.access_token() == "abc"

    def test_missing_token(self):
        creds = StaticCredentials("ws://hass.local:8123/api/websocket", "")

        with pytest.raises(HassConfigurationError, match="Access token"):
            creds.access_token()


class TestSecretsFileCredentials:
    """Tests for SecretsFileCredentials."""

    def test_reads_yaml(self, tmp_path: Path):
        """Test both values are read from the secrets file."""
        path = _write(
            tmp_path,
            "server_url: ws://hass.local:8123/api/websocket\naccess_token: abc\n",
        )
        creds = SecretsFileCredentials(path)

        assert creds.server_url() == "ws://hass.local:8123/api/websocket"
        assert creds.access_token() == "abc"

    def test_reads_legacy_keys(self, tmp_path: Path):
        """Test the older CamelCase keys are accepted."""
        path = _write(
            tmp_path,
            "HomeAssistantServerURL: wss://hass.example/api/websocket\n"
            "HomeAssistantAccessToken: legacy\n",
        )
        creds = SecretsFileCredentials(str(path))

        assert creds.server_url() == "wss://hass.example/api/websocket"
        assert creds.access_token() == "legacy"

    def test_missing_file(self, tmp_path: Path):
        creds = SecretsFileCredentials(tmp_path / "missing.yaml")

        with pytest.raises(HassConfigurationError, match="not found"):
            creds.access_token()

    def test_invalid_yaml(self, tmp_path: Path):
        creds = SecretsFileCredentials(_write(tmp_path, "server_url: [unclosed\n"))

        with pytest.raises(HassConfigurationError, match="not valid YAML"):
            creds.server_url()

    def test_not_a_mapping(self, tmp_path: Path):
        creds = SecretsFileCredentials(_write(tmp_path, "- just\n- a list\n"))

        with pytest.raises(HassConfigurationError, match="mapping"):
            creds.server_url()

    def test_missing_token(self, tmp_path: Path):
        creds = SecretsFileCredentials(
            _write(tmp_path, "server_url: ws://hass.local:8123/api/websocket\n")
        )

        assert creds.server_url() == "ws://hass.local:8123/api/websocket"
        with pytest.raises(HassConfigurationError, match="Access token missing"):
            creds.access_token()
