"""Protocol helpers for Home Assistant WebSocket API frames.

Every frame is a JSON object carried in a single text frame. Commands sent
after authentication carry an integer ``id`` that the hub echoes back in the
matching ``result`` frame.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

from .errors import HassDecodingError, HassEncodingError, HassProtocolError


class MessageType(Enum):
    """Inbound message classification."""

    AUTH_REQUIRED = "auth_required"
    AUTH_OK = "auth_ok"
    AUTH_INVALID = "auth_invalid"
    EVENT = "event"
    RESULT = "result"
    PONG = "pong"
    UNKNOWN = "unknown"


_INBOUND_TYPES: dict[str, MessageType] = {
    member.value: member for member in MessageType if member is not MessageType.UNKNOWN
}


def encode_frame(payload: dict[str, Any]) -> str:
    """Serialize ``payload`` into a text frame.

    Raises:
        HassEncodingError: If the payload is not JSON serializable
    """
    try:
        return json.dumps(payload, allow_nan=False)
    except (TypeError, ValueError) as err:
        raise HassEncodingError(f"Cannot serialize frame: {err}") from err


def decode_frame(text: str) -> dict[str, Any]:
    """Parse a text frame into a JSON object.

    Raises:
        HassDecodingError: If the text is not JSON or not an object
    """
    try:
        data = json.loads(text)
    except ValueError as err:
        raise HassDecodingError(f"Frame is not valid JSON: {err}") from err
    if not isinstance(data, dict):
        raise HassDecodingError(f"Frame is not a JSON object: {type(data).__name__}")
    return data


def classify_message(data: dict[str, Any]) -> MessageType:
    """Classify an inbound frame by its ``type`` field."""
    msg_type = data.get("type")
    if not isinstance(msg_type, str):
        return MessageType.UNKNOWN
    return _INBOUND_TYPES.get(msg_type, MessageType.UNKNOWN)


def parse_message_id(data: dict[str, Any]) -> int:
    """Return the integer ``id`` of an inbound frame.

    Raises:
        HassProtocolError: If ``id`` is missing or not an integer
    """
    msg_id = data.get("id")
    if isinstance(msg_id, bool) or not isinstance(msg_id, int):
        raise HassProtocolError(f"Frame has no integer id: {msg_id!r}")
    return msg_id


def with_id(payload: dict[str, Any], msg_id: int) -> dict[str, Any]:
    """Return a copy of ``payload`` tagged with ``msg_id``."""
    return {**payload, "id": msg_id}


def build_auth(access_token: str) -> dict[str, Any]:
    """Construct the auth frame answering ``auth_required``."""
    if not access_token:
        raise ValueError("access_token is required for auth frames")
    return {"type": "auth", "access_token": access_token}


def build_subscribe_events(event_type: str | None = None) -> dict[str, Any]:
    """Construct a subscribe_events command.

    Args:
        event_type: Event type to receive. All events when omitted.
    """
    payload: dict[str, Any] = {"type": "subscribe_events"}
    if event_type:
        payload["event_type"] = event_type
    return payload


def build_unsubscribe_events(subscription: int) -> dict[str, Any]:
    """Construct an unsubscribe_events command for a subscription id."""
    return {"type": "unsubscribe_events", "subscription": subscription}


def build_call_service(
    *,
    domain: str,
    service: str,
    service_data: dict[str, Any] | None = None,
    target: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Construct a call_service command.

    Args:
        domain: Service domain (e.g., "switch").
        service: Service name (e.g., "toggle").
        service_data: Optional service data, usually carrying ``entity_id``.
        target: Optional target selector (entity_id, device_id, area_id).
    """
    if not domain or not service:
        raise ValueError("domain and service are required for call_service")
    payload: dict[str, Any] = {
        "type": "call_service",
        "domain": domain,
        "service": service,
    }
    if service_data:
        payload["service_data"] = service_data
    if target:
        payload["target"] = target
    return payload


def build_get_states() -> dict[str, Any]:
    """Construct a get_states command."""
    return {"type": "get_states"}


def build_get_config() -> dict[str, Any]:
    """Construct a get_config command."""
    return {"type": "get_config"}


def build_ping() -> dict[str, Any]:
    """Construct an application-level ping command."""
    return {"type": "ping"}
