"""Decoded payload types for hub events and states."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .errors import HassDecodingError


def _require(data: dict[str, Any], key: str, kind: type, where: str) -> Any:
    value = data.get(key)
    if not isinstance(value, kind):
        raise HassDecodingError(f"{where}.{key} must be {kind.__name__}")
    return value


def _parse_time(value: Any, where: str) -> datetime | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise HassDecodingError(f"{where} must be an ISO 8601 string")
    try:
        return datetime.fromisoformat(value)
    except ValueError as err:
        raise HassDecodingError(f"{where} is not ISO 8601: {value!r}") from err


@dataclass(frozen=True, slots=True)
class HassContext:
    """Origin context attached to states and events."""

    id: str
    parent_id: str | None = None
    user_id: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> HassContext:
        if not isinstance(data, dict):
            raise HassDecodingError("context must be an object")
        return cls(
            id=_require(data, "id", str, "context"),
            parent_id=data.get("parent_id"),
            user_id=data.get("user_id"),
        )


@dataclass(frozen=True, slots=True)
class HassState:
    """State object of a single entity."""

    entity_id: str
    state: str
    attributes: dict[str, Any] = field(default_factory=dict)
    last_changed: datetime | None = None
    last_updated: datetime | None = None
    context: HassContext | None = None

    @property
    def friendly_name(self) -> str | None:
        """Human readable name from attributes, when the hub sends one."""
        name = self.attributes.get("friendly_name")
        return name if isinstance(name, str) else None

    @classmethod
    def from_dict(cls, data: Any) -> HassState:
        if not isinstance(data, dict):
            raise HassDecodingError("state must be an object")
        attributes = data.get("attributes") or {}
        if not isinstance(attributes, dict):
            raise HassDecodingError("state.attributes must be an object")
        context = data.get("context")
        return cls(
            entity_id=_require(data, "entity_id", str, "state"),
            state=_require(data, "state", str, "state"),
            attributes=attributes,
            last_changed=_parse_time(data.get("last_changed"), "state.last_changed"),
            last_updated=_parse_time(data.get("last_updated"), "state.last_updated"),
            context=HassContext.from_dict(context) if context is not None else None,
        )


@dataclass(frozen=True, slots=True)
class StateChange:
    """Data of a ``state_changed`` event.

    ``old_state`` is None for a newly added entity, ``new_state`` is None for
    a removed one.
    """

    entity_id: str
    old_state: HassState | None
    new_state: HassState | None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StateChange:
        old_state = data.get("old_state")
        new_state = data.get("new_state")
        return cls(
            entity_id=_require(data, "entity_id", str, "event.data"),
            old_state=HassState.from_dict(old_state) if old_state is not None else None,
            new_state=HassState.from_dict(new_state) if new_state is not None else None,
        )


@dataclass(frozen=True, slots=True)
class HassEvent:
    """A push event delivered on an event subscription."""

    event_type: str
    data: dict[str, Any]
    subscription_id: int | None = None
    origin: str | None = None
    time_fired: datetime | None = None
    context: HassContext | None = None

    @property
    def state_change(self) -> StateChange | None:
        """Decoded data of a ``state_changed`` event, None for other types."""
        if self.event_type != "state_changed":
            return None
        return StateChange.from_dict(self.data)

    @classmethod
    def from_message(cls, message: dict[str, Any]) -> HassEvent:
        """Decode the nested ``event`` object of an event frame.

        Raises:
            HassDecodingError: If the event payload is malformed
        """
        event = message.get("event")
        if not isinstance(event, dict):
            raise HassDecodingError("event frame has no event object")
        data = event.get("data") or {}
        if not isinstance(data, dict):
            raise HassDecodingError("event.data must be an object")
        subscription_id = message.get("id")
        context = event.get("context")
        decoded = cls(
            event_type=_require(event, "event_type", str, "event"),
            data=data,
            subscription_id=subscription_id if isinstance(subscription_id, int) else None,
            origin=event.get("origin"),
            time_fired=_parse_time(event.get("time_fired"), "event.time_fired"),
            context=HassContext.from_dict(context) if context is not None else None,
        )
        # state_changed payloads are validated up front so listeners never
        # receive an event whose state_change accessor would raise
        if decoded.event_type == "state_changed":
            StateChange.from_dict(data)
        return decoded
