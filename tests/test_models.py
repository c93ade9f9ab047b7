"""Test decoding of hub states and events."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from hass_framework_core import HassEvent, HassState
from hass_framework_core.errors import HassDecodingError

from .conftest import state_changed_event


class TestHassState:
    """Tests for HassState.from_dict()."""

    def test_full_state(self):
        data = state_changed_event()["event"]["data"]["new_state"]

        state = HassState.from_dict(data)

        assert state.entity_id == "switch.garage"
        assert state.state == "on"
        assert state.friendly_name == "Garage"
        assert state.last_changed == datetime(
            2023, 10, 10, 12, 0, 0, 123456, tzinfo=timezone.utc
        )
        assert state.context is not None
        assert state.context.id == "01HCTX"

    def test_minimal_state(self):
        state = HassState.from_dict({"entity_id": "sun.sun", "state": "above_horizon"})

        assert state.attributes == {}
        assert state.last_updated is None
        assert state.context is None
        assert state.friendly_name is None

    @pytest.mark.parametrize(
        "data",
        [
            None,
            [],
            {"state": "on"},
            {"entity_id": "light.x", "state": 1},
            {"entity_id": "light.x", "state": "on", "attributes": []},
            {"entity_id": "light.x", "state": "on", "last_changed": "yesterday"},
            {"entity_id": "light.x", "state": "on", "context": "abc"},
        ],
    )
    def test_invalid_state(self, data):
        with pytest.raises(HassDecodingError):
            HassState.from_dict(data)


class TestHassEvent:
    """Tests for HassEvent.from_message()."""

    def test_state_changed_event(self):
        event = HassEvent.from_message(state_changed_event(subscription=4))

        assert event.event_type == "state_changed"
        assert event.subscription_id == 4
        assert event.origin == "LOCAL"
        assert event.context is not None
        assert event.context.user_id == "u1"
        change = event.state_change
        assert change is not None
        assert change.old_state is not None
        assert change.old_state.state == "off"
        assert change.new_state is not None
        assert change.new_state.state == "on"

    def test_added_and_removed_entities(self):
        added = HassEvent.from_message(state_changed_event(old=None)).state_change
        removed = HassEvent.from_message(state_changed_event(new=None)).state_change

        assert added is not None and added.old_state is None
        assert removed is not None and removed.new_state is None

    def test_other_event_types(self):
        event = HassEvent.from_message(
            {
                "id": 2,
                "type": "event",
                "event": {"event_type": "call_service", "data": {"domain": "light"}},
            }
        )

        assert event.event_type == "call_service"
        assert event.data == {"domain": "light"}
        assert event.state_change is None
        assert event.time_fired is None

    @pytest.mark.parametrize(
        "event",
        [
            None,
            "state_changed",
            {"data": {}},
            {"event_type": "x", "data": []},
            {"event_type": "state_changed", "data": {"new_state": None}},
            {
                "event_type": "state_changed",
                "data": {"entity_id": "light.x", "new_state": {"state": "on"}},
            },
        ],
    )
    def test_malformed_event(self, event):
        with pytest.raises(HassDecodingError):
            HassEvent.from_message({"id": 1, "type": "event", "event": event})
