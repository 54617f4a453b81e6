"""Tests del motor de estado de habitaciones.

Propiedades:
1. check_in → occupied (maintenance para Maintenance)
2. checkout → vacant
3. has_master_key solo cambia con Manager
4. denied_access nunca muta la habitación
"""

import pytest

from telemetry_api.core.adapters import EventNormalizer
from telemetry_api.core.domain.enums import (
    ActivityType,
    EventType,
    OccupantKind,
    OccupantType,
    PowerStatus,
    RoomStatus,
)
from telemetry_api.core.domain.room_state import RoomState, RoomUpdate
from telemetry_api.core.engine import compute_update, transition
from telemetry_api.core.routing import parse_topic


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def event_for():
    normalizer = EventNormalizer()

    def build(payload, event_type="attendances", topic_prefix="campus/room/A/2/205"):
        routed = parse_topic(f"{topic_prefix}/{event_type}")
        return normalizer.normalize(routed, EventType.from_topic_segment(event_type), payload)

    return build


@pytest.fixture
def fixed_id():
    return lambda: "act-1"


def check_in(role, card="X1"):
    return {"card_uid": card, "role": role, "check_in": "2024-01-01T10:00:00Z"}


def check_out(role, card="X1"):
    return {"card_uid": card, "role": role, "check_out": "2024-01-01T12:00:00Z"}


# =============================================================================
# TRANSICIONES
# =============================================================================

class TestCheckIn:
    @pytest.mark.parametrize("role", ["Guest", "Staff", "Housekeeping", "Security"])
    def test_non_manager_occupies_and_keeps_master_key(self, event_for, role):
        current = RoomState("2", "205", has_master_key=True)

        result = transition(current, event_for(check_in(role)))

        assert result.state.status is RoomStatus.OCCUPIED
        assert result.state.occupant_type == OccupantType(role.lower())
        assert result.state.power_status is PowerStatus.ON
        assert result.state.has_master_key is True
        assert result.update.has_master_key is None

    def test_maintenance_role(self, event_for):
        result = transition(None, event_for(check_in("Maintenance")))

        assert result.state.status is RoomStatus.MAINTENANCE
        assert result.state.occupant_type == OccupantType.MAINTENANCE

    def test_manager_sets_master_key(self, event_for):
        result = transition(None, event_for(check_in("Manager")))

        assert result.state.status is RoomStatus.OCCUPIED
        assert result.state.has_master_key is True
        assert result.update.has_master_key is True

    def test_lowercase_manager_gets_no_master_key(self, event_for):
        result = transition(None, event_for(check_in("manager")))

        assert result.state.status is RoomStatus.OCCUPIED
        assert result.state.has_master_key is False
        assert result.update.has_master_key is None
        assert result.state.to_dict()["occupantType"] == "manager"

    def test_lowercase_maintenance_occupies(self, event_for):
        result = transition(None, event_for(check_in("maintenance")))

        assert result.state.status is RoomStatus.OCCUPIED
        assert result.state.occupant_type == OccupantType.MAINTENANCE

    def test_unlisted_role_occupant_type_on_the_wire(self, event_for):
        update = compute_update(event_for(check_in("Security")))

        assert update.occupant_type.kind is OccupantKind.OTHER
        assert update.to_broadcast("205")["occupantType"] == "security"

    def test_absent_room_starts_vacant(self, event_for):
        result = transition(None, event_for(check_in("Guest")))

        assert result.state.hotel_id == "2"
        assert result.state.number == "205"
        assert result.state.has_master_key is False


class TestCheckOut:
    def test_guest_checkout_vacates(self, event_for):
        current = RoomState("2", "205", RoomStatus.OCCUPIED, OccupantType.GUEST, power_status=PowerStatus.ON)

        result = transition(current, event_for(check_out("Guest")))

        assert result.state.status is RoomStatus.VACANT
        assert result.state.occupant_type is None
        assert result.state.power_status is PowerStatus.OFF

    def test_manager_checkout_clears_master_key(self, event_for):
        checked_in = transition(None, event_for(check_in("Manager"))).state

        result = transition(checked_in, event_for(check_out("Manager")))

        assert result.state.has_master_key is False
        assert result.update.has_master_key is False

    def test_guest_checkout_keeps_master_key(self, event_for):
        current = RoomState(
            "2", "205", RoomStatus.OCCUPIED, OccupantType.GUEST, has_master_key=True, power_status=PowerStatus.ON
        )

        result = transition(current, event_for(check_out("Guest")))

        assert result.state.has_master_key is True

    def test_empty_check_in_counts_as_checkout(self, event_for):
        payload = {"card_uid": "X1", "role": "Guest", "check_in": "", "check_out": "2024-01-01T12:00:00Z"}

        result = transition(None, event_for(payload))

        assert result.state.status is RoomStatus.VACANT


class TestActivity:
    def test_check_in_activity(self, event_for, fixed_id):
        result = transition(None, event_for(check_in("Guest")), fixed_id)
        activity = result.activity

        assert activity.id == "act-1"
        assert activity.hotel_id == "2"
        assert activity.type is ActivityType.CHECKIN
        assert activity.action == "Guest checked in to Room 205"
        assert activity.actor == "Guest"
        assert activity.time == "2024-01-01T10:00:00Z"

    def test_check_out_activity_uses_event_time(self, event_for):
        activity = transition(None, event_for(check_out("Staff"))).activity

        assert activity.type is ActivityType.CHECKOUT
        assert activity.action == "Staff checked out to Room 205"
        assert activity.time == "2024-01-01T12:00:00Z"

    def test_actor_is_role_as_sent(self, event_for):
        activity = transition(None, event_for(check_in("manager"))).activity

        assert activity.actor == "manager"
        assert activity.action == "manager checked in to Room 205"

    def test_wire_shape_uses_user_key(self, event_for, fixed_id):
        data = transition(None, event_for(check_in("Guest")), fixed_id).activity.to_dict()

        assert data == {
            "hotelId": "2",
            "id": "act-1",
            "type": "checkin",
            "action": "Guest checked in to Room 205",
            "user": "Guest",
            "time": "2024-01-01T10:00:00Z",
        }

    def test_ids_are_unique_by_default(self, event_for):
        event = event_for(check_in("Guest"))

        assert transition(None, event).activity.id != transition(None, event).activity.id


class TestDeniedAccess:
    def test_no_room_mutation(self, event_for):
        payload = {"card_uid": "Y9", "role": "Guest", "denial_reason": "expired", "attempted_at": "2024-01-01T09:00:00Z"}
        current = RoomState("2", "205", RoomStatus.OCCUPIED, OccupantType.GUEST, power_status=PowerStatus.ON)

        result = transition(current, event_for(payload, "denied_access"))

        assert result.update is None
        assert result.state is None
        assert result.mutates_room is False
        assert result.denial.payload == payload

    def test_security_activity(self, event_for):
        payload = {"card_uid": "Y9", "role": "Guest", "denial_reason": "expired", "attempted_at": "2024-01-01T09:00:00Z"}

        activity = transition(None, event_for(payload, "denied_access")).activity

        assert activity.type is ActivityType.SECURITY
        assert activity.action == "Denied access to Guest: expired for Room 205"
        assert activity.time == "2024-01-01T09:00:00Z"

    def test_denial_record_carries_location(self, event_for):
        payload = {"card_uid": "Y9", "role": "Guest", "denial_reason": "expired"}

        data = transition(None, event_for(payload, "denied_access")).denial.to_dict()

        assert data["denial_reason"] == "expired"
        assert data["hotelId"] == "2"
        assert data["room"] == "205"


# =============================================================================
# DOMINIO
# =============================================================================

class TestRoomStateInvariant:
    def test_occupied_requires_occupant(self):
        with pytest.raises(ValueError):
            RoomState("2", "205", RoomStatus.OCCUPIED)

    def test_vacant_rejects_occupant(self):
        with pytest.raises(ValueError):
            RoomState("2", "205", RoomStatus.VACANT, OccupantType.GUEST)

    def test_compute_update_broadcast_shape(self, event_for):
        update = compute_update(event_for(check_in("Guest")))

        assert update.to_broadcast("205") == {
            "roomNum": "205",
            "status": "occupied",
            "occupantType": "guest",
            "powerStatus": "on",
        }

    def test_update_fields_omit_untouched_master_key(self):
        update = RoomUpdate(RoomStatus.VACANT, None, PowerStatus.OFF)

        assert "has_master_key" not in update.to_fields()
