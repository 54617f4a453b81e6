"""Tests del normalizador de eventos.

Verifica:
1. Remapeo floor → hotel_id
2. Defaults de deviceInfo en un solo paso
3. Payloads malformados
"""

from datetime import datetime, timezone

import pytest

from telemetry_api.core.adapters import EventNormalizer, parse_payload
from telemetry_api.core.domain.enums import EventType, OccupantKind, OccupantType, Role
from telemetry_api.core.errors import MalformedPayload
from telemetry_api.core.routing import parse_topic


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def normalizer() -> EventNormalizer:
    return EventNormalizer()


@pytest.fixture
def attendance_routed():
    return parse_topic("campus/room/A/2/205/attendances")


@pytest.fixture
def denial_routed():
    return parse_topic("campus/room/A/2/205/denied_access")


@pytest.fixture
def check_in_payload():
    return {"card_uid": "X1", "role": "Guest", "check_in": "2024-01-01T10:00:00Z"}


# =============================================================================
# PARSEO
# =============================================================================

class TestParsePayload:
    def test_valid_object(self):
        assert parse_payload(b'{"card_uid": "X1"}') == {"card_uid": "X1"}

    def test_invalid_json(self):
        with pytest.raises(MalformedPayload) as exc:
            parse_payload(b"{not json", "campus/room/A/2/205/attendances")

        assert exc.value.topic == "campus/room/A/2/205/attendances"

    def test_non_object_json(self):
        with pytest.raises(MalformedPayload):
            parse_payload(b"[1, 2, 3]")


# =============================================================================
# NORMALIZACIÓN
# =============================================================================

class TestNormalize:
    def test_location_comes_from_topic_and_floor_is_hotel(self, normalizer, attendance_routed, check_in_payload):
        event = normalizer.normalize(attendance_routed, EventType.ATTENDANCE, check_in_payload)

        assert event.location.hotel_id == "2"
        assert event.location.floor_number == "2"
        assert event.location.building == "A"
        assert event.location.room_number == "205"

    def test_role_and_card(self, normalizer, attendance_routed, check_in_payload):
        event = normalizer.normalize(attendance_routed, EventType.ATTENDANCE, check_in_payload)

        assert event.role is Role.GUEST
        assert event.role_label == "Guest"
        assert event.card_uid == "X1"
        assert event.is_check_in is True
        assert event.is_manager is False

    @pytest.mark.parametrize("label", ["manager", "MANAGER", " Manager", "maintenance"])
    def test_role_match_is_exact(self, normalizer, attendance_routed, label):
        event = normalizer.normalize(
            attendance_routed, EventType.ATTENDANCE, {"card_uid": "M1", "role": label, "check_in": "t"}
        )

        assert event.role is None
        assert event.role_label == label
        assert event.is_manager is False
        assert event.is_maintenance is False

    def test_unlisted_role_keeps_its_label(self, normalizer, attendance_routed):
        event = normalizer.normalize(
            attendance_routed, EventType.ATTENDANCE, {"card_uid": "S1", "role": "Security", "check_in": "t"}
        )

        assert event.role is None
        assert event.role_label == "Security"
        assert event.occupant_type == OccupantType("security")
        assert event.occupant_type.kind is OccupantKind.OTHER

    @pytest.mark.parametrize("flag", [False, 0, "", None])
    def test_falsy_check_in_is_checkout(self, normalizer, attendance_routed, flag):
        event = normalizer.normalize(
            attendance_routed, EventType.ATTENDANCE, {"card_uid": "X1", "role": "Guest", "check_in": flag}
        )

        assert event.check_in is None
        assert event.is_check_in is False

    @pytest.mark.parametrize("flag", [True, 1, "2024-01-01T10:00:00Z"])
    def test_truthy_check_in_is_checkin(self, normalizer, attendance_routed, flag):
        event = normalizer.normalize(
            attendance_routed, EventType.ATTENDANCE, {"card_uid": "X1", "role": "Guest", "check_in": flag}
        )

        assert event.is_check_in is True

    def test_device_info_defaults(self, normalizer, attendance_routed, check_in_payload):
        event = normalizer.normalize(attendance_routed, EventType.ATTENDANCE, check_in_payload)
        info = event.device_info

        assert info.ssid == "unknown"
        assert info.mqtt_server == "broker.hivemq.com"
        assert info.mqtt_port == 1883
        assert info.ntp_server == "pool.ntp.org"
        assert info.gmt_offset == 19800
        assert info.device_id == "ESP32_205"
        assert info.firmware_version == "unknown"
        assert info.wifi_signal == 0

    def test_device_info_from_payload(self, normalizer, attendance_routed, check_in_payload):
        payload = {
            **check_in_payload,
            "ssid": "HotelNet",
            "mqttServer": "10.0.0.5",
            "mqttPort": "8883",
            "deviceId": "READER-9",
            "wifiSignal": -61,
            "uptime": 3600,
        }
        info = normalizer.normalize(attendance_routed, EventType.ATTENDANCE, payload).device_info

        assert info.ssid == "HotelNet"
        assert info.mqtt_server == "10.0.0.5"
        assert info.mqtt_port == 8883
        assert info.device_id == "READER-9"
        assert info.wifi_signal == -61
        assert info.uptime == 3600

    @pytest.mark.parametrize("ingress", ["remote", "local"])
    def test_mqtt_server_default_ignores_ingress(
        self, normalizer, attendance_routed, check_in_payload, message, ingress
    ):
        raw = message("campus/room/A/2/205/attendances", check_in_payload, ingress=ingress)
        event = normalizer.normalize(attendance_routed, EventType.ATTENDANCE, check_in_payload, raw)

        assert event.device_info.mqtt_server == "broker.hivemq.com"

    def test_configured_mqtt_server_default(self, attendance_routed, check_in_payload):
        normalizer = EventNormalizer(default_mqtt_server="mqtt.hotel.local")
        event = normalizer.normalize(attendance_routed, EventType.ATTENDANCE, check_in_payload)

        assert event.device_info.mqtt_server == "mqtt.hotel.local"

    def test_timestamp_from_transport(self, normalizer, attendance_routed, check_in_payload, message):
        raw = message("campus/room/A/2/205/attendances", check_in_payload)
        event = normalizer.normalize(attendance_routed, EventType.ATTENDANCE, check_in_payload, raw)

        assert event.timestamp == raw.received_at
        assert event.timestamp_iso == "2024-01-01T10:00:05Z"

    def test_timestamp_stamped_when_transport_has_none(self, normalizer, attendance_routed, check_in_payload):
        before = datetime.now(timezone.utc)
        event = normalizer.normalize(attendance_routed, EventType.ATTENDANCE, check_in_payload)

        assert event.timestamp >= before

    def test_non_numeric_duration_is_dropped(self, normalizer, attendance_routed, check_in_payload):
        payload = {**check_in_payload, "duration": "n/a"}
        event = normalizer.normalize(attendance_routed, EventType.ATTENDANCE, payload)

        assert event.duration is None

    def test_payload_kept_verbatim(self, normalizer, attendance_routed, check_in_payload):
        payload = {**check_in_payload, "custom": {"a": 1}}
        event = normalizer.normalize(attendance_routed, EventType.ATTENDANCE, payload)

        assert event.payload == payload


class TestRequiredFields:
    """Campos que el motor de estado necesita."""

    def test_attendance_without_role(self, normalizer, attendance_routed):
        with pytest.raises(MalformedPayload):
            normalizer.normalize(attendance_routed, EventType.ATTENDANCE, {"card_uid": "X1"})

    def test_attendance_with_empty_role(self, normalizer, attendance_routed):
        with pytest.raises(MalformedPayload):
            normalizer.normalize(
                attendance_routed, EventType.ATTENDANCE, {"card_uid": "X1", "role": ""}
            )

    def test_attendance_with_unlisted_role_is_accepted(self, normalizer, attendance_routed):
        event = normalizer.normalize(
            attendance_routed, EventType.ATTENDANCE, {"card_uid": "X1", "role": "Visitor"}
        )

        assert event.role is None
        assert event.role_label == "Visitor"

    def test_attendance_without_card(self, normalizer, attendance_routed):
        with pytest.raises(MalformedPayload):
            normalizer.normalize(attendance_routed, EventType.ATTENDANCE, {"role": "Guest"})

    def test_denial_accepts_unknown_role(self, normalizer, denial_routed):
        event = normalizer.normalize(
            denial_routed, EventType.DENIED_ACCESS, {"card_uid": "Y9", "role": "Visitor"}
        )

        assert event.role is None
        assert event.role_label == "Visitor"

    def test_denial_without_role(self, normalizer, denial_routed):
        event = normalizer.normalize(denial_routed, EventType.DENIED_ACCESS, {"card_uid": "Y9"})

        assert event.role_label == "Unknown"
