"""Adaptador payload MQTT + topic → CanonicalEvent."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

import orjson

from ..domain.enums import EventType, Role
from ..domain.event import CanonicalEvent, DeviceInfo, RawTelemetryMessage
from ..domain.location import LocationKey
from ..errors import MalformedPayload
from ..routing.topic_router import RoutedTopic

logger = logging.getLogger(__name__)

DEFAULT_SSID = "unknown"
DEFAULT_MQTT_SERVER = "broker.hivemq.com"
DEFAULT_MQTT_PORT = 1883
DEFAULT_NTP_SERVER = "pool.ntp.org"
DEFAULT_GMT_OFFSET = 19800  # IST, seconds
DEVICE_ID_PREFIX = "ESP32_"


def parse_payload(payload: bytes, topic: Optional[str] = None) -> dict:
    """Decodifica el cuerpo JSON del mensaje.

    Raises:
        MalformedPayload: si no es JSON o no es un objeto.
    """
    try:
        data = orjson.loads(payload)
    except orjson.JSONDecodeError as e:
        raise MalformedPayload(f"invalid JSON: {e}", topic) from e

    if not isinstance(data, dict):
        raise MalformedPayload(f"expected a JSON object, got {type(data).__name__}", topic)
    return data


class EventNormalizer:
    """Adapta payloads de los lectores al modelo de dominio.

    Responsabilidades:
    - Mezclar campos del topic con el payload (floor → hotel_id)
    - Aplicar defaults de deviceInfo en un único paso
    - Verificar los campos que necesita el motor de estado

    ``default_mqtt_server`` is used when the payload has no ``mqttServer``;
    it does not depend on which ingress delivered the message.
    """

    def __init__(self, default_mqtt_server: str = DEFAULT_MQTT_SERVER):
        self._default_mqtt_server = default_mqtt_server

    def normalize(
        self,
        routed: RoutedTopic,
        event_type: EventType,
        data: Mapping[str, Any],
        message: Optional[RawTelemetryMessage] = None,
    ) -> CanonicalEvent:
        location = LocationKey.from_topic(routed.building, routed.floor, routed.room_number)
        topic = message.topic if message else None

        raw_role = data.get("role")
        role_label = _as_str(raw_role)
        card_uid = _as_str(data.get("card_uid"))

        if event_type is EventType.ATTENDANCE:
            if not role_label:
                raise MalformedPayload(f"missing role {raw_role!r}", topic)
            if not card_uid:
                raise MalformedPayload("missing card_uid", topic)

        received_at = message.received_at if message and message.received_at else None

        return CanonicalEvent(
            location=location,
            event_type=event_type,
            card_uid=card_uid,
            role=Role.parse(role_label),
            role_label=role_label or "Unknown",
            device_info=self._device_info(data, location),
            timestamp=received_at or datetime.now(timezone.utc),
            check_in=_as_str(data.get("check_in")),
            check_out=_as_str(data.get("check_out")),
            duration=_as_number(data.get("duration")),
            card_absent_count=int(_as_number(data.get("cardAbsentCount")) or 0),
            payload=dict(data),
        )

    def _device_info(
        self,
        data: Mapping[str, Any],
        location: LocationKey,
    ) -> DeviceInfo:
        return DeviceInfo(
            ssid=data.get("ssid") or DEFAULT_SSID,
            mqtt_server=data.get("mqttServer") or self._default_mqtt_server,
            mqtt_port=int(_as_number(data.get("mqttPort")) or DEFAULT_MQTT_PORT),
            ntp_server=data.get("ntpServer") or DEFAULT_NTP_SERVER,
            gmt_offset=int(_as_number(data.get("gmtOffset_sec")) or DEFAULT_GMT_OFFSET),
            device_id=_as_str(data.get("deviceId")) or f"{DEVICE_ID_PREFIX}{location.room_number}",
            firmware_version=data.get("firmwareVersion") or "unknown",
            uptime=int(_as_number(data.get("uptime")) or 0),
            free_heap=int(_as_number(data.get("freeHeap")) or 0),
            wifi_signal=int(_as_number(data.get("wifiSignal")) or 0),
        )


def _as_str(value: Any) -> Optional[str]:
    """None for missing or falsy values, so ``false`` and ``0`` stay falsy."""
    if isinstance(value, str):
        return value or None
    if not value:
        return None
    return str(value)


def _as_number(value: Any) -> Optional[float]:
    """Numeric fields from firmware sometimes arrive as strings."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.debug("[NORMALIZER] Ignoring non-numeric value %r", value)
        return None
