"""Registros persistidos por el pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from .enums import ActivityType
from .location import LocationKey


@dataclass(frozen=True)
class AttendanceRecord:
    """Entrada del log de asistencia (append-only)."""
    location: LocationKey
    card_uid: Optional[str]
    role: str
    check_in: Optional[str]
    check_out: Optional[str]
    duration: Optional[float]
    is_checked_in: bool
    timestamp: str
    device_info: Dict[str, Any]
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    def to_dict(self) -> dict:
        return {
            **self.extra,
            **self.location.to_dict(),
            "card_uid": self.card_uid,
            "role": self.role,
            "check_in": self.check_in,
            "check_out": self.check_out,
            "duration": self.duration,
            "isCheckedIn": self.is_checked_in,
            "timestamp": self.timestamp,
            "deviceInfo": self.device_info,
        }


@dataclass(frozen=True)
class DeviceRecord:
    """Estado actual de un lector (upsert por ``device_id``)."""
    device_id: str
    location: LocationKey
    ssid: str
    mqtt_server: str
    mqtt_port: int
    last_seen: datetime
    firmware_version: str = "unknown"
    uptime: int = 0
    free_heap: int = 0
    wifi_signal: int = 0
    is_online: bool = True

    def to_dict(self) -> dict:
        return {
            "deviceId": self.device_id,
            **self.location.to_dict(),
            "ssid": self.ssid,
            "mqttServer": self.mqtt_server,
            "mqttPort": self.mqtt_port,
            "lastSeen": self.last_seen.isoformat(),
            "firmwareVersion": self.firmware_version,
            "uptime": self.uptime,
            "freeHeap": self.free_heap,
            "wifiSignal": self.wifi_signal,
            "isOnline": self.is_online,
        }


@dataclass(frozen=True)
class PresenceRecord:
    """Presencia de una credencial en una habitación.

    Upsert por ``(hotel_id, card_uid, room)``.
    """
    location: LocationKey
    card_uid: str
    is_present: bool
    last_detected: datetime
    presence_duration: float = 0
    card_absent_count: int = 0
    device_id: Optional[str] = None

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.location.hotel_id, self.card_uid, self.location.room_number)

    def to_dict(self) -> dict:
        return {
            **self.location.to_dict(),
            "card_uid": self.card_uid,
            "isPresent": self.is_present,
            "lastDetected": self.last_detected.isoformat(),
            "presenceDuration": self.presence_duration,
            "cardAbsentCount": self.card_absent_count,
            "deviceId": self.device_id,
        }


@dataclass(frozen=True)
class ActivityLogEntry:
    """Resumen legible de un evento, para el feed de actividad."""
    hotel_id: str
    id: str
    type: ActivityType
    action: str
    actor: str
    time: Optional[str]

    def to_dict(self) -> dict:
        # "user" is the field name the dashboards read.
        return {
            "hotelId": self.hotel_id,
            "id": self.id,
            "type": self.type.value,
            "action": self.action,
            "user": self.actor,
            "time": self.time,
        }


@dataclass(frozen=True)
class DenialLogEntry:
    location: LocationKey
    payload: Dict[str, Any]

    def to_dict(self) -> dict:
        # Payload verbatim, plus the topic-derived location fields.
        return {**self.payload, **self.location.to_dict()}
