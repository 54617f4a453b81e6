"""Modelo canónico de evento de telemetría."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from .enums import EventType, OccupantType, Role
from .location import LocationKey


@dataclass(frozen=True)
class RawTelemetryMessage:
    """Mensaje tal como llega del transporte.

    Vive solo durante un callback del ingress; ``received_at`` es None
    cuando el transporte no aporta hora de recepción.
    """
    topic: str
    payload: bytes
    ingress: str = "remote"
    received_at: Optional[datetime] = None


@dataclass(frozen=True)
class DeviceInfo:
    """Snapshot of the reader's connectivity, defaults already applied."""
    ssid: str
    mqtt_server: str
    mqtt_port: int
    ntp_server: str
    gmt_offset: int
    device_id: str
    firmware_version: str = "unknown"
    uptime: int = 0
    free_heap: int = 0
    wifi_signal: int = 0

    def to_dict(self, location: LocationKey) -> dict:
        return {
            "ssid": self.ssid,
            "mqttServer": self.mqtt_server,
            "mqttPort": self.mqtt_port,
            "roomNumber": location.room_number,
            "building": location.building,
            "floorNumber": location.floor_number,
            "ntpServer": self.ntp_server,
            "gmtOffset": self.gmt_offset,
        }


@dataclass(frozen=True)
class CanonicalEvent:
    """Evento normalizado - contrato único que fluye por el pipeline:
    Router → Normalizer → Engine → Persistencia → Fan-out
    """
    location: LocationKey
    event_type: EventType
    card_uid: Optional[str]
    role: Optional[Role]
    role_label: str
    device_info: DeviceInfo
    timestamp: datetime
    check_in: Optional[str] = None
    check_out: Optional[str] = None
    duration: Optional[float] = None
    card_absent_count: int = 0

    # Payload original, tal cual se recibió (los rechazos se guardan verbatim).
    payload: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_check_in(self) -> bool:
        return bool(self.check_in)

    @property
    def is_manager(self) -> bool:
        return self.role is Role.MANAGER

    @property
    def is_maintenance(self) -> bool:
        return self.role is Role.MAINTENANCE

    @property
    def occupant_type(self) -> OccupantType:
        return OccupantType.from_role(self.role_label)

    @property
    def timestamp_iso(self) -> str:
        return self.timestamp.isoformat().replace("+00:00", "Z")
