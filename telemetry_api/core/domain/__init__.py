"""Domain layer - Modelos de dominio del pipeline de telemetría."""

from .enums import ActivityType, EventType, OccupantKind, OccupantType, PowerStatus, Role, RoomStatus
from .event import CanonicalEvent, DeviceInfo, RawTelemetryMessage
from .location import LocationKey
from .records import (
    ActivityLogEntry,
    AttendanceRecord,
    DenialLogEntry,
    DeviceRecord,
    PresenceRecord,
)
from .room_state import RoomState, RoomUpdate

__all__ = [
    "ActivityLogEntry",
    "ActivityType",
    "AttendanceRecord",
    "CanonicalEvent",
    "DenialLogEntry",
    "DeviceInfo",
    "DeviceRecord",
    "EventType",
    "LocationKey",
    "OccupantKind",
    "OccupantType",
    "PowerStatus",
    "PresenceRecord",
    "RawTelemetryMessage",
    "Role",
    "RoomState",
    "RoomStatus",
    "RoomUpdate",
]
