"""Conjuntos cerrados del dominio."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class EventType(Enum):
    """Tipo de evento derivado del último segmento del topic."""
    ATTENDANCE = "attendance"
    DENIED_ACCESS = "denied_access"

    @classmethod
    def from_topic_segment(cls, segment: str) -> Optional["EventType"]:
        return _TOPIC_SEGMENTS.get(segment)


_TOPIC_SEGMENTS = {
    "attendances": EventType.ATTENDANCE,
    "denied_access": EventType.DENIED_ACCESS,
}


class Role(Enum):
    """Roles con efecto propio sobre la habitación.

    Cualquier otro rol es válido; solo no tiene efecto especial.
    """
    GUEST = "Guest"
    MANAGER = "Manager"
    MAINTENANCE = "Maintenance"

    @classmethod
    def parse(cls, value: object) -> Optional["Role"]:
        """Exact, case-sensitive match on the label sent by the reader."""
        for role in cls:
            if value == role.value:
                return role
        return None


class OccupantKind(str, Enum):
    GUEST = "guest"
    MANAGER = "manager"
    MAINTENANCE = "maintenance"
    OTHER = "other"


@dataclass(frozen=True)
class OccupantType:
    """Rol en minúsculas de quien ocupa la habitación.

    ``value`` conserva la etiqueta completa (``"security"``); ``kind`` la
    clasifica, con OTHER para roles fuera de los conocidos.
    """
    value: str

    @classmethod
    def from_role(cls, role_label: str) -> "OccupantType":
        return cls(role_label.lower())

    @property
    def kind(self) -> OccupantKind:
        try:
            return OccupantKind(self.value)
        except ValueError:
            return OccupantKind.OTHER

    def __str__(self) -> str:
        return self.value


OccupantType.GUEST = OccupantType(OccupantKind.GUEST.value)
OccupantType.MANAGER = OccupantType(OccupantKind.MANAGER.value)
OccupantType.MAINTENANCE = OccupantType(OccupantKind.MAINTENANCE.value)


class RoomStatus(str, Enum):
    VACANT = "vacant"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"

    @property
    def is_active(self) -> bool:
        return self is not RoomStatus.VACANT


class PowerStatus(str, Enum):
    ON = "on"
    OFF = "off"


class ActivityType(str, Enum):
    CHECKIN = "checkin"
    CHECKOUT = "checkout"
    SECURITY = "security"
