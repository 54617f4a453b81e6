"""Estado derivado de ocupación de una habitación."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from .enums import OccupantType, PowerStatus, RoomStatus
from .location import LocationKey


@dataclass(frozen=True)
class RoomState:
    """Snapshot of one room.

    ``occupant_type`` is set exactly when the room is occupied or in
    maintenance; constructing any other combination raises ValueError.
    """
    hotel_id: str
    number: str
    status: RoomStatus = RoomStatus.VACANT
    occupant_type: Optional[OccupantType] = None
    has_master_key: bool = False
    power_status: PowerStatus = PowerStatus.OFF
    has_low_power: bool = False

    def __post_init__(self):
        if self.status.is_active and self.occupant_type is None:
            raise ValueError(f"room {self.number}: status {self.status.value} requires an occupant")
        if not self.status.is_active and self.occupant_type is not None:
            raise ValueError(f"room {self.number}: vacant room cannot have an occupant")

    @classmethod
    def vacant(cls, hotel_id: str, number: str) -> "RoomState":
        return cls(hotel_id=hotel_id, number=number)

    @classmethod
    def for_location(cls, location: LocationKey) -> "RoomState":
        return cls.vacant(location.hotel_id, location.room_number)

    def apply(self, update: "RoomUpdate") -> "RoomState":
        changes: Dict[str, Any] = {
            "status": update.status,
            "occupant_type": update.occupant_type,
            "power_status": update.power_status,
        }
        if update.has_master_key is not None:
            changes["has_master_key"] = update.has_master_key
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            "hotelId": self.hotel_id,
            "number": self.number,
            "status": self.status.value,
            "occupantType": self.occupant_type.value if self.occupant_type else None,
            "hasMasterKey": self.has_master_key,
            "hasLowPower": self.has_low_power,
            "powerStatus": self.power_status.value,
        }


@dataclass(frozen=True)
class RoomUpdate:
    """Delta aplicado a una habitación.

    ``has_master_key`` es None cuando el evento no lo toca (solo los
    eventos de Manager lo modifican).
    """
    status: RoomStatus
    occupant_type: Optional[OccupantType]
    power_status: PowerStatus
    has_master_key: Optional[bool] = None

    def to_fields(self) -> Dict[str, Any]:
        """Column values to write; omits untouched fields."""
        fields: Dict[str, Any] = {
            "status": self.status.value,
            "occupant_type": self.occupant_type.value if self.occupant_type else None,
            "power_status": self.power_status.value,
        }
        if self.has_master_key is not None:
            fields["has_master_key"] = self.has_master_key
        return fields

    def to_broadcast(self, room_number: str) -> dict:
        data: Dict[str, Any] = {
            "roomNum": room_number,
            "status": self.status.value,
            "occupantType": self.occupant_type.value if self.occupant_type else None,
            "powerStatus": self.power_status.value,
        }
        if self.has_master_key is not None:
            data["hasMasterKey"] = self.has_master_key
        return data
