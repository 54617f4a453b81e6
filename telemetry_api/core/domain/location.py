"""Identidad física de una habitación."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class LocationKey:
    """Identifies a physical room.

    ``hotel_id`` is taken from the floor segment of the topic: the door
    readers encode the hotel in that position, so ``hotel_id`` and
    ``floor_number`` always carry the same value.
    """
    hotel_id: str
    building: str
    floor_number: str
    room_number: str

    @classmethod
    def from_topic(cls, building: str, floor: str, room_number: str) -> "LocationKey":
        return cls(
            hotel_id=floor,
            building=building,
            floor_number=floor,
            room_number=room_number,
        )

    @property
    def room_key(self) -> tuple[str, str]:
        """Upsert key of the room record."""
        return (self.hotel_id, self.room_number)

    def to_dict(self) -> dict:
        return {
            "hotelId": self.hotel_id,
            "room": self.room_number,
            "building": self.building,
            "floorNumber": self.floor_number,
        }
