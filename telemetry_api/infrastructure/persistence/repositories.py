"""Repository interfaces consumed by the pipeline.

The pipeline only depends on these protocols; ``sql.py`` and ``memory.py``
provide the concrete stores. Every write raises ``PersistenceFailure``
when the store rejects it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Protocol

from ...core.domain.location import LocationKey
from ...core.domain.records import (
    ActivityLogEntry,
    AttendanceRecord,
    DenialLogEntry,
    DeviceRecord,
    PresenceRecord,
)
from ...core.domain.room_state import RoomState, RoomUpdate


class RoomRepository(Protocol):
    """Upsert keyed by ``(hotel_id, number)``."""

    def get(self, hotel_id: str, number: str) -> Optional[RoomState]:
        ...

    def apply_update(self, location: LocationKey, update: RoomUpdate) -> None:
        """Writes only the fields present in ``update``; creates the room if missing."""
        ...

    def upsert(self, state: RoomState) -> None:
        """Replaces the full room record."""
        ...

    def list_by_hotel(self, hotel_id: str) -> List[RoomState]:
        ...


class DeviceRepository(Protocol):
    """Upsert keyed by ``device_id``."""

    def upsert(self, record: DeviceRecord) -> None:
        ...

    def list_by_hotel(self, hotel_id: str) -> List[dict]:
        ...


class PresenceRepository(Protocol):
    """Upsert keyed by ``(hotel_id, card_uid, room)``."""

    def upsert(self, record: PresenceRecord) -> None:
        ...

    def get(self, hotel_id: str, card_uid: str, room: str) -> Optional[dict]:
        ...


class ActivityRepository(Protocol):
    """Append-only."""

    def append(self, entry: ActivityLogEntry) -> dict:
        """Returns the stored entry as it is broadcast."""
        ...

    def recent(self, hotel_id: str, limit: int = 100) -> List[dict]:
        ...


class AttendanceRepository(Protocol):
    """Append-only."""

    def append(self, record: AttendanceRecord) -> None:
        ...

    def recent(self, hotel_id: str, limit: int = 100) -> List[dict]:
        ...


class DenialRepository(Protocol):
    """Append-only; payload stored verbatim."""

    def append(self, entry: DenialLogEntry) -> None:
        ...

    def recent(self, hotel_id: str, limit: int = 100) -> List[dict]:
        ...


class HealthProbe(Protocol):
    def ping(self) -> bool:
        ...


@dataclass
class PersistenceGateway:
    """Bundle of the per-entity repositories handed to the pipeline."""
    rooms: RoomRepository
    devices: DeviceRepository
    presences: PresenceRepository
    activities: ActivityRepository
    attendances: AttendanceRepository
    denials: DenialRepository
    probe: Optional[HealthProbe] = None

    def ping(self) -> bool:
        return self.probe.ping() if self.probe is not None else True
