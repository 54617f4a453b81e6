"""In-memory store.

Same contract as the SQL store, held in process dictionaries behind one
lock. Used by the test-suite and by ``DATABASE_URL=memory://`` for local
runs without a database.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from ...core.domain.location import LocationKey
from ...core.domain.records import (
    ActivityLogEntry,
    AttendanceRecord,
    DenialLogEntry,
    DeviceRecord,
    PresenceRecord,
)
from ...core.domain.room_state import RoomState, RoomUpdate
from .repositories import PersistenceGateway


class _Store:
    def __init__(self):
        self.lock = threading.Lock()


class MemoryRoomRepository(_Store):
    def __init__(self):
        super().__init__()
        self.rows: Dict[Tuple[str, str], RoomState] = {}

    def get(self, hotel_id: str, number: str) -> Optional[RoomState]:
        with self.lock:
            return self.rows.get((hotel_id, number))

    def apply_update(self, location: LocationKey, update: RoomUpdate) -> None:
        key = location.room_key
        with self.lock:
            current = self.rows.get(key) or RoomState.for_location(location)
            self.rows[key] = current.apply(update)

    def upsert(self, state: RoomState) -> None:
        with self.lock:
            self.rows[(state.hotel_id, state.number)] = state

    def list_by_hotel(self, hotel_id: str) -> List[RoomState]:
        with self.lock:
            found = [s for (h, _), s in self.rows.items() if h == hotel_id]
        return sorted(found, key=lambda s: s.number)


class MemoryDeviceRepository(_Store):
    def __init__(self):
        super().__init__()
        self.rows: Dict[str, DeviceRecord] = {}

    def upsert(self, record: DeviceRecord) -> None:
        with self.lock:
            self.rows[record.device_id] = record

    def list_by_hotel(self, hotel_id: str) -> List[dict]:
        with self.lock:
            found = [r for r in self.rows.values() if r.location.hotel_id == hotel_id]
        return [r.to_dict() for r in sorted(found, key=lambda r: r.device_id)]


class MemoryPresenceRepository(_Store):
    def __init__(self):
        super().__init__()
        self.rows: Dict[Tuple[str, str, str], PresenceRecord] = {}

    def upsert(self, record: PresenceRecord) -> None:
        with self.lock:
            self.rows[record.key] = record

    def get(self, hotel_id: str, card_uid: str, room: str) -> Optional[dict]:
        with self.lock:
            record = self.rows.get((hotel_id, card_uid, room))
        return record.to_dict() if record else None


class MemoryActivityRepository(_Store):
    def __init__(self):
        super().__init__()
        self.rows: List[dict] = []

    def append(self, entry: ActivityLogEntry) -> dict:
        stored = {**entry.to_dict(), "createdAt": datetime.now(timezone.utc).isoformat()}
        with self.lock:
            self.rows.append(stored)
        return stored

    def recent(self, hotel_id: str, limit: int = 100) -> List[dict]:
        with self.lock:
            found = [r for r in self.rows if r["hotelId"] == hotel_id]
        return list(reversed(found))[:limit]


class MemoryAttendanceRepository(_Store):
    def __init__(self):
        super().__init__()
        self.rows: List[dict] = []

    def append(self, record: AttendanceRecord) -> None:
        with self.lock:
            self.rows.append(record.to_dict())

    def recent(self, hotel_id: str, limit: int = 100) -> List[dict]:
        with self.lock:
            found = [r for r in self.rows if r["hotelId"] == hotel_id]
        return list(reversed(found))[:limit]


class MemoryDenialRepository(_Store):
    def __init__(self):
        super().__init__()
        self.rows: List[dict] = []

    def append(self, entry: DenialLogEntry) -> None:
        with self.lock:
            self.rows.append(entry.to_dict())

    def recent(self, hotel_id: str, limit: int = 100) -> List[dict]:
        with self.lock:
            found = [r for r in self.rows if r["hotelId"] == hotel_id]
        return list(reversed(found))[:limit]


def build_memory_gateway() -> PersistenceGateway:
    return PersistenceGateway(
        rooms=MemoryRoomRepository(),
        devices=MemoryDeviceRepository(),
        presences=MemoryPresenceRepository(),
        activities=MemoryActivityRepository(),
        attendances=MemoryAttendanceRepository(),
        denials=MemoryDenialRepository(),
    )
