"""Seed de habitaciones vacantes por hotel."""

from __future__ import annotations

import logging
import math
from typing import Dict, Iterable, List

from ...core.domain.room_state import RoomState
from .repositories import RoomRepository

logger = logging.getLogger(__name__)

HOTEL_IDS = tuple(str(i) for i in range(1, 9))

ROOM_COUNTS: Dict[str, int] = {
    "1": 25,  # Ooty
    "2": 30,  # Salem
    "3": 20,  # Yercaud
    "4": 28,  # Puducherry
    "5": 22,  # Namakkal
    "6": 30,  # Chennai
    "7": 30,  # Bangalore
    "8": 18,  # Kotagiri
}
DEFAULT_ROOM_COUNT = 20


def room_count_for_hotel(hotel_id: str) -> int:
    return ROOM_COUNTS.get(hotel_id, DEFAULT_ROOM_COUNT)


def room_numbers(room_count: int) -> List[str]:
    """Half the rooms (rounded up) on the first floor from 101, the rest from 201."""
    first_floor = math.ceil(room_count / 2)
    numbers = [str(101 + i) for i in range(first_floor)]
    numbers += [str(201 + i) for i in range(room_count - first_floor)]
    return numbers


def seed_rooms(rooms: RoomRepository, hotel_ids: Iterable[str] = HOTEL_IDS) -> int:
    """Upserts every seeded room as vacant. Returns the number of rooms written."""
    hotel_ids = tuple(hotel_ids)
    written = 0
    for hotel_id in hotel_ids:
        for number in room_numbers(room_count_for_hotel(hotel_id)):
            rooms.upsert(RoomState.vacant(hotel_id, number))
            written += 1
    logger.info("[SEED] Rooms initialized for %d hotels (%d rooms)", len(hotel_ids), written)
    return written
