"""Read API sobre el estado persistido, por hotel."""

from __future__ import annotations

import logging
from typing import Callable, List, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Query

from ..core.errors import PersistenceFailure
from ..infrastructure.persistence.repositories import PersistenceGateway
from ..schemas import OccupancyOut, RoomOut
from .deps import available_gateway, valid_hotel_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["rooms"])

T = TypeVar("T")

DEFAULT_LIMIT = 100


def _read(read: Callable[[], T]) -> T:
    try:
        return read()
    except PersistenceFailure as e:
        logger.warning("[API] %s", e)
        raise HTTPException(status_code=503, detail="Database not connected")


@router.get("/rooms/{hotel_id}", response_model=List[RoomOut])
def list_rooms(
    hotel_id: str = Depends(valid_hotel_id),
    gateway: PersistenceGateway = Depends(available_gateway),
):
    """Habitaciones del hotel ordenadas por número."""
    rooms = _read(lambda: gateway.rooms.list_by_hotel(hotel_id))
    return [room.to_dict() for room in rooms]


@router.get("/hotels/{hotel_id}/occupancy", response_model=OccupancyOut)
def hotel_occupancy(
    hotel_id: str = Depends(valid_hotel_id),
    gateway: PersistenceGateway = Depends(available_gateway),
):
    """Ocupación = habitaciones occupied o maintenance sobre el total."""
    rooms = _read(lambda: gateway.rooms.list_by_hotel(hotel_id))
    total = len(rooms)
    active = sum(1 for room in rooms if room.status.is_active)
    return OccupancyOut(
        hotelId=hotel_id,
        totalRooms=total,
        activeRooms=active,
        occupancy=round(100 * active / total) if total else 0,
    )


@router.get("/activity/{hotel_id}")
def recent_activity(
    hotel_id: str = Depends(valid_hotel_id),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=1000),
    gateway: PersistenceGateway = Depends(available_gateway),
):
    return _read(lambda: gateway.activities.recent(hotel_id, limit))


@router.get("/attendance/{hotel_id}")
def recent_attendance(
    hotel_id: str = Depends(valid_hotel_id),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=1000),
    gateway: PersistenceGateway = Depends(available_gateway),
):
    return _read(lambda: gateway.attendances.recent(hotel_id, limit))


@router.get("/denied_access/{hotel_id}")
def recent_denials(
    hotel_id: str = Depends(valid_hotel_id),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=1000),
    gateway: PersistenceGateway = Depends(available_gateway),
):
    return _read(lambda: gateway.denials.recent(hotel_id, limit))


@router.get("/devices/{hotel_id}")
def list_devices(
    hotel_id: str = Depends(valid_hotel_id),
    gateway: PersistenceGateway = Depends(available_gateway),
):
    """Registro de lectores del hotel."""
    return _read(lambda: gateway.devices.list_by_hotel(hotel_id))
