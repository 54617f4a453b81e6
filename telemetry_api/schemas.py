from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class RoomOut(BaseModel):
    hotelId: str
    number: str
    status: str
    occupantType: Optional[str] = None
    hasMasterKey: bool = False
    hasLowPower: bool = False
    powerStatus: str


class OccupancyOut(BaseModel):
    hotelId: str
    totalRooms: int = Field(..., ge=0)
    activeRooms: int = Field(..., ge=0)
    occupancy: int = Field(..., ge=0, le=100)
