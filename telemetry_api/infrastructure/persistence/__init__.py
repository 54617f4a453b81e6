"""Persistence layer - Gateway de persistencia y sus implementaciones."""

from __future__ import annotations

import logging
from typing import Optional

from common.config import Settings
from common.db import get_engine

from .memory import build_memory_gateway
from .repositories import (
    ActivityRepository,
    AttendanceRepository,
    DenialRepository,
    DeviceRepository,
    PersistenceGateway,
    PresenceRepository,
    RoomRepository,
)
from .seed import seed_rooms
from .sql import build_sql_gateway

logger = logging.getLogger(__name__)

MEMORY_URL = "memory://"


def build_gateway(settings: Settings, url: Optional[str] = None) -> PersistenceGateway:
    """Gateway según ``DATABASE_URL``: ``memory://`` o cualquier URL SQLAlchemy."""
    url = url or settings.database_url
    if url.startswith(MEMORY_URL):
        logger.warning("[PERSISTENCE] Using in-memory store, data is lost on restart")
        return build_memory_gateway()
    return build_sql_gateway(get_engine(url=url))


__all__ = [
    "ActivityRepository",
    "AttendanceRepository",
    "DenialRepository",
    "DeviceRepository",
    "PersistenceGateway",
    "PresenceRepository",
    "RoomRepository",
    "build_gateway",
    "build_memory_gateway",
    "build_sql_gateway",
    "seed_rooms",
]
