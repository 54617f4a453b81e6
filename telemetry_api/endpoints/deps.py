"""Dependencias compartidas por los routers."""

from __future__ import annotations

import logging
import re
from typing import Optional

from fastapi import Depends, HTTPException, Request

from ..core.receiver import TelemetryReceiver
from ..infrastructure.persistence.repositories import PersistenceGateway

logger = logging.getLogger(__name__)

HOTEL_ID_PATTERN = re.compile(r"^[1-8]$")


def get_gateway(request: Request) -> PersistenceGateway:
    return request.app.state.gateway


def get_receiver(request: Request) -> Optional[TelemetryReceiver]:
    return getattr(request.app.state, "receiver", None)


def valid_hotel_id(hotel_id: str) -> str:
    if not HOTEL_ID_PATTERN.match(hotel_id):
        raise HTTPException(status_code=400, detail="Invalid hotel ID")
    return hotel_id


def available_gateway(gateway: PersistenceGateway = Depends(get_gateway)) -> PersistenceGateway:
    """Gateway con el store alcanzable; 503 si no responde."""
    if not gateway.ping():
        logger.warning("[API] Persistence store not reachable")
        raise HTTPException(status_code=503, detail="Database not connected")
    return gateway
