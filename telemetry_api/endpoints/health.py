"""Health, readiness, stats and metrics endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .deps import get_gateway, get_receiver

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    """Liveness probe, always returns ok if process is running."""
    return {"status": "ok"}


@router.get("/ready")
def ready(gateway=Depends(get_gateway)):
    """Readiness probe: checks the persistence store."""
    if not gateway.ping():
        raise HTTPException(status_code=503, detail="not ready")
    return {"status": "ready"}


@router.get("/stats")
def stats(receiver=Depends(get_receiver)):
    """Estadísticas del receptor y health check combinado."""
    if receiver is None:
        return {"running": False, "health": {"healthy": False, "reason": "Not initialized"}}
    return {**receiver.stats, "health": receiver.health_check()}


@router.get("/metrics")
def metrics():
    """Prometheus exposition."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
