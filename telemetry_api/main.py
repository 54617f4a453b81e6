"""FastAPI application: read API, WebSocket fan-out and ingress lifecycle."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from common.config import Settings, get_settings

from .broadcast.dispatcher import FanoutDispatcher
from .broadcast.redis_mirror import (
    RedisBroadcastMirror,
    RedisBroadcastRelay,
    RedisConnection,
    new_origin_id,
)
from .broadcast.registry import SubscriberRegistry
from .core.errors import PersistenceFailure
from .core.receiver import TelemetryReceiver
from .endpoints import health_router, rooms_router
from .infrastructure.persistence import build_gateway, seed_rooms
from .infrastructure.persistence.repositories import PersistenceGateway
from .transports.websocket.handler import websocket_endpoint

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    gateway: Optional[PersistenceGateway] = None,
    registry: Optional[SubscriberRegistry] = None,
    start_ingress: bool = True,
) -> FastAPI:
    """Construye la aplicación.

    Todo se crea aquí y se cuelga de ``app.state``; no hay singletons de
    módulo. ``start_ingress=False`` deja el receptor sin arrancar (tests,
    procesos que solo sirven la API).
    """
    settings = settings or get_settings()
    if gateway is None:
        gateway = build_gateway(settings)
    if registry is None:
        registry = SubscriberRegistry()

    redis_conn = RedisConnection(settings.redis_url) if settings.redis_url else None
    origin = new_origin_id()
    mirror = RedisBroadcastMirror(redis_conn, origin) if redis_conn else None
    dispatcher = FanoutDispatcher(registry, mirror)
    relay = RedisBroadcastRelay(redis_conn, dispatcher.deliver, origin) if redis_conn else None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.seed_rooms:
            try:
                seeded = seed_rooms(gateway.rooms)
                logger.info("[STARTUP] Seeded %d rooms", seeded)
            except PersistenceFailure as e:
                logger.error("[STARTUP] Room seeding failed: %s", e)

        if redis_conn is not None and redis_conn.connect():
            relay.start()

        receiver = TelemetryReceiver(settings, gateway, dispatcher, redis_conn)
        app.state.receiver = receiver
        if start_ingress:
            receiver.start()

        try:
            yield
        finally:
            receiver.stop()
            registry.clear()
            if relay is not None:
                relay.stop()
            if redis_conn is not None:
                redis_conn.disconnect()

    app = FastAPI(title="Room Telemetry Service", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.gateway = gateway
    app.state.registry = registry
    app.state.dispatcher = dispatcher
    app.state.relay = relay
    app.state.receiver = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        allow_credentials=True,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "[HTTP] %s %s -> %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
        )
        return response

    app.include_router(health_router)
    app.include_router(rooms_router)

    @app.websocket("/ws")
    async def ws(websocket: WebSocket):
        await websocket_endpoint(websocket, registry)

    @app.websocket("/")
    async def ws_root(websocket: WebSocket):
        await websocket_endpoint(websocket, registry)

    return app
