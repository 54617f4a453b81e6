"""Receptor de telemetría - composición de ambos ingress.

Usa la arquitectura modular:
- transport/   → Clientes MQTT y broker embebido
- routing/     → Decodificación de topics
- adapters/    → Payload → CanonicalEvent
- engine/      → Transiciones de habitación
- pipeline/    → Procesamiento compartido + cola de workers
- monitoring/  → Stats y health
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

from common.config import Settings

from ..broadcast.dispatcher import FanoutDispatcher
from ..broadcast.redis_mirror import RedisConnection
from ..infrastructure.persistence.repositories import PersistenceGateway
from .adapters.event_normalizer import EventNormalizer
from .errors import TransportFailure
from .monitoring.health import HealthMonitor
from .monitoring.stats import Stats
from .pipeline.async_processor import IngestWorkerPool
from .pipeline.processor import TelemetryProcessor
from .transport.local_broker import LocalBroker
from .transport.message_handler import MessageHandler
from .transport.mqtt_client import MQTTClient

logger = logging.getLogger(__name__)

REMOTE = "remote"
LOCAL = "local"


class TelemetryReceiver:
    """Receptor MQTT con arquitectura modular.

    Componentes:
    - MQTTClient (remote): broker de producción, detrás de
      ``FF_REMOTE_INGEST_ENABLED``
    - LocalBroker + MQTTClient (local): solo en modo development
    - MessageHandler: borde de errores y stats
    - TelemetryProcessor: pipeline compartido
    - IngestWorkerPool: cola + workers entre paho y el pipeline

    Each ingress connects independently: one failing to start is logged
    and the other keeps running.
    """

    def __init__(
        self,
        settings: Settings,
        gateway: PersistenceGateway,
        dispatcher: FanoutDispatcher,
        redis_conn: Optional[RedisConnection] = None,
    ):
        self._settings = settings
        self._gateway = gateway
        self._dispatcher = dispatcher
        self._redis = redis_conn

        self._stats = Stats()
        self._handler: Optional[MessageHandler] = None
        self._queue: Optional[IngestWorkerPool] = None
        self._clients: Dict[str, MQTTClient] = {}
        self._local_broker: Optional[LocalBroker] = None
        self._health = HealthMonitor(gateway, redis_conn)
        self._running = False

    def start(self) -> bool:
        """Inicia el pipeline y los ingress configurados.

        Returns:
            True si al menos un ingress arrancó.
        """
        if self._running:
            return True
        settings = self._settings

        # 1. Pipeline
        processor = TelemetryProcessor(
            self._gateway,
            self._dispatcher,
            normalizer=EventNormalizer(),
            stats=self._stats,
        )
        self._handler = MessageHandler(processor, self._stats)
        self._queue = IngestWorkerPool(
            self._handler.handle,
            max_queue_size=settings.ingest_queue_size,
            workers=settings.ingest_workers,
        )
        self._queue.start()

        # 2. Ingress remoto
        if settings.remote_ingest_enabled:
            self._start_client(MQTTClient(
                ingress=REMOTE,
                endpoint=settings.broker,
                topic=settings.mqtt_topic,
                username=settings.mqtt_username,
                password=settings.mqtt_password,
                reconnect_seconds=settings.reconnect_seconds,
            ))
        else:
            logger.info("[RECEIVER] Remote ingest disabled by FF_REMOTE_INGEST_ENABLED")

        # 3. Ingress local (solo development)
        if settings.is_development:
            self._start_local()

        self._running = bool(self._clients)
        if self._running:
            logger.info("[RECEIVER] Started ingress=%s", ",".join(sorted(self._clients)))
        else:
            logger.error("[RECEIVER] No ingress started")
        return self._running

    def _start_local(self) -> None:
        settings = self._settings
        broker = LocalBroker(settings.local_broker_host, settings.local_broker_port)
        try:
            broker.start()
        except TransportFailure as e:
            logger.error("[RECEIVER] %s", e)
            return
        self._local_broker = broker
        self._start_client(MQTTClient(
            ingress=LOCAL,
            endpoint=broker.endpoint,
            topic=settings.mqtt_topic,
            reconnect_seconds=settings.reconnect_seconds,
        ))

    def _start_client(self, client: MQTTClient) -> None:
        client.set_message_sink(self._queue.offer)
        try:
            client.connect()
        except TransportFailure as e:
            logger.error("[RECEIVER] %s", e)
            return
        self._clients[client.ingress] = client

    def stop(self):
        """Detiene los ingress y drena la cola."""
        for client in self._clients.values():
            client.disconnect()
        self._clients.clear()

        if self._local_broker is not None:
            self._local_broker.stop()
            self._local_broker = None

        if self._queue is not None:
            self._queue.stop(drain=True)

        self._running = False
        logger.info("[RECEIVER] Stopped. %s", self._stats)

    def submit(self, message) -> bool:
        """Encola un mensaje como si hubiese llegado por un ingress."""
        if self._queue is None:
            return False
        return self._queue.offer(message)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def ingress_status(self) -> Dict[str, bool]:
        return {name: client.is_connected for name, client in self._clients.items()}

    @property
    def stats(self) -> dict:
        """Estadísticas del receptor."""
        return {
            "running": self._running,
            "ingress": self.ingress_status,
            "local_broker": self._local_broker.is_running if self._local_broker else False,
            "redis_connected": self._redis.is_connected if self._redis else False,
            "subscribers": self._dispatcher.subscriber_count,
            "broadcasts": self._dispatcher.published,
            "queue": self._queue.snapshot() if self._queue else {},
            **self._stats.to_dict(),
        }

    def health_check(self) -> dict:
        """Health check del receptor."""
        if not self._running:
            return {"healthy": False, "reason": "Not initialized"}

        return self._health.report(
            self.ingress_status,
            subscribers=self._dispatcher.subscriber_count,
            processed=self._stats.processed,
            failed=self._stats.failed,
        ).to_dict()
