"""Handler de mensajes MQTT."""

from __future__ import annotations

import logging
import time

from ..domain.event import RawTelemetryMessage
from ..monitoring.metrics import MESSAGES, PROCESSING_LATENCY
from ..monitoring.stats import Stats
from ..pipeline.processor import TelemetryProcessor

logger = logging.getLogger(__name__)

FAILED = "failed"
STATS_LOG_EVERY = 10


class MessageHandler:
    """Borde de captura de errores de cada mensaje.

    Responsabilidades:
    - Delegación al procesador
    - Tracking de estadísticas y métricas
    - Ningún error escapa al transporte
    """

    def __init__(self, processor: TelemetryProcessor, stats: Stats):
        self._processor = processor
        self._stats = stats

    def handle(self, message: RawTelemetryMessage) -> str:
        """Procesa un mensaje. Devuelve el outcome."""
        self._stats.mark_received(message.ingress)
        started = time.perf_counter()

        try:
            outcome = self._processor.process(message)
        except Exception as e:
            logger.exception("[HANDLER] Error processing %s: %s", message.topic, e)
            outcome = FAILED
        finally:
            PROCESSING_LATENCY.observe(time.perf_counter() - started)

        self._stats.mark(outcome)
        MESSAGES.labels(ingress=message.ingress, outcome=outcome).inc()

        # Log periódico
        if self._stats.received % STATS_LOG_EVERY == 0:
            logger.info("[HANDLER] %s", self._stats)
        return outcome

    @property
    def stats(self) -> Stats:
        return self._stats
