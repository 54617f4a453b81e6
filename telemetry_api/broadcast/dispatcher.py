"""Fan-out dispatcher.

Pushes ``{"event": channel, "data": payload}`` to every open subscriber.
No buffering, no acknowledgment, no replay: a subscriber that is not open
at publish time misses the update for good.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

import orjson

from ..core.monitoring.metrics import BROADCASTS
from .registry import SubscriberRegistry

logger = logging.getLogger(__name__)

ROOM_UPDATE = "roomUpdate"
ACTIVITY_UPDATE = "activityUpdate"


def channel_name(kind: str, hotel_id: str) -> str:
    return f"{kind}:{hotel_id}"


def encode_envelope(channel: str, payload: Any) -> str:
    return orjson.dumps({"event": channel, "data": payload}, default=str).decode("utf-8")


class BroadcastMirror(Protocol):
    """Segundo destino de los envelopes (p.ej. Redis pub/sub)."""

    def publish(self, channel: str, message: str) -> bool:
        ...


class FanoutDispatcher:
    """Entrega best-effort a los suscriptores conectados.

    Responsabilidades:
    - Serializar el envelope una sola vez por publish
    - Saltar suscriptores cerrados
    - Retirar del registro a los que fallan al enviar
    - Replicar al mirror (opcional) sin bloquear la entrega local
    """

    def __init__(
        self,
        registry: SubscriberRegistry,
        mirror: Optional[BroadcastMirror] = None,
    ):
        self._registry = registry
        self._mirror = mirror
        self._published = 0

    def publish(self, channel: str, payload: Any) -> int:
        """Envía ``payload`` a todos los suscriptores abiertos.

        Returns:
            Número de suscriptores a los que se entregó el mensaje.
        """
        message = encode_envelope(channel, payload)
        delivered = self.deliver(channel, message)

        if self._mirror is not None:
            try:
                self._mirror.publish(channel, message)
            except Exception as e:
                logger.warning("[FANOUT] Mirror publish failed on %s: %s", channel, e)

        return delivered

    def deliver(self, channel: str, message: str) -> int:
        """Entrega local de un envelope ya serializado, sin pasar por el mirror."""
        delivered = 0

        for subscriber in self._registry.snapshot():
            if not subscriber.is_open:
                continue
            try:
                subscriber.send(message)
                delivered += 1
            except Exception as e:
                logger.warning(
                    "[FANOUT] Dropping subscriber %s: %s",
                    subscriber.subscriber_id,
                    e,
                )
                self._registry.remove(subscriber)

        self._published += 1
        BROADCASTS.labels(kind=channel.split(":", 1)[0]).inc()
        logger.debug("[FANOUT] %s delivered to %d subscribers", channel, delivered)
        return delivered

    def room_update(self, hotel_id: str, data: dict) -> int:
        return self.publish(channel_name(ROOM_UPDATE, hotel_id), data)

    def activity_update(self, hotel_id: str, data: dict) -> int:
        return self.publish(channel_name(ACTIVITY_UPDATE, hotel_id), data)

    @property
    def published(self) -> int:
        return self._published

    @property
    def subscriber_count(self) -> int:
        return len(self._registry)
