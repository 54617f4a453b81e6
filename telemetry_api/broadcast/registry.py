"""Registro de suscriptores en tiempo real."""

from __future__ import annotations

import logging
import threading
from typing import List, Protocol

from ..core.monitoring.metrics import SUBSCRIBERS

logger = logging.getLogger(__name__)


class Subscriber(Protocol):
    """A connected observer.

    ``send`` must not block: implementations hand the message to their
    transport and return.
    """

    @property
    def subscriber_id(self) -> str:
        ...

    @property
    def is_open(self) -> bool:
        ...

    def send(self, message: str) -> None:
        ...


class SubscriberRegistry:
    """Conjunto de suscriptores conectados.

    Explicitly constructed and injected; the websocket endpoint adds and
    removes entries, the dispatcher iterates over snapshots.
    """

    def __init__(self):
        self._subscribers: dict = {}
        self._lock = threading.Lock()

    def add(self, subscriber: Subscriber) -> None:
        with self._lock:
            self._subscribers[subscriber.subscriber_id] = subscriber
            count = len(self._subscribers)
        SUBSCRIBERS.set(count)
        logger.info("[FANOUT] Subscriber %s connected (total=%d)", subscriber.subscriber_id, count)

    def remove(self, subscriber: Subscriber) -> None:
        with self._lock:
            removed = self._subscribers.pop(subscriber.subscriber_id, None)
            count = len(self._subscribers)
        if removed is not None:
            SUBSCRIBERS.set(count)
            logger.info("[FANOUT] Subscriber %s disconnected (total=%d)", subscriber.subscriber_id, count)

    def snapshot(self) -> List[Subscriber]:
        with self._lock:
            return list(self._subscribers.values())

    def clear(self) -> None:
        with self._lock:
            self._subscribers.clear()
        SUBSCRIBERS.set(0)

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)
