"""Réplica de broadcasts entre procesos vía Redis pub/sub.

``RedisBroadcastMirror`` publica cada envelope local; ``RedisBroadcastRelay``
escucha ``{prefix}*`` y entrega a los suscriptores de este proceso los
envelopes publicados por otros procesos. Cada frame lleva el ``origin`` del
proceso que lo publicó, así un proceso nunca re-entrega lo suyo.
"""

from __future__ import annotations

import logging
import threading
import uuid
from typing import Callable, Optional

import orjson
import redis

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL_PREFIX = "telemetry:"


def new_origin_id() -> str:
    return uuid.uuid4().hex


def encode_frame(origin: str, message: str) -> bytes:
    return orjson.dumps({"origin": origin, "envelope": message})


class RedisConnection:
    """Gestiona la conexión a Redis."""

    def __init__(self, url: str):
        self._url = url
        self._client: Optional[redis.Redis] = None
        self._connected = False

    @property
    def client(self) -> Optional[redis.Redis]:
        return self._client

    @property
    def is_connected(self) -> bool:
        return self._connected

    def connect(self) -> bool:
        """Conecta a Redis."""
        try:
            self._client = redis.Redis.from_url(
                self._url,
                decode_responses=False,
                socket_timeout=5.0,
                socket_connect_timeout=5.0,
            )
            self._client.ping()
            self._connected = True
            logger.info("[REDIS] Connected: %s", self._url.split("@")[-1])
            return True
        except redis.RedisError as e:
            self._connected = False
            logger.warning("[REDIS] Connection failed: %s", e)
            return False

    def disconnect(self):
        """Desconecta de Redis."""
        if self._client:
            try:
                self._client.close()
            except redis.RedisError as e:
                logger.debug("[REDIS] Close error: %s", e)
        self._connected = False


class RedisBroadcastMirror:
    """Publica cada envelope en ``{prefix}{channel}``."""

    def __init__(
        self,
        connection: RedisConnection,
        origin: str,
        channel_prefix: str = DEFAULT_CHANNEL_PREFIX,
    ):
        self._conn = connection
        self._origin = origin
        self._prefix = channel_prefix

    def publish(self, channel: str, message: str) -> bool:
        """Publica un envelope ya serializado.

        Returns:
            True si se publicó correctamente
        """
        if not self._conn.is_connected:
            return False

        try:
            receivers = self._conn.client.publish(
                f"{self._prefix}{channel}", encode_frame(self._origin, message)
            )
            logger.debug("[REDIS] Mirrored %s to %d receivers", channel, receivers)
            return True
        except redis.RedisError as e:
            logger.warning("[REDIS] Publish failed: %s", e)
            return False


# Entrega local de un envelope ya serializado: (channel, message) -> entregados
LocalDelivery = Callable[[str, str], int]


class RedisBroadcastRelay:
    """Hilo que re-entrega localmente los envelopes de otros procesos.

    Frames propios (mismo ``origin``) o ilegibles se descartan.
    """

    def __init__(
        self,
        connection: RedisConnection,
        deliver: LocalDelivery,
        origin: str,
        channel_prefix: str = DEFAULT_CHANNEL_PREFIX,
        poll_timeout: float = 1.0,
    ):
        self._conn = connection
        self._deliver = deliver
        self._origin = origin
        self._prefix = channel_prefix
        self._poll_timeout = poll_timeout
        self._pubsub = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._relayed = 0

    @property
    def relayed(self) -> int:
        return self._relayed

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> bool:
        if self.is_running:
            return True
        if not self._conn.is_connected:
            logger.warning("[REDIS] Relay not started: no connection")
            return False

        try:
            self._pubsub = self._conn.client.pubsub(ignore_subscribe_messages=True)
            self._pubsub.psubscribe(f"{self._prefix}*")
        except redis.RedisError as e:
            logger.warning("[REDIS] Relay subscribe failed: %s", e)
            self._pubsub = None
            return False

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._listen, name="redis-relay", daemon=True)
        self._thread.start()
        logger.info("[REDIS] Relay listening on %s*", self._prefix)
        return True

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        if self._pubsub is not None:
            try:
                self._pubsub.close()
            except redis.RedisError as e:
                logger.debug("[REDIS] Relay close error: %s", e)
            self._pubsub = None

    def _listen(self) -> None:
        while not self._stop_event.is_set():
            try:
                item = self._pubsub.get_message(timeout=self._poll_timeout)
            except redis.RedisError as e:
                logger.warning("[REDIS] Relay read failed: %s", e)
                self._stop_event.wait(self._poll_timeout)
                continue
            if item is not None:
                self.handle(item)

    def handle(self, item: dict) -> bool:
        """Entrega un mensaje ``pmessage`` de Redis a los suscriptores locales.

        Returns:
            True si el envelope venía de otro proceso y se entregó.
        """
        if item.get("type") != "pmessage":
            return False

        channel = _text(item.get("channel"))
        if not channel.startswith(self._prefix):
            return False

        try:
            frame = orjson.loads(item.get("data") or b"")
        except orjson.JSONDecodeError:
            logger.debug("[REDIS] Relay skipped unreadable frame on %s", channel)
            return False
        if not isinstance(frame, dict) or not isinstance(frame.get("envelope"), str):
            return False
        if frame.get("origin") == self._origin:
            return False

        self._deliver(channel[len(self._prefix):], frame["envelope"])
        self._relayed += 1
        return True


def _text(value) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value or ""
