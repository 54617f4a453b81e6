"""Broker MQTT embebido para desarrollo.

Runs an amqtt broker on its own asyncio loop in a background thread so
local publishers (a reader on the bench, ``mosquitto_pub``) can reach the
pipeline without a remote broker. The local ingress subscribes to it
with a regular :class:`MQTTClient`, so both ingress paths deliver the
same ``RawTelemetryMessage`` to the same handler.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Optional

from amqtt.broker import Broker

from common.config import BrokerEndpoint

from ..errors import TransportFailure

logger = logging.getLogger(__name__)

START_TIMEOUT_SECONDS = 10.0
LOOPBACK = "127.0.0.1"


def broker_config(host: str, port: int) -> dict:
    """Configuración amqtt: un listener TCP, acceso anónimo."""
    return {
        "listeners": {
            "default": {"type": "tcp", "bind": f"{host}:{port}"},
        },
        "sys_interval": 0,
        "auth": {"allow-anonymous": True, "plugins": ["auth_anonymous"]},
        "topic-check": {"enabled": False},
    }


class LocalBroker:
    """Broker embebido.

    Responsabilidades:
    - Arrancar/parar el broker en un thread dedicado
    - Exponer el endpoint al que se conecta el ingress local
    """

    def __init__(self, host: str = LOOPBACK, port: int = 1883):
        self.host = host
        self.port = port

        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stopping: Optional[asyncio.Event] = None
        self._ready = threading.Event()
        self._error: Optional[BaseException] = None

    @property
    def endpoint(self) -> BrokerEndpoint:
        # 0.0.0.0 binds every interface; clients still dial loopback.
        host = LOOPBACK if self.host in ("0.0.0.0", "") else self.host
        return BrokerEndpoint(host=host, port=self.port)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and self._error is None

    def start(self) -> None:
        """Arranca el broker y espera a que acepte conexiones.

        Raises:
            TransportFailure: si el listener no pudo abrirse.
        """
        if self.is_running:
            return
        self._ready.clear()
        self._error = None
        self._thread = threading.Thread(target=self._run, daemon=True, name="local-broker")
        self._thread.start()

        if not self._ready.wait(START_TIMEOUT_SECONDS):
            raise TransportFailure("local", f"{self.host}:{self.port}", TimeoutError("broker start timed out"))
        if self._error is not None:
            raise TransportFailure("local", f"{self.host}:{self.port}", self._error)
        logger.info("[LOCAL_BROKER] Local broker listening on %s:%d", self.host, self.port)

    def stop(self) -> None:
        """Detiene el broker."""
        if self._loop is not None and self._stopping is not None:
            self._loop.call_soon_threadsafe(self._stopping.set)
        if self._thread is not None:
            self._thread.join(timeout=5.0)
        self._thread = None
        logger.info("[LOCAL_BROKER] Local broker stopped")

    def _run(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        try:
            loop.run_until_complete(self._serve())
        except Exception as e:
            logger.exception("[LOCAL_BROKER] Local broker failed: %s", e)
            self._error = e
            self._ready.set()
        finally:
            loop.close()
            self._loop = None

    async def _serve(self) -> None:
        broker = Broker(broker_config(self.host, self.port))
        await broker.start()
        self._stopping = asyncio.Event()
        self._ready.set()
        try:
            await self._stopping.wait()
        finally:
            await broker.shutdown()
