"""Cliente MQTT para recepción de telemetría."""

from __future__ import annotations

import logging
import ssl
import time
from datetime import datetime, timezone
from typing import Callable, Optional

import paho.mqtt.client as mqtt

from common.config import BrokerEndpoint

from ..domain.event import RawTelemetryMessage
from ..errors import TransportFailure

logger = logging.getLogger(__name__)

MessageSink = Callable[[RawTelemetryMessage], object]


class MQTTClient:
    """Cliente MQTT ligero de un ingress.

    Responsabilidades:
    - Conexión/desconexión a broker MQTT
    - Suscripción al topic de telemetría (re-suscribe en cada reconexión)
    - Entrega de cada mensaje como ``RawTelemetryMessage`` al sink

    paho reconnects on its own with a fixed ``reconnect_seconds`` delay.
    """

    def __init__(
        self,
        ingress: str,
        endpoint: BrokerEndpoint,
        topic: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        reconnect_seconds: int = 1,
        client_id: str = "telemetry",
    ):
        self.ingress = ingress
        self.endpoint = endpoint
        self.topic = topic
        self.username = username
        self.password = password
        self.reconnect_seconds = max(1, reconnect_seconds)
        self.client_id = f"{client_id}-{ingress}-{int(time.time())}"

        self._client: Optional[mqtt.Client] = None
        self._connected = False
        self._sink: Optional[MessageSink] = None

    def set_message_sink(self, sink: MessageSink):
        """Configura el destino de los mensajes."""
        self._sink = sink

    def connect(self) -> None:
        """Arranca la conexión en background.

        Raises:
            TransportFailure: si paho rechaza la configuración o el host.
        """
        self._client = mqtt.Client(
            client_id=self.client_id,
            protocol=mqtt.MQTTv311,
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        )
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_message = self._on_message
        self._client.reconnect_delay_set(
            min_delay=self.reconnect_seconds, max_delay=self.reconnect_seconds
        )

        if self.username and self.password:
            self._client.username_pw_set(self.username, self.password)
        if self.endpoint.use_tls:
            self._client.tls_set(cert_reqs=ssl.CERT_REQUIRED)

        logger.info("[MQTT:%s] Connecting to %s", self.ingress, self.endpoint.display)
        try:
            self._client.connect_async(self.endpoint.host, self.endpoint.port, keepalive=60)
            self._client.loop_start()
        except (OSError, ValueError) as e:
            raise TransportFailure(self.ingress, self.endpoint.display, e) from e

    def disconnect(self):
        """Desconecta del broker."""
        if self._client:
            try:
                self._client.disconnect()
                self._client.loop_stop()
            except Exception as e:
                logger.warning("[MQTT:%s] Disconnect error: %s", self.ingress, e)
        self._connected = False

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        """Callback de conexión."""
        if reason_code == 0:
            self._connected = True
            logger.info("[MQTT:%s] Connected to %s", self.ingress, self.endpoint.display)
            client.subscribe(self.topic, qos=0)
            logger.info("[MQTT:%s] Subscribed to %s", self.ingress, self.topic)
        else:
            self._connected = False
            logger.error("[MQTT:%s] Connection failed: %s", self.ingress, reason_code)

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        """Callback de desconexión."""
        self._connected = False
        logger.warning(
            "[MQTT:%s] Disconnected (%s), reconnecting in %ds",
            self.ingress, reason_code, self.reconnect_seconds,
        )

    def _on_message(self, client, userdata, msg):
        """Callback de mensaje - delega al sink."""
        if self._sink is None:
            return
        self._sink(self.to_message(msg.topic, msg.payload))

    def to_message(self, topic: str, payload: bytes) -> RawTelemetryMessage:
        return RawTelemetryMessage(
            topic=topic,
            payload=bytes(payload),
            ingress=self.ingress,
            received_at=datetime.now(timezone.utc),
        )

    @property
    def is_connected(self) -> bool:
        return self._connected
