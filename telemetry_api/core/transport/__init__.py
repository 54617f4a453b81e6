"""Transport layer - Ingress MQTT (remoto y local)."""

from .local_broker import LocalBroker
from .message_handler import MessageHandler
from .mqtt_client import MQTTClient

__all__ = ["LocalBroker", "MessageHandler", "MQTTClient"]
