"""Taxonomía de errores del pipeline.

Ninguno es fatal para el proceso: todos se capturan en el borde del
handler de mensajes.
"""

from __future__ import annotations

from typing import Optional


class TelemetryError(Exception):
    """Base de los errores del pipeline."""


class MalformedTopic(TelemetryError):
    """Topic sin alguno de los segmentos requeridos."""

    def __init__(self, topic: str, reason: str = "missing floor, room or event type segment"):
        super().__init__(f"{reason}: {topic!r}")
        self.topic = topic
        self.reason = reason


class MalformedPayload(TelemetryError):
    """Cuerpo del mensaje no decodificable o sin los campos mínimos."""

    def __init__(self, reason: str, topic: Optional[str] = None):
        super().__init__(reason if topic is None else f"{reason} (topic={topic})")
        self.reason = reason
        self.topic = topic


class PersistenceFailure(TelemetryError):
    """El gateway de persistencia rechazó una escritura."""

    def __init__(self, collection: str, cause: Optional[BaseException] = None):
        detail = f": {type(cause).__name__}: {cause}" if cause is not None else ""
        super().__init__(f"write to {collection} failed{detail}")
        self.collection = collection
        self.cause = cause


class TransportFailure(TelemetryError):
    """El ingress no pudo conectar con (o perdió) el broker."""

    def __init__(self, ingress: str, endpoint: str, cause: Optional[BaseException] = None):
        super().__init__(f"[{ingress}] broker {endpoint} unavailable: {cause}")
        self.ingress = ingress
        self.endpoint = endpoint
        self.cause = cause
