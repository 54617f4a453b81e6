"""Pipeline layer - Procesamiento de mensajes."""

from .processor import DROPPED, IGNORED, PROCESSED, TelemetryProcessor
from .async_processor import IngestWorkerPool

__all__ = ["TelemetryProcessor", "IngestWorkerPool", "PROCESSED", "DROPPED", "IGNORED"]
