"""Estadísticas de procesamiento."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict

OUTCOMES = ("processed", "dropped", "ignored", "failed")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Stats:
    """Estadísticas de procesamiento de mensajes.

    Outcomes: ``processed`` (pipeline completed), ``dropped`` (malformed
    topic or payload), ``ignored`` (outside the routed namespace or
    unknown event type), ``failed`` (unexpected error at the handler
    boundary).
    """

    received: int = 0
    processed: int = 0
    dropped: int = 0
    ignored: int = 0
    failed: int = 0
    persistence_failures: int = 0
    by_ingress: Dict[str, int] = field(default_factory=dict)
    last_message_at: float = 0
    started_at: datetime = field(default_factory=_utcnow)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def __str__(self) -> str:
        return (
            f"Stats: received={self.received} processed={self.processed} "
            f"dropped={self.dropped} ignored={self.ignored} failed={self.failed}"
        )

    def mark_received(self, ingress: str) -> None:
        with self._lock:
            self.received += 1
            self.by_ingress[ingress] = self.by_ingress.get(ingress, 0) + 1
            self.last_message_at = time.time()

    def mark(self, outcome: str) -> None:
        if outcome not in OUTCOMES:
            raise ValueError(f"unknown outcome {outcome!r}")
        with self._lock:
            setattr(self, outcome, getattr(self, outcome) + 1)

    def mark_persistence_failure(self) -> None:
        with self._lock:
            self.persistence_failures += 1

    def to_dict(self) -> dict:
        """Convierte a diccionario."""
        with self._lock:
            return {
                "received": self.received,
                "processed": self.processed,
                "dropped": self.dropped,
                "ignored": self.ignored,
                "failed": self.failed,
                "persistence_failures": self.persistence_failures,
                "by_ingress": dict(self.by_ingress),
                "last_message_at": self.last_message_at,
                "started_at": self.started_at.isoformat(),
                "success_rate": self._success_rate(),
            }

    def _success_rate(self) -> float:
        """Calcula tasa de éxito."""
        total = self.processed + self.dropped + self.failed
        if total == 0:
            return 1.0
        return self.processed / total

    def reset(self):
        """Reinicia estadísticas."""
        with self._lock:
            self.received = 0
            self.processed = 0
            self.dropped = 0
            self.ignored = 0
            self.failed = 0
            self.persistence_failures = 0
            self.by_ingress = {}
            self.last_message_at = 0
            self.started_at = _utcnow()
