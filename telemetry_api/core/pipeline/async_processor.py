"""Worker pool between the paho network thread and the pipeline.

``offer()`` only puts the message on a bounded queue, so a slow store never
stalls the MQTT loop. Workers take messages concurrently; there is no
per-room ordering.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass, field, fields
from typing import Callable, List

from ..domain.event import RawTelemetryMessage
from ..monitoring.metrics import QUEUE_DROPPED

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 1000
DEFAULT_NUM_WORKERS = 4

# Una por worker al parar; el worker sale al recibirla.
_SHUTDOWN = object()


@dataclass
class PoolCounters:
    accepted: int = 0
    rejected: int = 0
    handled: int = 0
    crashed: int = 0
    discarded: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def bump(self, name: str) -> None:
        with self._lock:
            setattr(self, name, getattr(self, name) + 1)

    def to_dict(self) -> dict:
        with self._lock:
            return {f.name: getattr(self, f.name) for f in fields(self) if f.compare}


class IngestWorkerPool:
    """Bounded queue drained by ``workers`` daemon threads.

    A full queue rejects the message (counted and logged); the caller
    never blocks.
    """

    def __init__(
        self,
        handle: Callable[[RawTelemetryMessage], object],
        max_queue_size: int = DEFAULT_QUEUE_SIZE,
        workers: int = DEFAULT_NUM_WORKERS,
    ):
        self._handle = handle
        self._inbox: queue.Queue = queue.Queue(maxsize=max_queue_size)
        self._size = max(1, workers)
        self._threads: List[threading.Thread] = []
        self.counters = PoolCounters()

    @property
    def is_running(self) -> bool:
        return any(t.is_alive() for t in self._threads)

    def start(self) -> None:
        if self._threads:
            return
        self._threads = [
            threading.Thread(target=self._run, name=f"telemetry-worker-{n}", daemon=True)
            for n in range(self._size)
        ]
        for thread in self._threads:
            thread.start()
        logger.info("[WORKERS] %d workers up, queue capacity %d", self._size, self._inbox.maxsize)

    def stop(self, drain: bool = True, timeout: float = 5.0) -> None:
        """Stops the workers.

        With ``drain`` the queued messages are handled first; without it
        they are discarded.
        """
        if not self._threads:
            return
        if not drain:
            self._discard_pending()
        for _ in self._threads:
            self._inbox.put(_SHUTDOWN, timeout=timeout)
        for thread in self._threads:
            thread.join(timeout=timeout)
        self._threads = []
        logger.info("[WORKERS] Stopped %s", self.snapshot())

    def offer(self, message: RawTelemetryMessage) -> bool:
        try:
            self._inbox.put_nowait(message)
        except queue.Full:
            self.counters.bump("rejected")
            QUEUE_DROPPED.inc()
            logger.warning(
                "[WORKERS] Queue full, rejected %s from %s ingress",
                message.topic, message.ingress,
            )
            return False
        self.counters.bump("accepted")
        return True

    def snapshot(self) -> dict:
        return {
            **self.counters.to_dict(),
            "queued": self._inbox.qsize(),
            "capacity": self._inbox.maxsize,
            "workers": len(self._threads),
        }

    def _run(self) -> None:
        name = threading.current_thread().name
        for item in iter(self._inbox.get, _SHUTDOWN):
            try:
                self._handle(item)
            except Exception as e:
                self.counters.bump("crashed")
                logger.error("[WORKERS] %s failed on %s: %s", name, item.topic, e)
            else:
                self.counters.bump("handled")

    def _discard_pending(self) -> None:
        while True:
            try:
                self._inbox.get_nowait()
            except queue.Empty:
                return
            self.counters.bump("discarded")
