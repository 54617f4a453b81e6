"""Pipeline de telemetría compartido por ambos ingress.

Router → Normalizer → Engine → Persistencia → Fan-out

Local and remote ingress call :meth:`TelemetryProcessor.process` with
the same ``RawTelemetryMessage`` shape; there is no per-ingress branch
below this point.

Concurrent messages for the same room are not serialized: their writes
interleave and the last one to complete wins.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Tuple

from ..adapters.event_normalizer import EventNormalizer, parse_payload
from ..domain.enums import EventType
from ..domain.event import CanonicalEvent, RawTelemetryMessage
from ..domain.location import LocationKey
from ..domain.records import ActivityLogEntry
from ..domain.room_state import RoomState
from ..engine.room_state_engine import IdFactory, new_activity_id, transition
from ..engine.trackers import attendance_record, device_record, presence_record
from ..errors import MalformedPayload, MalformedTopic, PersistenceFailure
from ..monitoring.metrics import PERSISTENCE_FAILURES
from ..monitoring.stats import Stats
from ..routing.topic_router import is_routable, parse_topic
from ...broadcast.dispatcher import FanoutDispatcher
from ...infrastructure.persistence.repositories import PersistenceGateway

logger = logging.getLogger(__name__)

PROCESSED = "processed"
DROPPED = "dropped"
IGNORED = "ignored"


class TelemetryProcessor:
    """Procesa un mensaje de principio a fin.

    Persistence writes of one event are independent: a failing write is
    logged and the remaining writes still run. A room or activity update
    is only broadcast after its own write succeeded.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        dispatcher: FanoutDispatcher,
        normalizer: Optional[EventNormalizer] = None,
        stats: Optional[Stats] = None,
        id_factory: IdFactory = new_activity_id,
    ):
        self._gateway = gateway
        self._dispatcher = dispatcher
        self._normalizer = normalizer or EventNormalizer()
        self._stats = stats
        self._id_factory = id_factory

    def process(self, message: RawTelemetryMessage) -> str:
        """Ejecuta el pipeline para un mensaje.

        Returns:
            ``processed``, ``dropped`` (topic/payload malformado) o
            ``ignored`` (fuera de ``campus/room/`` o tipo desconocido).
        """
        if not is_routable(message.topic):
            return IGNORED

        try:
            routed = parse_topic(message.topic)
            event_type = EventType.from_topic_segment(routed.event_type)
            if event_type is None:
                logger.info(
                    "[PIPELINE] Ignoring unknown event type %r (topic=%s)",
                    routed.event_type,
                    message.topic,
                )
                return IGNORED

            data = parse_payload(message.payload, message.topic)
            event = self._normalizer.normalize(routed, event_type, data, message)
        except MalformedTopic as e:
            logger.warning("[PIPELINE] Invalid MQTT topic format: %s", e)
            return DROPPED
        except MalformedPayload as e:
            logger.warning("[PIPELINE] Invalid payload: %s", e)
            return DROPPED

        if event.event_type is EventType.ATTENDANCE:
            self._handle_attendance(event)
        else:
            self._handle_denial(event)
        return PROCESSED

    def _handle_attendance(self, event: CanonicalEvent) -> None:
        location = event.location
        gateway = self._gateway

        self._persist("attendances", gateway.attendances.append, attendance_record(event))
        logger.info(
            "[PIPELINE] Saved attendance for room %s in hotel %s (card=%s role=%s)",
            location.room_number,
            location.hotel_id,
            event.card_uid,
            event.role_label,
        )

        self._persist("devices", gateway.devices.upsert, device_record(event))
        self._persist("presences", gateway.presences.upsert, presence_record(event))

        current = self._current_room(location)
        result = transition(current, event, self._id_factory)

        saved, _ = self._persist("rooms", gateway.rooms.apply_update, location, result.update)
        if saved:
            logger.info(
                "[PIPELINE] Room %s hotel %s: %s -> %s",
                location.room_number,
                location.hotel_id,
                current.status.value if current else "unknown",
                result.state.status.value,
            )
            self._broadcast(
                self._dispatcher.room_update,
                location.hotel_id,
                result.update.to_broadcast(location.room_number),
            )

        self._record_activity(result.activity)

    def _handle_denial(self, event: CanonicalEvent) -> None:
        location = event.location
        result = transition(None, event, self._id_factory)

        self._persist("denials", self._gateway.denials.append, result.denial)
        logger.info(
            "[PIPELINE] Saved denied access for room %s in hotel %s (reason=%s)",
            location.room_number,
            location.hotel_id,
            event.payload.get("denial_reason"),
        )

        self._record_activity(result.activity)

    def _record_activity(self, activity: ActivityLogEntry) -> None:
        saved, stored = self._persist("activities", self._gateway.activities.append, activity)
        if saved:
            self._broadcast(self._dispatcher.activity_update, activity.hotel_id, stored)

    def _current_room(self, location: LocationKey) -> Optional[RoomState]:
        saved, state = self._persist("rooms", self._gateway.rooms.get, *location.room_key)
        return state if saved else None

    def _persist(self, collection: str, operation: Callable[..., Any], *args) -> Tuple[bool, Any]:
        """Ejecuta una operación del gateway; loguea y sigue si falla."""
        try:
            return True, operation(*args)
        except PersistenceFailure as e:
            self._persistence_failed(collection, e)
            return False, None
        except Exception as e:
            logger.exception("[PERSISTENCE] Unexpected error on %s", collection)
            self._persistence_failed(collection, PersistenceFailure(collection, e))
            return False, None

    def _persistence_failed(self, collection: str, error: PersistenceFailure) -> None:
        logger.warning("[PERSISTENCE] %s", error)
        PERSISTENCE_FAILURES.labels(collection=collection).inc()
        if self._stats is not None:
            self._stats.mark_persistence_failure()

    @staticmethod
    def _broadcast(publish: Callable[[str, Any], int], hotel_id: str, data: Any) -> None:
        try:
            publish(hotel_id, data)
        except Exception:
            logger.exception("[FANOUT] Broadcast failed for hotel %s", hotel_id)
