"""Motor de estado de habitaciones.

Función pura ``(RoomState actual o None, CanonicalEvent) → Transition``.
No toca persistencia ni broadcast; el processor decide qué hacer con
el resultado.

Reglas (solo eventos ``attendance`` mutan la habitación):

- check_in presente → ``maintenance`` si el rol es Maintenance, si no
  ``occupied``; occupant = rol en minúsculas; power ``on``; Manager
  pone ``has_master_key = True``.
- check_in ausente (checkout) → ``vacant``; sin occupant; power ``off``;
  Manager pone ``has_master_key = False``.
- Cualquier otro rol deja ``has_master_key`` como estaba.

``denied_access`` solo produce el registro de rechazo y una actividad
``security``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from ..domain.enums import ActivityType, EventType, PowerStatus, RoomStatus
from ..domain.event import CanonicalEvent
from ..domain.records import ActivityLogEntry, DenialLogEntry
from ..domain.room_state import RoomState, RoomUpdate

IdFactory = Callable[[], str]


def new_activity_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Transition:
    """Resultado de aplicar un evento.

    Attendance: ``update``/``state`` set, ``denial`` None.
    Denied access: ``denial`` set, ``update``/``state`` None.
    """
    activity: ActivityLogEntry
    update: Optional[RoomUpdate] = None
    state: Optional[RoomState] = None
    denial: Optional[DenialLogEntry] = None

    @property
    def mutates_room(self) -> bool:
        return self.update is not None


def compute_update(event: CanonicalEvent) -> RoomUpdate:
    """Delta de habitación para un evento attendance."""
    if event.is_check_in:
        status = RoomStatus.MAINTENANCE if event.is_maintenance else RoomStatus.OCCUPIED
        return RoomUpdate(
            status=status,
            occupant_type=event.occupant_type,
            power_status=PowerStatus.ON,
            has_master_key=True if event.is_manager else None,
        )

    return RoomUpdate(
        status=RoomStatus.VACANT,
        occupant_type=None,
        power_status=PowerStatus.OFF,
        has_master_key=False if event.is_manager else None,
    )


def transition(
    current: Optional[RoomState],
    event: CanonicalEvent,
    id_factory: IdFactory = new_activity_id,
) -> Transition:
    location = event.location

    if event.event_type is EventType.DENIED_ACCESS:
        reason = event.payload.get("denial_reason")
        return Transition(
            activity=ActivityLogEntry(
                hotel_id=location.hotel_id,
                id=id_factory(),
                type=ActivityType.SECURITY,
                action=f"Denied access to {event.role_label}: {reason} for Room {location.room_number}",
                actor=event.role_label,
                time=_as_time(event.payload.get("attempted_at")),
            ),
            denial=DenialLogEntry(location=location, payload=dict(event.payload)),
        )

    update = compute_update(event)
    base = current if current is not None else RoomState.for_location(location)

    direction = "in" if event.is_check_in else "out"
    activity = ActivityLogEntry(
        hotel_id=location.hotel_id,
        id=id_factory(),
        type=ActivityType.CHECKIN if event.is_check_in else ActivityType.CHECKOUT,
        action=f"{event.role_label} checked {direction} to Room {location.room_number}",
        actor=event.role_label,
        time=event.check_in or event.check_out,
    )
    return Transition(activity=activity, update=update, state=base.apply(update))


def _as_time(value) -> Optional[str]:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)
