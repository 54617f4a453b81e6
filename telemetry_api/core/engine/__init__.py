"""Engine layer - Derivación de estado de habitaciones y proyecciones."""

from .room_state_engine import Transition, compute_update, transition
from .trackers import attendance_record, device_record, presence_record

__all__ = [
    "Transition",
    "attendance_record",
    "compute_update",
    "device_record",
    "presence_record",
    "transition",
]
