"""Router de topics ``campus/room/{building}/{floor}/{room}/{eventType}``."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..errors import MalformedTopic


TOPIC_PREFIX = "campus/room/"
SUBSCRIPTION_PATTERN = "campus/room/+/+/+/+"


@dataclass(frozen=True)
class RoutedTopic:
    building: str
    floor: str
    room_number: str
    event_type: str


def is_routable(topic: str) -> bool:
    """Only the ``campus/room/`` namespace reaches the pipeline."""
    return topic.startswith(TOPIC_PREFIX)


def parse_topic(topic: str) -> RoutedTopic:
    """Extrae building/floor/room/eventType del topic.

    Segments are positional after the prefix; anything past the event
    type is ignored. The building may be empty, floor, room and event
    type may not.

    Raises:
        MalformedTopic: si falta alguno de los segmentos requeridos.
    """
    parts = topic.split("/")
    building, floor, room_number, event_type = (_segment(parts, i) for i in range(2, 6))

    if not floor or not room_number or not event_type:
        raise MalformedTopic(topic)

    return RoutedTopic(
        building=building or "",
        floor=floor,
        room_number=room_number,
        event_type=event_type,
    )


def _segment(parts: list[str], index: int) -> Optional[str]:
    return parts[index] if index < len(parts) else None
