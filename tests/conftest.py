"""Fixtures compartidas de la suite."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List

import orjson
import pytest

from telemetry_api.broadcast.dispatcher import FanoutDispatcher
from telemetry_api.broadcast.registry import SubscriberRegistry
from telemetry_api.core.domain.event import RawTelemetryMessage
from telemetry_api.infrastructure.persistence.memory import build_memory_gateway

RECEIVED_AT = datetime(2024, 1, 1, 10, 0, 5, tzinfo=timezone.utc)


class RecordingSubscriber:
    """Suscriptor en memoria: guarda los envelopes decodificados."""

    def __init__(self, subscriber_id: str = "sub-1", is_open: bool = True, fail: bool = False):
        self._id = subscriber_id
        self.is_open = is_open
        self.fail = fail
        self.messages: List[dict] = []

    @property
    def subscriber_id(self) -> str:
        return self._id

    def send(self, message: str) -> None:
        if self.fail:
            raise ConnectionError("socket closed")
        self.messages.append(orjson.loads(message))

    def events(self) -> List[str]:
        return [m["event"] for m in self.messages]


def make_message(topic: str, payload, ingress: str = "remote") -> RawTelemetryMessage:
    body = payload if isinstance(payload, bytes) else orjson.dumps(payload)
    return RawTelemetryMessage(
        topic=topic,
        payload=body,
        ingress=ingress,
        received_at=RECEIVED_AT,
    )


@pytest.fixture
def gateway():
    return build_memory_gateway()


@pytest.fixture
def registry():
    return SubscriberRegistry()


@pytest.fixture
def subscriber(registry):
    sub = RecordingSubscriber()
    registry.add(sub)
    return sub


@pytest.fixture
def dispatcher(registry):
    return FanoutDispatcher(registry)


@pytest.fixture
def message():
    """Factory de RawTelemetryMessage."""
    return make_message


@pytest.fixture
def subscriber_factory():
    return RecordingSubscriber
