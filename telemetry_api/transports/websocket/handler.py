"""WebSocket transport for real-time room and activity updates.

Subscribers are passive: after the handshake the server pushes
``{"event": "<kind>:<hotelId>", "data": {...}}`` envelopes. Anything the
client sends is logged and otherwise ignored.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Optional

import orjson
from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from ...broadcast.registry import SubscriberRegistry

logger = logging.getLogger(__name__)


class WebSocketSubscriber:
    """Adapta un WebSocket de Starlette al protocolo ``Subscriber``.

    ``send`` is called from pipeline worker threads; the frame is
    scheduled on the server loop and the call returns immediately.
    """

    def __init__(self, websocket: WebSocket, loop: asyncio.AbstractEventLoop):
        self._websocket = websocket
        self._loop = loop
        self._id = uuid.uuid4().hex[:12]

    @property
    def subscriber_id(self) -> str:
        return self._id

    @property
    def is_open(self) -> bool:
        return (
            not self._loop.is_closed()
            and self._websocket.client_state == WebSocketState.CONNECTED
            and self._websocket.application_state == WebSocketState.CONNECTED
        )

    def send(self, message: str) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            self._loop.create_task(self._send(message))
        else:
            asyncio.run_coroutine_threadsafe(self._send(message), self._loop)

    async def _send(self, message: str) -> None:
        try:
            await self._websocket.send_text(message)
        except Exception as e:
            logger.debug("[WS] Send to %s failed: %s", self._id, e)


def _decode(text: str) -> Optional[object]:
    try:
        return orjson.loads(text)
    except orjson.JSONDecodeError:
        return None


async def websocket_endpoint(websocket: WebSocket, registry: SubscriberRegistry) -> None:
    """Ciclo de vida de un suscriptor.

    Protocol:
    1. Client connects → registered with the registry
    2. Server → ``roomUpdate:{hotelId}`` / ``activityUpdate:{hotelId}`` envelopes
    3. Client messages → logged only
    4. Disconnect → unregistered
    """
    subscriber = WebSocketSubscriber(websocket, asyncio.get_running_loop())
    # Not open until accepted, so the dispatcher skips it until then.
    registry.add(subscriber)

    try:
        await websocket.accept()
        while True:
            text = await websocket.receive_text()
            data = _decode(text)
            if data is None:
                logger.info("[WS] %s sent non-JSON message (%d bytes)", subscriber.subscriber_id, len(text))
            else:
                logger.info("[WS] %s sent %s", subscriber.subscriber_id, data)
    except WebSocketDisconnect:
        logger.debug("[WS] %s closed by client", subscriber.subscriber_id)
    finally:
        registry.remove(subscriber)
