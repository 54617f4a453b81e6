"""Broadcast layer - Fan-out en tiempo real a los suscriptores."""

from .dispatcher import (
    ACTIVITY_UPDATE,
    ROOM_UPDATE,
    BroadcastMirror,
    FanoutDispatcher,
    channel_name,
    encode_envelope,
)
from .redis_mirror import RedisBroadcastMirror, RedisBroadcastRelay, RedisConnection
from .registry import Subscriber, SubscriberRegistry

__all__ = [
    "ACTIVITY_UPDATE",
    "ROOM_UPDATE",
    "BroadcastMirror",
    "FanoutDispatcher",
    "RedisBroadcastMirror",
    "RedisBroadcastRelay",
    "RedisConnection",
    "Subscriber",
    "SubscriberRegistry",
    "channel_name",
    "encode_envelope",
]
