"""Tests del fan-out: registro, dispatcher y réplica Redis."""

from unittest.mock import MagicMock

import orjson
import pytest
import redis

from telemetry_api.broadcast import (
    FanoutDispatcher,
    RedisBroadcastMirror,
    RedisBroadcastRelay,
    channel_name,
    encode_envelope,
)
from telemetry_api.broadcast.redis_mirror import encode_frame


class TestEnvelope:
    def test_channel_names(self):
        assert channel_name("roomUpdate", "2") == "roomUpdate:2"
        assert channel_name("activityUpdate", "7") == "activityUpdate:7"

    def test_envelope_shape(self):
        message = encode_envelope("roomUpdate:2", {"roomNum": "205"})

        assert orjson.loads(message) == {"event": "roomUpdate:2", "data": {"roomNum": "205"}}


class TestFanoutDispatcher:
    def test_delivers_to_every_open_subscriber(self, registry, dispatcher, subscriber_factory):
        first, second = subscriber_factory("a"), subscriber_factory("b")
        registry.add(first)
        registry.add(second)

        delivered = dispatcher.room_update("2", {"roomNum": "205"})

        assert delivered == 2
        assert first.events() == ["roomUpdate:2"]
        assert second.events() == ["roomUpdate:2"]

    def test_closed_subscribers_are_skipped(self, registry, dispatcher, subscriber_factory):
        closed = subscriber_factory("closed", is_open=False)
        registry.add(closed)

        delivered = dispatcher.activity_update("2", {"id": "x"})

        assert delivered == 0
        assert closed.messages == []
        assert len(registry) == 1

    def test_failing_subscriber_is_removed(self, registry, dispatcher, subscriber_factory):
        broken = subscriber_factory("broken", fail=True)
        healthy = subscriber_factory("healthy")
        registry.add(broken)
        registry.add(healthy)

        delivered = dispatcher.room_update("2", {})

        assert delivered == 1
        assert [s.subscriber_id for s in registry.snapshot()] == ["healthy"]

    def test_late_subscriber_misses_earlier_publish(self, registry, dispatcher, subscriber_factory):
        dispatcher.room_update("2", {"roomNum": "205"})
        late = subscriber_factory("late")
        registry.add(late)

        assert late.messages == []
        assert dispatcher.published == 1

    def test_mirror_receives_serialized_envelope(self, registry):
        mirror = MagicMock()
        dispatcher = FanoutDispatcher(registry, mirror)

        dispatcher.room_update("3", {"roomNum": "101"})

        channel, message = mirror.publish.call_args.args
        assert channel == "roomUpdate:3"
        assert orjson.loads(message)["data"] == {"roomNum": "101"}

    def test_mirror_failure_does_not_block_delivery(self, registry, subscriber):
        mirror = MagicMock()
        mirror.publish.side_effect = RuntimeError("redis down")
        dispatcher = FanoutDispatcher(registry, mirror)

        assert dispatcher.room_update("2", {}) == 1
        assert subscriber.events() == ["roomUpdate:2"]


class TestSubscriberRegistry:
    def test_add_remove(self, registry, subscriber_factory):
        sub = subscriber_factory("a")
        registry.add(sub)
        registry.remove(sub)
        registry.remove(sub)

        assert len(registry) == 0

    def test_clear(self, registry, subscriber_factory):
        registry.add(subscriber_factory("a"))
        registry.add(subscriber_factory("b"))
        registry.clear()

        assert registry.snapshot() == []


class TestRedisBroadcastMirror:
    @pytest.fixture
    def connection(self):
        conn = MagicMock()
        conn.is_connected = True
        return conn

    def test_publishes_frame_with_prefix_and_origin(self, connection):
        mirror = RedisBroadcastMirror(connection, "proc-a")

        assert mirror.publish("roomUpdate:2", '{"event":"roomUpdate:2"}') is True
        channel, frame = connection.client.publish.call_args.args
        assert channel == "telemetry:roomUpdate:2"
        assert orjson.loads(frame) == {"origin": "proc-a", "envelope": '{"event":"roomUpdate:2"}'}

    def test_skips_when_disconnected(self, connection):
        connection.is_connected = False

        assert RedisBroadcastMirror(connection, "proc-a").publish("roomUpdate:2", "{}") is False
        connection.client.publish.assert_not_called()

    def test_redis_error_is_reported(self, connection):
        connection.client.publish.side_effect = redis.ConnectionError("gone")

        assert RedisBroadcastMirror(connection, "proc-a").publish("roomUpdate:2", "{}") is False


class TestRedisBroadcastRelay:
    @pytest.fixture
    def connection(self):
        conn = MagicMock()
        conn.is_connected = True
        return conn

    @pytest.fixture
    def relay(self, connection, dispatcher):
        return RedisBroadcastRelay(connection, dispatcher.deliver, "proc-a")

    @staticmethod
    def pmessage(channel: str, frame: bytes) -> dict:
        return {
            "type": "pmessage",
            "pattern": b"telemetry:*",
            "channel": channel.encode(),
            "data": frame,
        }

    def test_envelope_from_other_process_reaches_local_subscribers(self, relay, subscriber):
        envelope = encode_envelope("roomUpdate:2", {"roomNum": "205"})

        handled = relay.handle(self.pmessage("telemetry:roomUpdate:2", encode_frame("proc-b", envelope)))

        assert handled is True
        assert relay.relayed == 1
        assert subscriber.messages == [{"event": "roomUpdate:2", "data": {"roomNum": "205"}}]

    def test_own_envelopes_are_not_delivered_twice(self, relay, subscriber):
        envelope = encode_envelope("roomUpdate:2", {"roomNum": "205"})

        handled = relay.handle(self.pmessage("telemetry:roomUpdate:2", encode_frame("proc-a", envelope)))

        assert handled is False
        assert subscriber.messages == []

    def test_relayed_envelopes_are_not_mirrored_back(self, connection, registry, subscriber):
        mirror = MagicMock()
        dispatcher = FanoutDispatcher(registry, mirror)
        relay = RedisBroadcastRelay(connection, dispatcher.deliver, "proc-a")
        envelope = encode_envelope("activityUpdate:2", {"id": "x"})

        relay.handle(self.pmessage("telemetry:activityUpdate:2", encode_frame("proc-b", envelope)))

        assert subscriber.events() == ["activityUpdate:2"]
        mirror.publish.assert_not_called()

    @pytest.mark.parametrize(
        "item",
        [
            {"type": "psubscribe", "channel": b"telemetry:*", "data": 1},
            {"type": "pmessage", "channel": b"telemetry:roomUpdate:2", "data": b"{oops"},
            {"type": "pmessage", "channel": b"telemetry:roomUpdate:2", "data": b'{"origin": "proc-b"}'},
            {"type": "pmessage", "channel": b"other:roomUpdate:2", "data": b'{"origin": "proc-b", "envelope": "{}"}'},
        ],
    )
    def test_unusable_messages_are_skipped(self, relay, subscriber, item):
        assert relay.handle(item) is False
        assert subscriber.messages == []

    def test_start_subscribes_to_prefix_pattern(self, relay, connection):
        pubsub = connection.client.pubsub.return_value
        pubsub.get_message.return_value = None

        assert relay.start() is True
        try:
            assert relay.is_running is True
            pubsub.psubscribe.assert_called_once_with("telemetry:*")
            connection.client.pubsub.assert_called_once_with(ignore_subscribe_messages=True)
        finally:
            relay.stop()

        assert relay.is_running is False
        pubsub.close.assert_called_once()

    def test_not_started_without_connection(self, relay, connection):
        connection.is_connected = False

        assert relay.start() is False
        connection.client.pubsub.assert_not_called()

    def test_subscribe_error_is_reported(self, relay, connection):
        connection.client.pubsub.return_value.psubscribe.side_effect = redis.ConnectionError("gone")

        assert relay.start() is False
        assert relay.is_running is False
