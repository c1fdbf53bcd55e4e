"""Tests for subscriber fan-out and control messages."""

import asyncio
import threading

import pytest

from glove_engine.errors import ControlMessageError
from glove_engine.metrics import MetricsCollector
from glove_engine.publisher import (
    CALIBRATION_COMPLETE,
    GESTURE_UPDATE,
    INITIAL_STATE,
    OBJECT_SELECTED,
    TRANSFORM_MODE_CHANGED,
    EventPublisher,
)
from glove_engine.state import HandSlot, StateStore


def make_publisher(queue_size=16):
    return EventPublisher(StateStore(), queue_size=queue_size, metrics=MetricsCollector())


class TestSubscribe:
    def test_initial_state_first(self):
        pub = make_publisher()
        pub.state.update_hand(HandSlot.LEFT, {"gesture": "fist"})
        sub = pub.subscribe()
        msg = sub.get_nowait()
        assert msg["type"] == INITIAL_STATE
        assert msg["data"]["leftHand"] == {"gesture": "fist"}

    def test_subscriber_count(self):
        pub = make_publisher()
        a = pub.subscribe()
        pub.subscribe()
        assert pub.subscriber_count == 2
        pub.unsubscribe(a)
        assert pub.subscriber_count == 1

    def test_unsubscribed_gets_nothing(self):
        pub = make_publisher()
        sub = pub.subscribe()
        sub.drain()
        pub.unsubscribe(sub)
        pub.publish(GESTURE_UPDATE, {"gesture": "fist"})
        assert sub.drain() == []


class TestPublish:
    def test_broadcast_to_all(self):
        pub = make_publisher()
        subs = [pub.subscribe() for _ in range(3)]
        for s in subs:
            s.drain()
        assert pub.publish(GESTURE_UPDATE, {"gesture": "pinch"}) == 3
        for s in subs:
            assert s.drain() == [{"type": GESTURE_UPDATE, "data": {"gesture": "pinch"}}]

    def test_full_queue_drops_oldest(self):
        pub = make_publisher(queue_size=2)
        sub = pub.subscribe()  # initial-state fills one slot
        pub.publish(GESTURE_UPDATE, 1)
        pub.publish(GESTURE_UPDATE, 2)
        messages = sub.drain()
        assert [m["data"] for m in messages] == [1, 2]
        assert sub.dropped == 1
        assert "glove_engine_dropped_messages_total 1" in pub.metrics.render()

    def test_slow_subscriber_does_not_block(self):
        pub = make_publisher(queue_size=4)
        slow = pub.subscribe()
        fast = pub.subscribe()
        for i in range(100):
            pub.publish(GESTURE_UPDATE, i)
        assert slow.queue.qsize() == 4
        assert fast.drain()[-1]["data"] == 99

    def test_cross_thread_delivery(self):
        pub = make_publisher()

        async def scenario():
            sub = pub.subscribe()
            assert (await sub.get())["type"] == INITIAL_STATE
            t = threading.Thread(target=pub.publish, args=(GESTURE_UPDATE, {"gesture": "fist"}))
            t.start()
            msg = await asyncio.wait_for(sub.get(), timeout=2.0)
            t.join()
            return msg

        msg = asyncio.run(scenario())
        assert msg["data"] == {"gesture": "fist"}


class TestControlMessages:
    def test_select_object_not_echoed(self):
        pub = make_publisher()
        sender, other1, other2 = pub.subscribe(), pub.subscribe(), pub.subscribe()
        for s in (sender, other1, other2):
            s.drain()

        reply = pub.handle_control(sender, {"type": "select-object", "objectId": "cube-1"})

        assert reply is None
        assert sender.drain() == []
        for s in (other1, other2):
            assert s.drain() == [{"type": OBJECT_SELECTED, "data": "cube-1"}]
        assert pub.state.snapshot().selected_object == "cube-1"

    def test_transform_mode_not_echoed(self):
        pub = make_publisher()
        sender, other = pub.subscribe(), pub.subscribe()
        sender.drain()
        other.drain()

        pub.handle_control(sender, {"type": "transform-mode-change", "mode": "scale"})

        assert sender.drain() == []
        assert other.drain() == [{"type": TRANSFORM_MODE_CHANGED, "data": "scale"}]
        assert pub.state.to_dict()["transformMode"] == "scale"

    def test_control_is_idempotent(self):
        pub = make_publisher()
        sender = pub.subscribe()
        pub.handle_control(sender, {"type": "select-object", "objectId": "a"})
        pub.handle_control(sender, {"type": "select-object", "objectId": "a"})
        assert pub.state.snapshot().selected_object == "a"

    def test_bad_transform_mode(self):
        pub = make_publisher()
        sender, other = pub.subscribe(), pub.subscribe()
        other.drain()
        with pytest.raises(ControlMessageError):
            pub.handle_control(sender, {"type": "transform-mode-change", "mode": "explode"})
        assert other.drain() == []

    def test_missing_payload(self):
        pub = make_publisher()
        sender = pub.subscribe()
        with pytest.raises(ControlMessageError):
            pub.handle_control(sender, {"type": "select-object"})

    def test_unknown_type(self):
        pub = make_publisher()
        sender = pub.subscribe()
        with pytest.raises(ControlMessageError):
            pub.handle_control(sender, {"type": "launch"})

    def test_ping(self):
        pub = make_publisher()
        sender = pub.subscribe()
        assert pub.handle_control(sender, {"type": "ping"})["type"] == "pong"

    def test_calibrate_broadcasts_to_everyone(self):
        pub = make_publisher()
        sender, other = pub.subscribe(), pub.subscribe()
        sender.drain()
        other.drain()

        reply = pub.handle_control(sender, {
            "type": "calibrate", "deviceId": "rightHand1", "calibrationData": {"offset": [1, 2]},
        })

        assert reply["data"] == {"status": "calibration-saved", "deviceId": "rightHand1"}
        for s in (sender, other):
            msgs = s.drain()
            assert msgs[0]["type"] == CALIBRATION_COMPLETE
            assert msgs[0]["data"]["deviceId"] == "rightHand1"

    def test_calibrate_requires_device(self):
        pub = make_publisher()
        with pytest.raises(ControlMessageError):
            pub.calibrate("")
