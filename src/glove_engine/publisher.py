"""Event fan-out to subscribers.

Each subscriber owns a bounded asyncio queue drained by its own sender
task (one per WebSocket). ``publish`` only enqueues, so a slow or dead
subscriber never blocks frame processing; when a queue is full its
oldest message is dropped.

Wire messages are ``{"type": <event name>, "data": <payload>}``.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
import time
from typing import Any, Optional

from glove_engine.errors import ControlMessageError
from glove_engine.metrics import MetricsCollector
from glove_engine.state import StateStore

logger = logging.getLogger("glove_engine.publisher")

GESTURE_UPDATE = "gesture-update"
INITIAL_STATE = "initial-state"
OBJECT_SELECTED = "object-selected"
TRANSFORM_MODE_CHANGED = "transform-mode-changed"
CALIBRATION_COMPLETE = "calibration-complete"

SELECT_OBJECT = "select-object"
TRANSFORM_MODE_CHANGE = "transform-mode-change"
CALIBRATE = "calibrate"


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class Subscription:
    """One subscriber's mailbox."""

    def __init__(self, sub_id: str, queue_size: int, loop: Optional[asyncio.AbstractEventLoop]):
        self.id = sub_id
        self.loop = loop
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.dropped = 0

    def _enqueue(self, message: dict) -> bool:
        dropped = False
        if self.queue.full():
            try:
                self.queue.get_nowait()
                self.dropped += 1
                dropped = True
            except asyncio.QueueEmpty:
                pass
        self.queue.put_nowait(message)
        return dropped

    def deliver(self, message: dict) -> bool:
        """Enqueue ``message`` from any thread. Returns True if a message was dropped."""
        loop = self.loop
        if loop is None or _running_loop() is loop:
            return self._enqueue(message)
        if loop.is_closed():
            return True
        loop.call_soon_threadsafe(self._enqueue, message)
        return False

    async def get(self) -> dict:
        return await self.queue.get()

    def get_nowait(self) -> dict:
        return self.queue.get_nowait()

    def drain(self) -> list[dict]:
        """Pop every queued message without waiting."""
        messages = []
        while not self.queue.empty():
            messages.append(self.queue.get_nowait())
        return messages

    def __repr__(self) -> str:
        return f"Subscription({self.id!r}, pending={self.queue.qsize()})"


class EventPublisher:
    """Broadcasts classified events and control messages.

    Usage:
        sub = publisher.subscribe()          # first message: initial-state
        publisher.publish(GESTURE_UPDATE, event.to_dict())
        publisher.handle_control(sub, {"type": "select-object", "objectId": "cube-1"})
    """

    def __init__(
        self,
        state: StateStore,
        queue_size: int = 256,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.state = state
        self.queue_size = queue_size
        self.metrics = metrics
        self._subscribers: dict[str, Subscription] = {}
        self._lock = threading.Lock()
        self._ids = itertools.count(1)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> Subscription:
        """Register a subscriber and queue the current state snapshot for it."""
        sub = Subscription(
            f"sub-{next(self._ids)}",
            self.queue_size,
            loop if loop is not None else _running_loop(),
        )
        with self._lock:
            self._subscribers[sub.id] = sub
            count = len(self._subscribers)
        sub.deliver({"type": INITIAL_STATE, "data": self.state.to_dict()})
        self._set_subscriber_gauge(count)
        logger.info("Subscriber %s connected (%d total)", sub.id, count)
        return sub

    def unsubscribe(self, sub: Subscription):
        with self._lock:
            self._subscribers.pop(sub.id, None)
            count = len(self._subscribers)
        self._set_subscriber_gauge(count)
        logger.info("Subscriber %s disconnected (%d total)", sub.id, count)

    def publish(self, event_type: str, data: Any, exclude: Optional[Subscription] = None) -> int:
        """Queue a message for every subscriber except ``exclude``.

        Returns the number of subscribers the message was queued for.
        """
        message = {"type": event_type, "data": data}
        with self._lock:
            targets = [s for s in self._subscribers.values() if s is not exclude]

        for sub in targets:
            if sub.deliver(message) and self.metrics:
                self.metrics.record_dropped()
        return len(targets)

    # --- Control messages ---

    def select_object(self, object_id: Any, sender: Optional[Subscription] = None) -> int:
        self.state.select_object(object_id)
        if self.metrics:
            self.metrics.record_control(SELECT_OBJECT)
        return self.publish(OBJECT_SELECTED, object_id, exclude=sender)

    def change_transform_mode(self, mode: str, sender: Optional[Subscription] = None) -> int:
        try:
            new_mode = self.state.set_transform_mode(mode)
        except ValueError as e:
            raise ControlMessageError(f"Unknown transform mode: {mode!r}") from e
        if self.metrics:
            self.metrics.record_control(TRANSFORM_MODE_CHANGE)
        return self.publish(TRANSFORM_MODE_CHANGED, new_mode.value, exclude=sender)

    def calibrate(self, device_id: str, calibration_data: Any = None) -> dict:
        """Acknowledge calibration data and notify every subscriber.

        The data is logged only; nothing in the pipeline consumes it.
        """
        if not device_id:
            raise ControlMessageError("calibrate requires a deviceId")
        logger.info("Calibration received for %s: %s", device_id, calibration_data)
        if self.metrics:
            self.metrics.record_control(CALIBRATE)
        self.publish(CALIBRATION_COMPLETE, {"deviceId": device_id, "timestamp": time.time()})
        return {"status": "calibration-saved", "deviceId": device_id}

    def handle_control(self, sender: Subscription, message: dict) -> Optional[dict]:
        """Apply a control message received from ``sender``.

        Returns an optional reply for the sender only.

        Raises:
            ControlMessageError: on unknown types or missing payload fields.
        """
        if not isinstance(message, dict):
            raise ControlMessageError("Control message must be a JSON object")

        kind = message.get("type")
        if kind == SELECT_OBJECT:
            if "objectId" not in message:
                raise ControlMessageError("select-object requires objectId")
            self.select_object(message["objectId"], sender=sender)
            return None
        if kind == TRANSFORM_MODE_CHANGE:
            if "mode" not in message:
                raise ControlMessageError("transform-mode-change requires mode")
            self.change_transform_mode(message["mode"], sender=sender)
            return None
        if kind == CALIBRATE:
            ack = self.calibrate(message.get("deviceId"), message.get("calibrationData"))
            return {"type": "calibration-ack", "data": ack}
        if kind == "ping":
            return {"type": "pong", "server_time": time.time()}
        raise ControlMessageError(f"Unknown message type: {kind!r}")

    def _set_subscriber_gauge(self, count: int):
        if self.metrics:
            self.metrics.set_connections(count)
