"""Frame → classified event pipeline.

Sequence per inbound frame, run to completion before returning:
validate → previous frame → movement + gesture → cursor ray + mode →
assemble event → store frame → update shared state → publish.

Frames of one device are serialized by the history's per-device lock;
frames of different devices run in parallel.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from glove_engine.classifier import GestureClassification, GestureClassifier
from glove_engine.config import EngineConfig
from glove_engine.errors import FrameProcessingError, FrameValidationError
from glove_engine.frames import SensorFrame, parse_frame
from glove_engine.history import DeviceHistory
from glove_engine.mapping import TransformMode, cursor_orientation, transform_mode
from glove_engine.metrics import MetricsCollector
from glove_engine.movement import MovementDelta, compute_movement
from glove_engine.publisher import GESTURE_UPDATE, EventPublisher
from glove_engine.smoothing import GestureStabilizer
from glove_engine.state import HandSlot, StateStore, resolve_hand_slot

logger = logging.getLogger("glove_engine.pipeline")


@dataclass
class ClassifiedEvent:
    """Everything derived from one accepted frame."""
    device_id: str
    timestamp: float  # frame timestamp, ms
    hand: HandSlot
    cursor_orientation: tuple[float, float, float]
    classification: GestureClassification
    transform_mode: TransformMode
    movement: MovementDelta
    frame: SensorFrame
    palm_contact: bool
    processed_at: float

    @property
    def gesture(self) -> str:
        return self.classification.gesture.value

    @property
    def confidence(self) -> float:
        return self.classification.confidence

    @property
    def actions(self) -> dict:
        switches = self.frame.switches
        return {
            "selectAction": switches.select_button,
            "modeSwitch": switches.mode_button,
            "confirmAction": switches.confirm_button,
        }

    def to_dict(self) -> dict:
        frame = self.frame
        return {
            "deviceId": self.device_id,
            "timestamp": self.timestamp,
            "hand": self.hand.value,
            "cursorOrientation": list(self.cursor_orientation),
            "gesture": self.gesture,
            "gestureConfidence": round(self.confidence, 4),
            "transformMode": self.transform_mode.value,
            "actions": self.actions,
            "movementData": self.movement.to_dict(),
            "rawSensorData": {
                "imu": list(frame.imu.orientation),
                "position": frame.position.to_dict() if frame.has_position else None,
                "fingerBends": frame.fingers.to_dict(),
                "thumbBend": frame.thumb_bend,
                "palmPressure": frame.palm_pressure,
                "palmContact": self.palm_contact,
            },
            "processedAt": self.processed_at,
        }

    def summary(self) -> dict:
        """Short acknowledgement returned to the frame sender."""
        return {
            "gesture": self.gesture,
            "transformMode": self.transform_mode.value,
            "confidence": round(self.confidence, 4),
            "movementMagnitude": self.movement.movement_magnitude,
        }


class GesturePipeline:
    """End-to-end pipeline: raw frame → classified event → subscribers.

    Usage:
        pipeline = GesturePipeline()
        event = pipeline.process(raw_frame_dict)
        print(event.gesture, event.transform_mode)
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        classifier: Optional[GestureClassifier] = None,
        history: Optional[DeviceHistory] = None,
        state: Optional[StateStore] = None,
        publisher: Optional[EventPublisher] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.config = config or EngineConfig()
        self.classifier = classifier or GestureClassifier(
            thresholds=self.config.thresholds,
            pinch_config=self.config.pinch,
        )
        self.history = history or DeviceHistory()
        self.state = state or StateStore()
        self.metrics = metrics or MetricsCollector()
        self.publisher = publisher or EventPublisher(
            self.state,
            queue_size=self.config.subscriber_queue_size,
            metrics=self.metrics,
        )
        self.stabilizer: Optional[GestureStabilizer] = None
        if self.config.smoothing.enabled:
            self.stabilizer = GestureStabilizer(self.config.smoothing.confirm_frames)

        self._callbacks: list[Callable[[ClassifiedEvent], None]] = []

    def on_event(self, callback: Callable[[ClassifiedEvent], None]):
        """Register a callback invoked after each classified frame."""
        self._callbacks.append(callback)

    def process(self, raw: Any) -> ClassifiedEvent:
        """Validate and process one raw frame mapping.

        Raises:
            FrameValidationError: frame rejected, nothing was mutated.
            FrameProcessingError: unexpected failure, history left untouched.
        """
        try:
            frame = parse_frame(raw)
        except FrameValidationError as e:
            self.metrics.record_rejected()
            device = raw.get("deviceId") if isinstance(raw, dict) else None
            logger.warning("Rejected frame from %s: %s", device or "<unknown>", e)
            raise
        return self.process_frame(frame)

    def process_frame(self, frame: SensorFrame) -> ClassifiedEvent:
        """Process an already validated frame."""
        t_start = time.perf_counter()

        with self.history.lock(frame.device_id):
            try:
                event = self._classify(frame)
                payload = event.to_dict()
            except Exception as e:
                logger.exception("Error processing frame from %s", frame.device_id)
                raise FrameProcessingError(frame.device_id, e) from e

            self.history.put(frame.device_id, frame)

            # Still under the device lock so per-device updates stay ordered
            self.state.update_hand(event.hand, payload)
            self.publisher.publish(GESTURE_UPDATE, payload)

        latency = time.perf_counter() - t_start
        self.metrics.record_frame(latency, event.gesture, event.transform_mode.value)

        logger.debug(
            "[%s] %s (%.0f%%) | Movement: %.3f",
            event.device_id,
            event.gesture,
            event.confidence * 100,
            event.movement.movement_magnitude,
        )

        for cb in self._callbacks:
            try:
                cb(event)
            except Exception:
                # Frame is already stored and published
                logger.exception("Event callback %r failed for %s", cb, event.device_id)

        return event

    def _classify(self, frame: SensorFrame) -> ClassifiedEvent:
        previous = self.history.get(frame.device_id)

        movement = compute_movement(
            frame,
            previous,
            max_delta_time=self.config.max_delta_time,
            pinch_config=self.classifier.pinch_config,
        )

        classification = self.classifier.classify(frame)
        if self.stabilizer is not None:
            classification = self.stabilizer.update(frame.device_id, classification)

        return ClassifiedEvent(
            device_id=frame.device_id,
            timestamp=frame.timestamp,
            hand=resolve_hand_slot(frame.device_id, frame.hand),
            cursor_orientation=cursor_orientation(frame.imu),
            classification=classification,
            transform_mode=transform_mode(classification.gesture),
            movement=movement,
            frame=frame,
            palm_contact=frame.palm_pressure >= self.classifier.thresholds.palm_pressure,
            processed_at=time.time(),
        )

    def reset(self):
        """Forget all device history and shared state."""
        self.history.clear()
        self.state.reset()
        if self.stabilizer is not None:
            self.stabilizer.reset()
