"""Threshold-based gesture classification for glove frames.

The classifier is a pure function of one frame's posture and motion:
finger/thumb bends, palm pressure and the IMU reading. It keeps no
temporal state; smoothing lives in ``glove_engine.smoothing``.

Rules are evaluated in priority order and the first match wins:
pinch → pointing → fist → open_palm → neutral.
"""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Optional

from glove_engine.frames import FingerBends, ImuReading, SensorFrame
from glove_engine.movement import PinchProxyConfig, pinch_distance

MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 1.0


class Gesture(str, Enum):
    NEUTRAL = "neutral"
    PINCH = "pinch"
    FIST = "fist"
    OPEN_PALM = "open_palm"
    POINTING = "pointing"


@dataclass
class Thresholds:
    """Tunable classification thresholds.

    Bends are in [0, 1]; gyro thresholds are angular speed magnitudes.
    ``pinch_threshold`` is a fraction of the pinch proxy cap. A pinch also
    needs the index between ``pinch_index_min`` and ``finger_closed`` and
    the thumb below ``finger_closed``.
    """
    finger_closed: float = 0.7
    finger_open: float = 0.3
    pinch_threshold: float = 0.6
    fist_threshold: float = 0.7
    palm_pressure: float = 0.5
    gyro_stable: float = 0.5
    gyro_loose: float = 1.0
    gyro_active: float = 3.0
    pinch_index_min: float = 0.2

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict) -> Thresholds:
        return cls().updated(**data)

    def updated(self, **changes: Any) -> Thresholds:
        """Return a copy with ``changes`` applied.

        Raises:
            ValueError: on unknown names, non-finite values or an open
                threshold that is not below the closed threshold.
        """
        known = {f.name for f in fields(self)}
        unknown = sorted(set(changes) - known)
        if unknown:
            raise ValueError(f"Unknown thresholds: {', '.join(unknown)}")

        values = self.to_dict()
        for name, value in changes.items():
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                raise ValueError(f"Threshold {name} must be a finite number")
            if value < 0:
                raise ValueError(f"Threshold {name} must not be negative")
            values[name] = float(value)

        if values["finger_open"] >= values["finger_closed"]:
            raise ValueError("finger_open must be below finger_closed")
        return Thresholds(**values)


@dataclass
class GestureClassification:
    gesture: Gesture
    confidence: float
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "gesture": self.gesture.value,
            "confidence": self.confidence,
            "details": self.details,
        }


def _bounded(confidence: float) -> float:
    return max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, confidence))


def classify_gesture(
    fingers: FingerBends,
    thumb_bend: float,
    palm_pressure: float,
    imu: ImuReading,
    thresholds: Optional[Thresholds] = None,
    pinch_config: Optional[PinchProxyConfig] = None,
) -> GestureClassification:
    """Classify one posture sample.

    Args:
        fingers: Flex readings of the four fingers.
        thumb_bend: Thumb flex reading.
        palm_pressure: Palm pressure reading (reported in details only).
        imu: Orientation and gyroscope of the same sample.
        thresholds: Classification thresholds, defaults if omitted.
        pinch_config: Parameters of the pinch distance proxy.

    Returns:
        GestureClassification with confidence in [0.1, 1.0].
    """
    th = thresholds or Thresholds()
    proxy = pinch_config or PinchProxyConfig()

    digits = fingers.values() + [thumb_bend]
    gyro = imu.gyro_magnitude
    distance = pinch_distance(imu, proxy)

    closed_digits = sum(1 for bend in digits if bend > th.fist_threshold)
    open_digits = sum(1 for bend in digits if bend < th.finger_open)

    pinch_posture = (
        th.pinch_index_min <= fingers.index <= th.finger_closed
        and thumb_bend < th.finger_closed
    )
    is_pinch = pinch_posture and distance < th.pinch_threshold * proxy.cap and gyro < th.gyro_stable
    is_pointing = (
        fingers.index < th.finger_open
        and fingers.middle > th.finger_closed
        and fingers.ring > th.finger_closed
        and fingers.little > th.finger_closed
        and gyro < th.gyro_loose
    )
    is_fist = closed_digits >= 4 or gyro > th.gyro_active
    is_open_palm = open_digits == len(digits) and gyro < th.gyro_stable

    if is_pinch:
        gesture = Gesture.PINCH
        confidence = min(0.95, 0.7 + 0.25 * (1.0 - distance / proxy.cap))
    elif is_pointing:
        gesture = Gesture.POINTING
        confidence = 0.85
    elif is_fist:
        gesture = Gesture.FIST
        confidence = 0.6 + 0.3 * min(1.0, gyro / 2.0)
    elif is_open_palm:
        gesture = Gesture.OPEN_PALM
        confidence = 0.8
    else:
        gesture = Gesture.NEUTRAL
        confidence = 0.5

    return GestureClassification(
        gesture=gesture,
        confidence=_bounded(confidence),
        details={
            "isPinch": is_pinch,
            "isPointing": is_pointing,
            "isFist": is_fist,
            "isOpenPalm": is_open_palm,
            "closedDigits": closed_digits,
            "openDigits": open_digits,
            "pinchDistance": round(distance, 4),
            "gyroMagnitude": round(gyro, 4),
            "palmContact": palm_pressure >= th.palm_pressure,
        },
    )


class GestureClassifier:
    """Holds the live thresholds and classifies frames with them.

    Thresholds can be replaced at runtime (e.g. from the REST API) while
    other threads classify; each call sees one consistent set.
    """

    def __init__(
        self,
        thresholds: Optional[Thresholds] = None,
        pinch_config: Optional[PinchProxyConfig] = None,
    ):
        self._thresholds = thresholds or Thresholds()
        self.pinch_config = pinch_config or PinchProxyConfig()
        self._lock = threading.Lock()

    @property
    def thresholds(self) -> Thresholds:
        with self._lock:
            return self._thresholds

    def update_thresholds(self, **changes: Any) -> Thresholds:
        """Apply a partial threshold update; the old set stays on error."""
        with self._lock:
            self._thresholds = self._thresholds.updated(**changes)
            return self._thresholds

    def classify(self, frame: SensorFrame) -> GestureClassification:
        return classify_gesture(
            frame.fingers,
            frame.thumb_bend,
            frame.palm_pressure,
            frame.imu,
            thresholds=self.thresholds,
            pinch_config=self.pinch_config,
        )
