"""Cursor ray and transform mode mapping."""

from __future__ import annotations

import math
from enum import Enum

from glove_engine.classifier import Gesture
from glove_engine.frames import ImuReading


class TransformMode(str, Enum):
    TRANSLATE = "translate"
    ROTATE = "rotate"
    SCALE = "scale"
    CURSOR = "cursor"


GESTURE_MODES: dict[Gesture, TransformMode] = {
    Gesture.OPEN_PALM: TransformMode.TRANSLATE,
    Gesture.FIST: TransformMode.ROTATE,
    Gesture.PINCH: TransformMode.SCALE,
    Gesture.POINTING: TransformMode.CURSOR,
}

DEFAULT_MODE = TransformMode.TRANSLATE


def cursor_orientation(imu: ImuReading) -> tuple[float, float, float]:
    """Unit pointing ray from yaw and pitch.

    Roll is hand twist and does not move the ray.
    """
    pitch, yaw = imu.pitch, imu.yaw
    return (
        math.sin(yaw) * math.cos(pitch),
        math.sin(pitch),
        math.cos(yaw) * math.cos(pitch),
    )


def transform_mode(gesture: Gesture | str) -> TransformMode:
    try:
        gesture = Gesture(gesture)
    except ValueError:
        return DEFAULT_MODE
    return GESTURE_MODES.get(gesture, DEFAULT_MODE)
