"""Sensor frame model and validation.

A frame is one timestamped sample from a single glove. Frames arrive as
JSON-style mappings with camelCase keys; ``parse_frame`` validates them,
fills neutral defaults for optional blocks and returns a ``SensorFrame``.

Range policy:
- non-numeric or non-finite values (NaN, inf) are rejected
- finite bends and palm pressure outside [0, 1] are clamped
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from glove_engine.errors import FrameValidationError

REQUIRED_FIELDS = ("deviceId", "imu", "fingers")
FINGER_NAMES = ("index", "middle", "ring", "little")
HAND_ROLES = ("left", "right")

DEFAULT_THUMB_BEND = 0.5
DEFAULT_PALM_PRESSURE = 0.0


@dataclass
class Vector3:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "z": self.z}


@dataclass
class ImuReading:
    """Orientation is [roll, pitch, yaw] in radians."""
    orientation: tuple[float, float, float]
    acceleration: tuple[float, float, float] = (0.0, 0.0, 0.0)
    gyroscope: tuple[float, float, float] = (0.0, 0.0, 0.0)

    @property
    def roll(self) -> float:
        return self.orientation[0]

    @property
    def pitch(self) -> float:
        return self.orientation[1]

    @property
    def yaw(self) -> float:
        return self.orientation[2]

    @property
    def gyro_magnitude(self) -> float:
        gx, gy, gz = self.gyroscope
        return math.sqrt(gx * gx + gy * gy + gz * gz)

    def to_dict(self) -> dict:
        return {
            "orientation": list(self.orientation),
            "acceleration": list(self.acceleration),
            "gyroscope": list(self.gyroscope),
        }


@dataclass
class FingerBends:
    """Flex sensor readings, 0 = straight, 1 = fully bent."""
    index: float = 0.0
    middle: float = 0.0
    ring: float = 0.0
    little: float = 0.0

    def values(self) -> list[float]:
        return [self.index, self.middle, self.ring, self.little]

    def to_dict(self) -> dict:
        return {name: getattr(self, name) for name in FINGER_NAMES}


@dataclass
class Switches:
    select_button: bool = False
    mode_button: bool = False
    confirm_button: bool = False

    def to_dict(self) -> dict:
        return {
            "selectButton": self.select_button,
            "modeButton": self.mode_button,
            "confirmButton": self.confirm_button,
        }


@dataclass
class SensorFrame:
    """One validated sample from a glove."""
    device_id: str
    timestamp: float  # milliseconds
    imu: ImuReading
    fingers: FingerBends
    thumb_bend: float = DEFAULT_THUMB_BEND
    palm_pressure: float = DEFAULT_PALM_PRESSURE
    position: Vector3 = field(default_factory=Vector3)
    has_position: bool = False
    switches: Switches = field(default_factory=Switches)
    hand: Optional[str] = None  # explicit "left" / "right" role

    @property
    def digits(self) -> list[float]:
        """Bends of all five digits, fingers first, thumb last."""
        return self.fingers.values() + [self.thumb_bend]

    def to_dict(self) -> dict:
        data = {
            "deviceId": self.device_id,
            "timestamp": self.timestamp,
            "imu": self.imu.to_dict(),
            "fingers": self.fingers.to_dict(),
            "thumb": {"bend": self.thumb_bend},
            "palm": {"pressure": self.palm_pressure},
            "switches": self.switches.to_dict(),
        }
        if self.has_position:
            data["position"] = self.position.to_dict()
        if self.hand is not None:
            data["hand"] = self.hand
        return data


def missing_fields(raw: Any) -> list[str]:
    """Return the required top-level fields absent from ``raw``."""
    if not isinstance(raw, dict):
        return list(REQUIRED_FIELDS)
    return [name for name in REQUIRED_FIELDS if raw.get(name) is None or raw.get(name) == ""]


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


class _FieldReader:
    """Collects invalid field paths while reading numbers out of a frame."""

    def __init__(self):
        self.invalid: list[str] = []

    def number(self, value: Any, path: str, default: float = 0.0) -> float:
        if value is None:
            return default
        # bool is an int subclass but never a sensor reading
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            self.invalid.append(path)
            return default
        value = float(value)
        if not math.isfinite(value):
            self.invalid.append(path)
            return default
        return value

    def triple(self, value: Any, path: str, required: bool = False) -> tuple[float, float, float]:
        if value is None and not required:
            return (0.0, 0.0, 0.0)
        if not isinstance(value, (list, tuple)) or len(value) != 3:
            self.invalid.append(path)
            return (0.0, 0.0, 0.0)
        a, b, c = (self.number(v, f"{path}[{i}]") for i, v in enumerate(value))
        return (a, b, c)

    def block(self, raw: dict, key: str) -> dict:
        value = raw.get(key)
        if value is None:
            return {}
        if not isinstance(value, dict):
            self.invalid.append(key)
            return {}
        return value


def parse_frame(raw: Any, now_ms: Optional[float] = None) -> SensorFrame:
    """Validate a raw frame mapping and build a ``SensorFrame``.

    Raises:
        FrameValidationError: if required fields are missing or any numeric
            field holds a non-numeric or non-finite value.
    """
    missing = missing_fields(raw)
    if missing:
        raise FrameValidationError(missing=missing)

    reader = _FieldReader()

    device_id = raw["deviceId"]
    if not isinstance(device_id, str):
        reader.invalid.append("deviceId")
        device_id = str(device_id)

    if raw.get("timestamp") is None:
        timestamp = now_ms if now_ms is not None else time.time() * 1000.0
    else:
        timestamp = reader.number(raw["timestamp"], "timestamp")

    imu_raw = reader.block(raw, "imu")
    imu = ImuReading(
        orientation=reader.triple(imu_raw.get("orientation"), "imu.orientation", required=True),
        acceleration=reader.triple(imu_raw.get("acceleration"), "imu.acceleration"),
        gyroscope=reader.triple(imu_raw.get("gyroscope"), "imu.gyroscope"),
    )

    fingers_raw = reader.block(raw, "fingers")
    fingers = FingerBends(**{
        name: _clamp01(reader.number(fingers_raw.get(name), f"fingers.{name}"))
        for name in FINGER_NAMES
    })

    thumb_raw = reader.block(raw, "thumb")
    thumb_bend = _clamp01(reader.number(thumb_raw.get("bend"), "thumb.bend", DEFAULT_THUMB_BEND))

    palm_raw = reader.block(raw, "palm")
    palm_pressure = _clamp01(reader.number(palm_raw.get("pressure"), "palm.pressure", DEFAULT_PALM_PRESSURE))

    position_raw = raw.get("position")
    has_position = isinstance(position_raw, dict)
    position = Vector3()
    if has_position:
        position = Vector3(
            x=reader.number(position_raw.get("x"), "position.x"),
            y=reader.number(position_raw.get("y"), "position.y"),
            z=reader.number(position_raw.get("z"), "position.z"),
        )
    elif position_raw is not None:
        reader.invalid.append("position")

    switches_raw = reader.block(raw, "switches")
    switches = Switches(
        select_button=bool(switches_raw.get("selectButton", False)),
        mode_button=bool(switches_raw.get("modeButton", False)),
        confirm_button=bool(switches_raw.get("confirmButton", False)),
    )

    hand = raw.get("hand")
    if hand is not None:
        hand = str(hand).lower()
        if hand not in HAND_ROLES:
            reader.invalid.append("hand")
            hand = None

    if reader.invalid:
        raise FrameValidationError(invalid=reader.invalid)

    return SensorFrame(
        device_id=device_id,
        timestamp=timestamp,
        imu=imu,
        fingers=fingers,
        thumb_bend=thumb_bend,
        palm_pressure=palm_pressure,
        position=position,
        has_position=has_position,
        switches=switches,
        hand=hand,
    )
