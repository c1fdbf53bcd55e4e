"""Inter-frame movement deltas for a single glove.

Given the current frame and the previous accepted frame of the same device,
derives position and orientation deltas, velocity, combined magnitudes and a
scale factor driven by the pinch-distance proxy.

Usage:
    delta = compute_movement(frame, previous)
    print(delta.movement_magnitude, delta.scale_factor)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from glove_engine.frames import ImuReading, SensorFrame

TWO_PI = 2.0 * math.pi

MIN_SCALE = 0.5
MAX_SCALE = 2.0
PINCH_EPSILON = 1e-3


def wrap_angle(angle: float) -> float:
    """Wrap an angle difference into [-pi, pi]."""
    return math.remainder(angle, TWO_PI)


@dataclass
class PinchProxyConfig:
    """Parameters of the orientation-based thumb/index distance estimate.

    Rolling the hand away from ``neutral_roll`` closes the pinch; a large
    pitch or a busy gyroscope pushes the estimate back open.
    """
    neutral_roll: float = 0.0
    roll_range: float = 0.8
    pitch_range: float = 1.2
    gyro_weight: float = 0.1
    cap: float = 1.0

    def to_dict(self) -> dict:
        return {
            "neutral_roll": self.neutral_roll,
            "roll_range": self.roll_range,
            "pitch_range": self.pitch_range,
            "gyro_weight": self.gyro_weight,
            "cap": self.cap,
        }

    @classmethod
    def from_dict(cls, data: dict) -> PinchProxyConfig:
        defaults = cls()
        return cls(
            neutral_roll=float(data.get("neutral_roll", defaults.neutral_roll)),
            roll_range=float(data.get("roll_range", defaults.roll_range)),
            pitch_range=float(data.get("pitch_range", defaults.pitch_range)),
            gyro_weight=float(data.get("gyro_weight", defaults.gyro_weight)),
            cap=float(data.get("cap", defaults.cap)),
        )


def pinch_distance(imu: ImuReading, config: Optional[PinchProxyConfig] = None) -> float:
    """Estimate thumb/index separation from orientation and gyroscope.

    Returns a value in [0, config.cap]; 0 means fully pinched.
    """
    cfg = config or PinchProxyConfig()
    roll_dev = abs(wrap_angle(imu.roll - cfg.neutral_roll))
    closeness = min(1.0, roll_dev / cfg.roll_range) if cfg.roll_range > 0 else 0.0
    stability = 1.0 - min(1.0, abs(imu.pitch) / cfg.pitch_range) if cfg.pitch_range > 0 else 1.0
    distance = cfg.cap * (1.0 - closeness * stability) + cfg.gyro_weight * imu.gyro_magnitude
    return float(np.clip(distance, 0.0, cfg.cap))


@dataclass
class MovementDelta:
    """Movement between two consecutive frames of one device."""
    position_delta: np.ndarray     # (3,)
    velocity: np.ndarray           # (3,) units per second
    orientation_delta: np.ndarray  # (3,) radians, each in [-pi, pi]
    position_magnitude: float
    orientation_magnitude: float
    movement_magnitude: float
    scale_factor: float
    delta_time: float              # seconds
    orientation: tuple[float, float, float]
    position: tuple[float, float, float]
    timestamp: float

    @property
    def is_identity(self) -> bool:
        return self.movement_magnitude == 0.0 and self.scale_factor == 1.0 and self.delta_time == 0.0

    def to_dict(self) -> dict:
        px, py, pz = (float(v) for v in self.position_delta)
        vx, vy, vz = (float(v) for v in self.velocity)
        return {
            "positionDelta": {"x": px, "y": py, "z": pz},
            "velocity": {"x": vx, "y": vy, "z": vz},
            "orientationDelta": [float(v) for v in self.orientation_delta],
            "positionMagnitude": self.position_magnitude,
            "orientationMagnitude": self.orientation_magnitude,
            "movementMagnitude": self.movement_magnitude,
            "scaleFactor": self.scale_factor,
            "deltaTime": self.delta_time,
            "orientation": list(self.orientation),
            "position": dict(zip("xyz", self.position)),
            "timestamp": self.timestamp,
        }


def identity_movement(frame: SensorFrame) -> MovementDelta:
    """Zero movement anchored to the frame's current pose."""
    return MovementDelta(
        position_delta=np.zeros(3),
        velocity=np.zeros(3),
        orientation_delta=np.zeros(3),
        position_magnitude=0.0,
        orientation_magnitude=0.0,
        movement_magnitude=0.0,
        scale_factor=1.0,
        delta_time=0.0,
        orientation=frame.imu.orientation,
        position=frame.position.as_tuple(),
        timestamp=frame.timestamp,
    )


def compute_scale_factor(current_distance: float, previous_distance: float) -> float:
    if previous_distance < PINCH_EPSILON:
        return 1.0
    return float(np.clip(current_distance / previous_distance, MIN_SCALE, MAX_SCALE))


def compute_movement(
    current: SensorFrame,
    previous: Optional[SensorFrame],
    max_delta_time: float = 1.0,
    pinch_config: Optional[PinchProxyConfig] = None,
) -> MovementDelta:
    """Compute the movement between ``previous`` and ``current``.

    Returns the identity result for the first frame of a device, for a
    non-positive time step and for a gap longer than ``max_delta_time``.
    """
    if previous is None:
        return identity_movement(current)

    delta_time = (current.timestamp - previous.timestamp) / 1000.0
    if delta_time <= 0 or delta_time > max_delta_time:
        return identity_movement(current)

    position_delta = np.array(current.position.as_tuple()) - np.array(previous.position.as_tuple())
    velocity = position_delta / delta_time

    orientation_delta = np.array([
        wrap_angle(c - p)
        for c, p in zip(current.imu.orientation, previous.imu.orientation)
    ])

    position_magnitude = float(np.linalg.norm(position_delta))
    orientation_magnitude = float(np.linalg.norm(orientation_delta))
    movement_magnitude = math.sqrt(position_magnitude ** 2 + orientation_magnitude ** 2)

    scale_factor = compute_scale_factor(
        pinch_distance(current.imu, pinch_config),
        pinch_distance(previous.imu, pinch_config),
    )

    return MovementDelta(
        position_delta=position_delta,
        velocity=velocity,
        orientation_delta=orientation_delta,
        position_magnitude=position_magnitude,
        orientation_magnitude=orientation_magnitude,
        movement_magnitude=movement_magnitude,
        scale_factor=scale_factor,
        delta_time=delta_time,
        orientation=current.imu.orientation,
        position=current.position.as_tuple(),
        timestamp=current.timestamp,
    )
