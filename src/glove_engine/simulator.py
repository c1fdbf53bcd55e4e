"""Synthetic glove frames for demos and tests.

Cycles through gesture postures with sensor noise and a slowly drifting
hand orientation. Pinch postures roll the wrist so the orientation-based
pinch estimate closes.

Usage:
    sim = GloveSimulator(device_id="rightHand1", seed=0)
    for frame in sim.frames(count=50):
        pipeline.process(frame)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator, Optional

import numpy as np

GESTURE_PATTERNS: dict[str, dict] = {
    "pointing": {
        "fingers": {"index": 0.1, "middle": 0.8, "ring": 0.9, "little": 0.8},
        "thumb": 0.7,
        "palm": 0.2,
        "roll": 0.0,
    },
    "open_palm": {
        "fingers": {"index": 0.1, "middle": 0.1, "ring": 0.15, "little": 0.15},
        "thumb": 0.1,
        "palm": 0.1,
        "roll": 0.0,
    },
    "fist": {
        "fingers": {"index": 0.9, "middle": 0.9, "ring": 0.9, "little": 0.9},
        "thumb": 0.9,
        "palm": 0.8,
        "roll": 0.0,
    },
    "pinch": {
        "fingers": {"index": 0.3, "middle": 0.8, "ring": 0.8, "little": 0.8},
        "thumb": 0.3,
        "palm": 0.4,
        "roll": 0.7,
    },
    "neutral": {
        "fingers": {"index": 0.45, "middle": 0.45, "ring": 0.45, "little": 0.45},
        "thumb": 0.45,
        "palm": 0.3,
        "roll": 0.0,
    },
}

DEFAULT_SEQUENCE = ["neutral", "pointing", "pinch", "fist", "open_palm"]


@dataclass
class SimulatorSettings:
    interval_ms: float = 100.0
    gesture_duration_ms: float = 3000.0
    bend_noise: float = 0.05
    orientation_noise: float = 0.02
    gyro_noise: float = 0.05
    drift_amplitude: float = 0.1


class GloveSimulator:
    """Generates raw frame mappings as a glove would send them."""

    def __init__(
        self,
        device_id: str = "rightHand1",
        sequence: Optional[list[str]] = None,
        settings: Optional[SimulatorSettings] = None,
        seed: Optional[int] = None,
        start_ms: float = 0.0,
        hand: Optional[str] = None,
    ):
        self.device_id = device_id
        self.sequence = list(sequence or DEFAULT_SEQUENCE)
        unknown = [g for g in self.sequence if g not in GESTURE_PATTERNS]
        if unknown:
            raise ValueError(f"Unknown gestures in sequence: {', '.join(unknown)}")
        self.settings = settings or SimulatorSettings()
        self.hand = hand
        self._rng = np.random.default_rng(seed)
        self._start_ms = start_ms
        self._tick = 0
        self._position = np.zeros(3)
        self._last_orientation: Optional[np.ndarray] = None

    def gesture_at(self, elapsed_ms: float) -> str:
        slot = int(elapsed_ms // self.settings.gesture_duration_ms)
        return self.sequence[slot % len(self.sequence)]

    def _noise(self, amount: float) -> float:
        return float(self._rng.uniform(-amount, amount))

    def next_frame(self) -> dict:
        s = self.settings
        elapsed = self._tick * s.interval_ms
        timestamp = self._start_ms + elapsed
        self._tick += 1

        gesture = self.gesture_at(elapsed)
        pattern = GESTURE_PATTERNS[gesture]

        t = elapsed / 1000.0
        orientation = np.array([
            pattern["roll"] + s.drift_amplitude * math.sin(t * 0.5) * 0.5 + self._noise(s.orientation_noise),
            s.drift_amplitude * math.sin(t * 0.3) + self._noise(s.orientation_noise),
            s.drift_amplitude * 2 * math.sin(t * 0.2) + self._noise(s.orientation_noise),
        ])

        # Gyroscope follows the orientation change
        if self._last_orientation is None:
            gyro = np.zeros(3)
        else:
            gyro = (orientation - self._last_orientation) / (s.interval_ms / 1000.0)
        gyro = np.clip(gyro, -0.2, 0.2) + self._rng.uniform(-s.gyro_noise, s.gyro_noise, 3)
        self._last_orientation = orientation

        self._position += self._rng.uniform(-0.005, 0.005, 3)

        frame = {
            "deviceId": self.device_id,
            "timestamp": timestamp,
            "imu": {
                "orientation": [float(v) for v in orientation],
                "acceleration": [self._noise(0.1), 9.8 + self._noise(0.2), self._noise(0.1)],
                "gyroscope": [float(v) for v in gyro],
            },
            "fingers": {
                name: float(np.clip(bend + self._noise(s.bend_noise), 0.0, 1.0))
                for name, bend in pattern["fingers"].items()
            },
            "thumb": {"bend": float(np.clip(pattern["thumb"] + self._noise(s.bend_noise), 0.0, 1.0))},
            "palm": {"pressure": float(np.clip(pattern["palm"] + self._noise(s.bend_noise), 0.0, 1.0))},
            "position": {axis: float(v) for axis, v in zip("xyz", self._position)},
            "switches": {
                "selectButton": False,
                "modeButton": False,
                "confirmButton": gesture == "pinch",
            },
        }
        if self.hand is not None:
            frame["hand"] = self.hand
        return frame

    def frames(self, count: int) -> Iterator[dict]:
        for _ in range(count):
            yield self.next_frame()
