"""Gesture stabilizer: candidate → confirmed hysteresis.

Wraps the per-frame classifier output with a small state machine per
device. A new gesture becomes the reported one only after it has been
seen on ``confirm_frames`` consecutive frames; until then the previously
confirmed gesture is reported.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional

from glove_engine.classifier import Gesture, GestureClassification


@dataclass
class _StabilizerState:
    confirmed: Optional[GestureClassification] = None
    candidate: Optional[Gesture] = None
    candidate_count: int = 0


class GestureStabilizer:
    def __init__(self, confirm_frames: int = 3):
        if confirm_frames < 1:
            raise ValueError("confirm_frames must be at least 1")
        self.confirm_frames = confirm_frames
        self._states: dict[str, _StabilizerState] = {}
        self._lock = threading.Lock()

    def update(self, device_id: str, result: GestureClassification) -> GestureClassification:
        """Feed one classification and return the stable one for the device."""
        with self._lock:
            state = self._states.setdefault(device_id, _StabilizerState())

            # First observation is confirmed immediately
            if state.confirmed is None:
                state.confirmed = result
                state.candidate = None
                state.candidate_count = 0
                return result

            if result.gesture == state.confirmed.gesture:
                state.confirmed = result
                state.candidate = None
                state.candidate_count = 0
                return result

            if result.gesture == state.candidate:
                state.candidate_count += 1
            else:
                state.candidate = result.gesture
                state.candidate_count = 1

            if state.candidate_count >= self.confirm_frames:
                state.confirmed = result
                state.candidate = None
                state.candidate_count = 0
                return result

            return state.confirmed

    def candidate(self, device_id: str) -> Optional[Gesture]:
        with self._lock:
            state = self._states.get(device_id)
            return state.candidate if state else None

    def reset(self, device_id: Optional[str] = None):
        """Clear state for one or all devices."""
        with self._lock:
            if device_id is not None:
                self._states.pop(device_id, None)
            else:
                self._states.clear()
