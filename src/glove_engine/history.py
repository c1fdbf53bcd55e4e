"""Per-device frame history with per-device locking."""

from __future__ import annotations

import threading
from typing import Optional

from glove_engine.frames import SensorFrame


class DeviceHistory:
    """Last accepted frame per device id.

    ``put`` is last-write-wins. Callers that read, compute and write back
    must hold ``lock(device_id)`` for the whole sequence so that two
    frames of the same glove never interleave.
    """

    def __init__(self):
        self._frames: dict[str, SensorFrame] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def lock(self, device_id: str) -> threading.Lock:
        """Return the exclusive lock for ``device_id``, creating it once."""
        with self._guard:
            lock = self._locks.get(device_id)
            if lock is None:
                lock = self._locks[device_id] = threading.Lock()
            return lock

    def get(self, device_id: str) -> Optional[SensorFrame]:
        with self._guard:
            return self._frames.get(device_id)

    def put(self, device_id: str, frame: SensorFrame):
        with self._guard:
            self._frames[device_id] = frame

    def devices(self) -> list[str]:
        with self._guard:
            return sorted(self._frames)

    def clear(self):
        with self._guard:
            self._frames.clear()

    def __len__(self) -> int:
        with self._guard:
            return len(self._frames)

    def __contains__(self, device_id: str) -> bool:
        with self._guard:
            return device_id in self._frames
