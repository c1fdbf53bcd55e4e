"""Shared "current state" snapshot: latest event per hand, selection, mode."""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from glove_engine.mapping import TransformMode

logger = logging.getLogger("glove_engine.state")


class HandSlot(str, Enum):
    LEFT = "left"
    RIGHT = "right"


def resolve_hand_slot(device_id: str, hand: Optional[str] = None) -> HandSlot:
    """Pick the hand slot for a device.

    The explicit ``hand`` role wins. Without it, device ids containing
    "left" map to the left slot and everything else to the right slot.
    """
    if hand is not None:
        return HandSlot(hand)
    if "left" in device_id.lower():
        return HandSlot.LEFT
    return HandSlot.RIGHT


@dataclass
class GlobalGestureState:
    left_hand: Optional[dict] = None
    right_hand: Optional[dict] = None
    selected_object: Any = None
    transform_mode: TransformMode = TransformMode.TRANSLATE

    def to_dict(self) -> dict:
        return {
            "leftHand": self.left_hand,
            "rightHand": self.right_hand,
            "selectedObject": self.selected_object,
            "transformMode": self.transform_mode.value,
        }


class StateStore:
    """Single-writer owner of ``GlobalGestureState``.

    Every mutation happens under one lock; readers get deep copies so a
    snapshot never changes after it is handed out.
    """

    def __init__(self):
        self._state = GlobalGestureState()
        self._lock = threading.Lock()

    def snapshot(self) -> GlobalGestureState:
        with self._lock:
            return copy.deepcopy(self._state)

    def to_dict(self) -> dict:
        with self._lock:
            return copy.deepcopy(self._state.to_dict())

    def update_hand(self, slot: HandSlot, event: dict):
        event = copy.deepcopy(event)
        with self._lock:
            if slot is HandSlot.LEFT:
                self._state.left_hand = event
            else:
                self._state.right_hand = event

    def select_object(self, object_id: Any):
        with self._lock:
            self._state.selected_object = object_id
        logger.info("Object selected: %s", object_id)

    def set_transform_mode(self, mode: TransformMode | str) -> TransformMode:
        """Replace the active transform mode.

        Raises:
            ValueError: if ``mode`` is not a known transform mode.
        """
        mode = TransformMode(mode)
        with self._lock:
            self._state.transform_mode = mode
        logger.info("Transform mode changed to: %s", mode.value)
        return mode

    def reset(self):
        with self._lock:
            self._state = GlobalGestureState()
