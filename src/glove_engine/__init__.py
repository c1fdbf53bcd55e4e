"""GloveEngine - Real-time gesture classification for sensor gloves."""

__version__ = "0.1.0"

from glove_engine.frames import SensorFrame, parse_frame
from glove_engine.errors import (
    GloveEngineError,
    FrameValidationError,
    FrameProcessingError,
    ControlMessageError,
)
from glove_engine.movement import MovementDelta, PinchProxyConfig, compute_movement, wrap_angle
from glove_engine.classifier import Gesture, GestureClassification, GestureClassifier, Thresholds, classify_gesture
from glove_engine.mapping import TransformMode, cursor_orientation, transform_mode
from glove_engine.history import DeviceHistory
from glove_engine.smoothing import GestureStabilizer
from glove_engine.state import GlobalGestureState, HandSlot, StateStore
from glove_engine.publisher import EventPublisher, Subscription
from glove_engine.pipeline import GesturePipeline, ClassifiedEvent
from glove_engine.config import EngineConfig, load_config
from glove_engine.metrics import MetricsCollector
from glove_engine.simulator import GloveSimulator
