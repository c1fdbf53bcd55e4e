"""Exception types raised by the glove processing pipeline."""

from __future__ import annotations


class GloveEngineError(Exception):
    """Base class for all glove_engine errors."""


class FrameValidationError(GloveEngineError):
    """A sensor frame was rejected before any state was touched.

    ``missing`` lists required top-level fields that were absent,
    ``invalid`` lists dotted field paths holding non-numeric or
    non-finite values.
    """

    def __init__(self, missing: list[str] | None = None, invalid: list[str] | None = None):
        self.missing = list(missing or [])
        self.invalid = list(invalid or [])
        parts = []
        if self.missing:
            parts.append(f"missing fields: {', '.join(self.missing)}")
        if self.invalid:
            parts.append(f"invalid values: {', '.join(self.invalid)}")
        super().__init__("; ".join(parts) or "invalid sensor frame")

    def to_dict(self) -> dict:
        return {
            "error": "Missing required sensor data fields" if self.missing else "Invalid sensor data values",
            "missing": self.missing,
            "invalid": self.invalid,
            "required": ["deviceId", "imu", "fingers"],
        }


class FrameProcessingError(GloveEngineError):
    """Unexpected failure while processing an accepted frame.

    The frame is dropped and the device history keeps its prior value.
    """

    def __init__(self, device_id: str, cause: BaseException):
        self.device_id = device_id
        self.cause = cause
        super().__init__(f"failed to process frame from {device_id}: {cause}")


class ControlMessageError(GloveEngineError):
    """A subscriber sent a control message that cannot be applied."""
