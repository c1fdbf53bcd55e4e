"""Tests for cursor ray and transform mode mapping."""

import math

import pytest

from glove_engine.classifier import Gesture
from glove_engine.frames import ImuReading
from glove_engine.mapping import TransformMode, cursor_orientation, transform_mode


class TestCursorOrientation:
    def test_forward(self):
        ray = cursor_orientation(ImuReading(orientation=(0.0, 0.0, 0.0)))
        assert ray == pytest.approx((0.0, 0.0, 1.0))

    def test_yaw_quarter_turn(self):
        ray = cursor_orientation(ImuReading(orientation=(0.0, 0.0, math.pi / 2)))
        assert ray == pytest.approx((1.0, 0.0, 0.0), abs=1e-9)

    def test_pitch_up(self):
        ray = cursor_orientation(ImuReading(orientation=(0.0, math.pi / 2, 0.0)))
        assert ray == pytest.approx((0.0, 1.0, 0.0), abs=1e-9)

    def test_roll_ignored(self):
        a = cursor_orientation(ImuReading(orientation=(0.0, 0.3, 0.7)))
        b = cursor_orientation(ImuReading(orientation=(1.2, 0.3, 0.7)))
        assert a == pytest.approx(b)

    def test_unit_length(self):
        for pitch in (-1.2, -0.3, 0.0, 0.8):
            for yaw in (-3.0, -1.0, 0.5, 2.5):
                x, y, z = cursor_orientation(ImuReading(orientation=(0.0, pitch, yaw)))
                assert math.sqrt(x * x + y * y + z * z) == pytest.approx(1.0)


class TestTransformMode:
    @pytest.mark.parametrize("gesture,mode", [
        (Gesture.OPEN_PALM, TransformMode.TRANSLATE),
        (Gesture.FIST, TransformMode.ROTATE),
        (Gesture.PINCH, TransformMode.SCALE),
        (Gesture.POINTING, TransformMode.CURSOR),
        (Gesture.NEUTRAL, TransformMode.TRANSLATE),
    ])
    def test_table(self, gesture, mode):
        assert transform_mode(gesture) == mode

    def test_accepts_names(self):
        assert transform_mode("fist") == TransformMode.ROTATE

    def test_unknown_defaults_to_translate(self):
        assert transform_mode("thumbs_up") == TransformMode.TRANSLATE
