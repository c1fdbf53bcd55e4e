"""Tests for inter-frame movement computation."""

import math

import numpy as np
import pytest

from glove_engine.frames import ImuReading, parse_frame
from glove_engine.movement import (
    MAX_SCALE,
    MIN_SCALE,
    PinchProxyConfig,
    compute_movement,
    compute_scale_factor,
    pinch_distance,
    wrap_angle,
)


def make_frame(timestamp=0.0, orientation=(0.0, 0.0, 0.0), position=None, gyro=(0.0, 0.0, 0.0)):
    raw = {
        "deviceId": "rightHand1",
        "timestamp": timestamp,
        "imu": {"orientation": list(orientation), "gyroscope": list(gyro)},
        "fingers": {"index": 0.2, "middle": 0.2, "ring": 0.2, "little": 0.2},
    }
    if position is not None:
        raw["position"] = dict(zip("xyz", position))
    return parse_frame(raw)


class TestWrapAngle:
    def test_inside_range_unchanged(self):
        assert wrap_angle(1.0) == 1.0
        assert wrap_angle(-1.0) == -1.0

    def test_wraps_positive(self):
        assert wrap_angle(3 * math.pi / 2) == pytest.approx(-math.pi / 2)

    def test_wraps_negative(self):
        assert wrap_angle(-3 * math.pi / 2) == pytest.approx(math.pi / 2)

    def test_multiple_turns(self):
        assert wrap_angle(7 * math.pi + 0.25) == pytest.approx(-math.pi + 0.25)

    def test_huge_angle_returns_in_range(self):
        for angle in (1e17, -1e17, 1e300):
            assert -math.pi <= wrap_angle(angle) <= math.pi

    def test_random_pairs_in_range(self):
        rng = np.random.default_rng(7)
        for a, b in rng.uniform(-10, 10, size=(500, 2)):
            d = wrap_angle(a - b)
            assert -math.pi <= d <= math.pi


class TestFirstFrame:
    def test_identity_without_previous(self):
        frame = make_frame(timestamp=500, orientation=(0.1, 0.2, 0.3), position=(1, 2, 3))
        delta = compute_movement(frame, None)
        assert delta.movement_magnitude == 0
        assert delta.scale_factor == 1.0
        assert delta.delta_time == 0
        assert delta.orientation == (0.1, 0.2, 0.3)
        assert delta.position == (1.0, 2.0, 3.0)
        assert delta.is_identity


class TestDeltas:
    def test_velocity_one_second_apart(self):
        prev = make_frame(timestamp=0, position=(0, 0, 0))
        cur = make_frame(timestamp=1000, position=(1, 0, 0))
        delta = compute_movement(cur, prev)
        assert delta.delta_time == pytest.approx(1.0)
        np.testing.assert_allclose(delta.velocity, [1.0, 0.0, 0.0])
        assert delta.position_magnitude == pytest.approx(1.0)
        assert delta.orientation_magnitude == 0.0
        assert delta.movement_magnitude == pytest.approx(1.0)

    def test_velocity_scales_with_time(self):
        prev = make_frame(timestamp=0, position=(0, 0, 0))
        cur = make_frame(timestamp=500, position=(0, 1, 0))
        delta = compute_movement(cur, prev)
        np.testing.assert_allclose(delta.velocity, [0.0, 2.0, 0.0])

    def test_missing_position_treated_as_origin(self):
        prev = make_frame(timestamp=0)
        cur = make_frame(timestamp=100, position=(0, 0, 2))
        delta = compute_movement(cur, prev)
        np.testing.assert_allclose(delta.position_delta, [0, 0, 2])

    def test_orientation_wraps_across_pi(self):
        prev = make_frame(timestamp=0, orientation=(0.0, 0.0, math.pi - 0.1))
        cur = make_frame(timestamp=100, orientation=(0.0, 0.0, -math.pi + 0.1))
        delta = compute_movement(cur, prev)
        assert delta.orientation_delta[2] == pytest.approx(0.2)

    def test_orientation_wraps_other_direction(self):
        prev = make_frame(timestamp=0, orientation=(-math.pi + 0.1, 0.0, 0.0))
        cur = make_frame(timestamp=100, orientation=(math.pi - 0.1, 0.0, 0.0))
        delta = compute_movement(cur, prev)
        assert delta.orientation_delta[0] == pytest.approx(-0.2)

    def test_combined_magnitude(self):
        prev = make_frame(timestamp=0, orientation=(0, 0, 0), position=(0, 0, 0))
        cur = make_frame(timestamp=100, orientation=(0, 0.4, 0), position=(0.3, 0, 0))
        delta = compute_movement(cur, prev)
        assert delta.position_magnitude == pytest.approx(0.3)
        assert delta.orientation_magnitude == pytest.approx(0.4)
        assert delta.movement_magnitude == pytest.approx(0.5)

    def test_huge_orientation_gives_bounded_delta(self):
        prev = make_frame(timestamp=0)
        cur = make_frame(timestamp=100, orientation=(1e17, 0.0, -1e17))
        delta = compute_movement(cur, prev)
        assert all(-math.pi <= d <= math.pi for d in delta.orientation_delta)
        assert MIN_SCALE <= delta.scale_factor <= MAX_SCALE


class TestDegenerateTime:
    def test_zero_delta_time_is_identity(self):
        prev = make_frame(timestamp=1000, position=(0, 0, 0))
        cur = make_frame(timestamp=1000, position=(5, 0, 0))
        delta = compute_movement(cur, prev)
        assert delta.is_identity
        np.testing.assert_array_equal(delta.velocity, [0, 0, 0])

    def test_negative_delta_time_is_identity(self):
        prev = make_frame(timestamp=2000)
        cur = make_frame(timestamp=1000, orientation=(1, 1, 1))
        assert compute_movement(cur, prev).is_identity

    def test_stale_gap_is_identity(self):
        prev = make_frame(timestamp=0)
        cur = make_frame(timestamp=5000, position=(1, 1, 1))
        assert compute_movement(cur, prev, max_delta_time=1.0).is_identity

    def test_gap_at_cap_is_used(self):
        prev = make_frame(timestamp=0)
        cur = make_frame(timestamp=1000, position=(1, 0, 0))
        assert not compute_movement(cur, prev, max_delta_time=1.0).is_identity


class TestPinchProxy:
    def test_neutral_pose_is_open(self):
        imu = ImuReading(orientation=(0.0, 0.0, 0.0))
        assert pinch_distance(imu) == pytest.approx(1.0)

    def test_roll_closes_pinch(self):
        imu = ImuReading(orientation=(0.8, 0.0, 0.0))
        assert pinch_distance(imu) == pytest.approx(0.0)

    def test_pitch_reduces_roll_effect(self):
        level = pinch_distance(ImuReading(orientation=(0.4, 0.0, 0.0)))
        tilted = pinch_distance(ImuReading(orientation=(0.4, 0.6, 0.0)))
        assert tilted > level

    def test_gyro_opens_estimate(self):
        still = pinch_distance(ImuReading(orientation=(0.4, 0.0, 0.0)))
        shaking = pinch_distance(ImuReading(orientation=(0.4, 0.0, 0.0), gyroscope=(2.0, 0.0, 0.0)))
        assert shaking > still

    def test_bounded_by_cap(self):
        cfg = PinchProxyConfig(cap=0.5)
        imu = ImuReading(orientation=(0.0, 0.0, 0.0), gyroscope=(10.0, 10.0, 10.0))
        assert pinch_distance(imu, cfg) == pytest.approx(0.5)


class TestScaleFactor:
    def test_ratio(self):
        assert compute_scale_factor(0.6, 0.5) == pytest.approx(1.2)

    def test_clamped_high(self):
        assert compute_scale_factor(1.0, 0.1) == MAX_SCALE

    def test_clamped_low(self):
        assert compute_scale_factor(0.01, 1.0) == MIN_SCALE

    def test_tiny_previous_distance(self):
        assert compute_scale_factor(0.5, 0.0005) == 1.0
        assert compute_scale_factor(0.5, 0.0) == 1.0

    def test_scale_from_roll_change(self):
        prev = make_frame(timestamp=0, orientation=(0.4, 0.0, 0.0))   # distance 0.5
        cur = make_frame(timestamp=100, orientation=(0.2, 0.0, 0.0))  # distance 0.75
        delta = compute_movement(cur, prev)
        assert delta.scale_factor == pytest.approx(1.5)

    def test_scale_always_in_range(self):
        rng = np.random.default_rng(3)
        prev = make_frame(timestamp=0)
        for i, (roll, pitch) in enumerate(rng.uniform(-3, 3, size=(200, 2))):
            cur = make_frame(timestamp=(i + 1) * 10, orientation=(roll, pitch, 0.0))
            delta = compute_movement(cur, prev, max_delta_time=10.0)
            assert MIN_SCALE <= delta.scale_factor <= MAX_SCALE
            prev = cur
