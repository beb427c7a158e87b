"""Tests for the angle and posture helpers."""

import math

import pytest

from services.rep_engine.core.BackendInterface import Keypoint
from services.rep_engine.core.geometry import bounding_box, calculate_angle, midpoint, torso_angle


# ============================================================================
# Test: calculate_angle
# ============================================================================

class TestCalculateAngle:

    def test_right_angle(self):
        assert calculate_angle((1, 0), (0, 0), (0, 1)) == pytest.approx(90.0)

    def test_straight_line(self):
        assert calculate_angle((0, 0), (1, 0), (2, 0)) == pytest.approx(180.0)

    def test_reflex_angle_is_folded(self):
        # atan2 difference is ~348 degrees here
        expected = 2 * math.degrees(math.atan(0.1))
        assert calculate_angle((-1, -0.1), (0, 0), (-1, 0.1)) == pytest.approx(expected)
        assert calculate_angle((-1, -1), (0, 0), (1, -1)) == pytest.approx(90.0)

    def test_order_of_outer_points_does_not_matter(self):
        a, b, c = (0.2, 0.3), (0.5, 0.5), (0.9, 0.45)
        assert calculate_angle(a, b, c) == pytest.approx(calculate_angle(c, b, a))

    def test_accepts_keypoints(self):
        p1 = Keypoint(0.0, 1.0, visibility=0.2)
        p2 = Keypoint(0.0, 0.0)
        p3 = Keypoint(1.0, 1.0)
        assert calculate_angle(p1, p2, p3) == pytest.approx(45.0)

    def test_zero_length_ray_returns_zero(self):
        assert calculate_angle((0.5, 0.5), (0.5, 0.5), (1.0, 0.0)) == 0.0

    def test_non_finite_input_returns_zero(self):
        assert calculate_angle((math.nan, 0.0), (0.0, 0.0), (1.0, 0.0)) == 0.0
        assert calculate_angle((0.0, 1.0), (0.0, 0.0), (math.inf, 0.0)) == 0.0

    def test_result_always_in_range(self):
        points = [(0.1, 0.9), (0.8, 0.2), (0.5, 0.5), (0.3, 0.31), (0.99, 0.01)]
        for a in points:
            for c in points:
                if a == c:
                    continue
                angle = calculate_angle(a, (0.4, 0.6), c)
                assert 0.0 <= angle <= 180.0


# ============================================================================
# Test: posture helpers
# ============================================================================

class TestPostureHelpers:

    def test_midpoint(self):
        assert midpoint(Keypoint(0.2, 0.4), Keypoint(0.4, 0.8)) == pytest.approx((0.3, 0.6))

    def test_torso_angle_flat_and_upright(self):
        s = Keypoint(0.3, 0.5)
        flat_hip = Keypoint(0.7, 0.5)
        upright_hip = Keypoint(0.3, 0.9)
        assert torso_angle(s, s, flat_hip, flat_hip) == pytest.approx(0.0)
        assert torso_angle(s, s, upright_hip, upright_hip) == pytest.approx(90.0)

    def test_torso_angle_ignores_facing_direction(self):
        s = Keypoint(0.5, 0.5)
        to_right = Keypoint(0.8, 0.6)
        to_left = Keypoint(0.2, 0.6)
        assert torso_angle(s, s, to_right, to_right) == pytest.approx(torso_angle(s, s, to_left, to_left))
        assert torso_angle(s, s, to_left, to_left) < 35.0

    def test_bounding_box(self):
        points = [Keypoint(0.2, 0.7), Keypoint(0.6, 0.1), Keypoint(0.4, 0.4)]
        assert bounding_box(points) == pytest.approx((0.2, 0.1, 0.6, 0.7))

    def test_bounding_box_empty(self):
        assert bounding_box([]) is None
