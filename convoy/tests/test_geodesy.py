"""
Geodesic math tests.
"""

import math

import pytest

from convoy.app.domain.tracking import geodesy


def test_distance_same_point_is_zero():
    assert geodesy.distance((48.1374, 11.5755), (48.1374, 11.5755)) == 0


def test_distance_small_northward_step():
    # 0.0001 degrees of latitude
    assert geodesy.distance((0.0, 0.0), (0.0001, 0.0)) == pytest.approx(11.1195, abs=1e-3)


def test_distance_one_degree_of_latitude():
    expected = geodesy.EARTH_RADIUS_M * math.pi / 180
    assert geodesy.distance((10.0, 20.0), (11.0, 20.0)) == pytest.approx(expected, rel=1e-9)


def test_distance_is_symmetric():
    a = (51.5007, -0.1246)
    b = (40.6892, -74.0445)
    assert geodesy.distance(a, b) == pytest.approx(geodesy.distance(b, a))


def test_distance_antipodal_points_is_half_circumference():
    assert geodesy.distance((0.0, 0.0), (0.0, 180.0)) == pytest.approx(
        math.pi * geodesy.EARTH_RADIUS_M, rel=1e-9
    )


def test_speed_non_positive_interval_is_zero():
    assert geodesy.speed((0.0, 0.0), (0.001, 0.0), 0) == 0.0
    assert geodesy.speed((0.0, 0.0), (0.001, 0.0), -1000) == 0.0


def test_speed_ignores_sub_meter_jitter():
    # ~0.44 m
    assert geodesy.speed((0.0, 0.0), (0.000004, 0.0), 1000) == 0.0


def test_speed_meters_per_second():
    assert geodesy.speed((0.0, 0.0), (0.0001, 0.0), 10_000) == pytest.approx(1.11195, abs=1e-4)


def test_acceleration_converts_kmh():
    # 0 -> 36 km/h in one second is 10 m/s²
    assert geodesy.acceleration(0, 36, 1000) == pytest.approx(10.0)
    assert geodesy.acceleration(36, 0, 2000) == pytest.approx(-5.0)


def test_acceleration_non_positive_interval_is_zero():
    assert geodesy.acceleration(0, 36, 0) == 0.0


def test_lean_angle_below_minimum_speed_is_zero():
    assert geodesy.lean_angle(0, 90, 4.9) == 0.0


def test_lean_angle_moderate_turn():
    assert geodesy.lean_angle(0, 10, 36) == pytest.approx(10.09, abs=0.01)


def test_lean_angle_wraps_heading_difference():
    assert geodesy.lean_angle(350, 10, 36) == pytest.approx(geodesy.lean_angle(0, 20, 36))


def test_lean_angle_is_clamped():
    assert geodesy.lean_angle(0, 180, 100) == geodesy.MAX_LEAN_ANGLE_DEG


def test_safety_thresholds():
    assert geodesy.is_hard_braking(-4.0)
    assert not geodesy.is_hard_braking(-3.5)
    assert geodesy.is_hard_acceleration(2.6)
    assert not geodesy.is_hard_acceleration(2.5)
    assert geodesy.is_sharp_turn(30, 25)
    assert not geodesy.is_sharp_turn(30, 20)
    assert not geodesy.is_sharp_turn(20, 50)
