"""
Geodesic math for ride tracking.

Pure functions over (latitude, longitude) pairs in degrees. Nothing here
touches the database; the statistics engine and the safety heuristics
build on these.
"""

from math import atan, atan2, cos, degrees, radians, sin, sqrt
from typing import Tuple

EARTH_RADIUS_M = 6_371_000  # mean Earth radius in meters

# Displacements below this are GPS jitter, not movement
MIN_MOVEMENT_METERS = 1.0

GRAVITY_MS2 = 9.81
MAX_LEAN_ANGLE_DEG = 45.0
MIN_LEAN_SPEED = 5.0

HARD_BRAKING_THRESHOLD_MS2 = -3.5
HARD_ACCELERATION_THRESHOLD_MS2 = 2.5
SHARP_TURN_LEAN_DEG = 25.0
SHARP_TURN_MIN_SPEED = 20.0

LatLon = Tuple[float, float]


def distance(p1: LatLon, p2: LatLon) -> float:
    """
    Great-circle distance between two points using the Haversine formula.

    Args:
        p1: (latitude, longitude) of the first point in degrees
        p2: (latitude, longitude) of the second point in degrees

    Returns:
        Distance in meters
    """
    lat1, lon1 = p1
    lat2, lon2 = p2
    d_lat = radians(lat2 - lat1)
    d_lon = radians(lon2 - lon1)

    a = sin(d_lat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(d_lon / 2) ** 2
    # Rounding can push a a hair above 1 for antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_M * c


def speed(p1: LatLon, p2: LatLon, dt_millis: float) -> float:
    """
    Speed between two timestamped points.

    Returns 0 for a non-positive time delta (out-of-order or duplicate
    samples) and for displacements under one meter.

    Args:
        p1: (latitude, longitude) of the earlier point
        p2: (latitude, longitude) of the later point
        dt_millis: Time between the two samples in milliseconds

    Returns:
        Speed in m/s
    """
    if dt_millis <= 0:
        return 0.0

    meters = distance(p1, p2)
    if meters < MIN_MOVEMENT_METERS:
        return 0.0

    return meters / (dt_millis / 1000)


def acceleration(v1: float, v2: float, dt_millis: float) -> float:
    """
    Acceleration between two speed readings.

    Speeds are taken in km/h (the unit the device layer reports) and
    converted to m/s before differencing.

    Returns:
        Acceleration in m/s², 0 for a non-positive time delta
    """
    if dt_millis <= 0:
        return 0.0
    speed_diff = (v2 - v1) * 1000 / 3600
    return speed_diff / (dt_millis / 1000)


def lean_angle(heading1: float, heading2: float, speed_value: float) -> float:
    """
    Approximate lean angle from a heading change at a given speed.

    The speed is read in km/h, like `acceleration`. Below 5 there is no
    meaningful lean and 0 is returned.

    Returns:
        Lean angle in degrees, clamped to [-45, 45]
    """
    if speed_value < MIN_LEAN_SPEED:
        return 0.0

    heading_diff = heading2 - heading1
    while heading_diff > 180:
        heading_diff -= 360
    while heading_diff < -180:
        heading_diff += 360

    turn_rate = abs(heading_diff)
    speed_ms = speed_value * 1000 / 3600
    if speed_ms == 0:
        return 0.0

    angle = degrees(atan(radians(turn_rate) * speed_ms / GRAVITY_MS2))
    return min(max(angle, -MAX_LEAN_ANGLE_DEG), MAX_LEAN_ANGLE_DEG)


def is_hard_braking(deceleration: float) -> bool:
    return deceleration < HARD_BRAKING_THRESHOLD_MS2


def is_hard_acceleration(accel: float) -> bool:
    return accel > HARD_ACCELERATION_THRESHOLD_MS2


def is_sharp_turn(angle: float, speed_value: float) -> bool:
    return abs(angle) > SHARP_TURN_LEAN_DEG and speed_value > SHARP_TURN_MIN_SPEED
