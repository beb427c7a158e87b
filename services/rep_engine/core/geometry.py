import math
from typing import Iterable, Optional, Tuple, Union

import numpy as np

from services.rep_engine.core.BackendInterface import Keypoint

Point = Union[Keypoint, Tuple[float, float]]


def _xy(p: Point) -> np.ndarray:
    if isinstance(p, Keypoint):
        return np.array([p.x, p.y], dtype=np.float64)
    return np.array([p[0], p[1]], dtype=np.float64)


def calculate_angle(p1: Point, p2: Point, p3: Point) -> float:
    """
    Unsigned angle p1-p2-p3 (p2 is the vertex) in degrees, in [0, 180].

    Degenerate input (a ray of zero length or a non-finite coordinate)
    returns 0.0 so NaN never reaches a state machine.
    """
    a, b, c = _xy(p1), _xy(p2), _xy(p3)
    if not (np.all(np.isfinite(a)) and np.all(np.isfinite(b)) and np.all(np.isfinite(c))):
        return 0.0

    ba = a - b
    bc = c - b
    if np.linalg.norm(ba) < 1e-9 or np.linalg.norm(bc) < 1e-9:
        return 0.0

    radians = np.arctan2(bc[1], bc[0]) - np.arctan2(ba[1], ba[0])
    angle = float(np.abs(np.degrees(radians)))
    if angle > 180.0:
        angle = 360.0 - angle
    return angle


def midpoint(a: Keypoint, b: Keypoint) -> Tuple[float, float]:
    return (a.x + b.x) / 2.0, (a.y + b.y) / 2.0


def torso_angle(
    left_shoulder: Keypoint,
    right_shoulder: Keypoint,
    left_hip: Keypoint,
    right_hip: Keypoint,
) -> float:
    """
    Angle of the shoulder-center -> hip-center line against the horizontal
    axis, in degrees (0 = lying flat, 90 = upright).
    """
    sx, sy = midpoint(left_shoulder, right_shoulder)
    hx, hy = midpoint(left_hip, right_hip)
    deg = abs(math.degrees(math.atan2(hy - sy, hx - sx)))
    # Facing left or right gives the same inclination
    return 180.0 - deg if deg > 90.0 else deg


def bounding_box(points: Iterable[Keypoint]) -> Optional[Tuple[float, float, float, float]]:
    """Return (min_x, min_y, max_x, max_y) or None for an empty iterable."""
    coords = np.array([[p.x, p.y] for p in points], dtype=np.float64)
    if coords.size == 0:
        return None
    min_x, min_y = coords.min(axis=0)
    max_x, max_y = coords.max(axis=0)
    return float(min_x), float(min_y), float(max_x), float(max_y)
