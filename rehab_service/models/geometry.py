"""
REHABCOACH Rehab Service - Geometry Utilities

Angle, distance and midpoint computations over 2D landmark coordinates.
Degenerate input yields None (undefined) instead of raising or leaking NaN.
"""

from typing import Optional, Sequence, Union

import numpy as np

from .landmarks import Landmark


EPSILON = 1e-9

# Up direction in image coordinates (y grows downwards)
UP = np.array([0.0, -1.0])

Point = Union[Landmark, np.ndarray, Sequence[float]]


def as_point(point: Optional[Point]) -> Optional[np.ndarray]:
    """Convert a landmark or coordinate pair to a finite 2D numpy array."""
    if point is None:
        return None
    if isinstance(point, Landmark):
        arr = point.to_numpy()
    else:
        try:
            arr = np.asarray(point, dtype=float).reshape(-1)[:2]
        except (TypeError, ValueError):
            return None
    if arr.shape != (2,) or not np.all(np.isfinite(arr)):
        return None
    return arr


def _vector_angle(u: np.ndarray, v: np.ndarray) -> Optional[float]:
    norm_u = np.linalg.norm(u)
    norm_v = np.linalg.norm(v)
    denom = norm_u * norm_v
    if not np.isfinite(denom) or norm_u < EPSILON or norm_v < EPSILON:
        return None

    cosine = np.dot(u, v) / denom
    if not np.isfinite(cosine):
        return None
    cosine = np.clip(cosine, -1.0, 1.0)
    return float(np.degrees(np.arccos(cosine)))


def angle_between(a: Optional[Point], b: Optional[Point], c: Optional[Point]) -> Optional[float]:
    """
    Calculate angle at vertex b formed by rays b->a and b->c.

    Args:
        a, b, c: Landmarks or (x, y) pairs

    Returns:
        Angle in degrees (0-180), or None when any point is missing,
        non-finite, or b coincides with a or c
    """
    pa, pb, pc = as_point(a), as_point(b), as_point(c)
    if pa is None or pb is None or pc is None:
        return None
    return _vector_angle(pa - pb, pc - pb)


def angle_from_vertical(origin: Optional[Point], tip: Optional[Point]) -> Optional[float]:
    """Angle in degrees between the origin->tip ray and straight up (0 = pointing up)."""
    po, pt = as_point(origin), as_point(tip)
    if po is None or pt is None:
        return None
    return _vector_angle(pt - po, UP)


def distance(a: Optional[Point], b: Optional[Point]) -> Optional[float]:
    """Euclidean distance, None if either point is unusable."""
    pa, pb = as_point(a), as_point(b)
    if pa is None or pb is None:
        return None
    value = float(np.linalg.norm(pa - pb))
    return value if np.isfinite(value) else None


def midpoint(a: Optional[Point], b: Optional[Point]) -> Optional[np.ndarray]:
    pa, pb = as_point(a), as_point(b)
    if pa is None or pb is None:
        return None
    return (pa + pb) / 2.0
