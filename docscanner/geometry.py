"""Point and quad helpers shared by detection, tracking and rectification.

A quad is a float32 array of shape (4, 2) holding (x, y) pixel coordinates.
"""

from typing import Sequence, Tuple

import numpy as np


def as_quad(pts) -> np.ndarray:
    """Coerce 4 points (any array-like, e.g. an OpenCV contour) to a (4, 2) float32 array."""
    quad = np.asarray(pts, dtype=np.float32)
    if quad.size != 8:
        raise ValueError(f"expected 4 points, got array of shape {quad.shape}")
    return quad.reshape(4, 2)


def distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Euclidean distance between two points."""
    return float(np.hypot(float(a[0]) - float(b[0]), float(a[1]) - float(b[1])))


def polygon_area(pts: np.ndarray) -> float:
    """Unsigned area of a simple polygon (shoelace formula)."""
    p = np.asarray(pts, dtype=np.float64).reshape(-1, 2)
    x, y = p[:, 0], p[:, 1]
    return float(abs(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))) / 2.0)


def _cross_z(o: np.ndarray, a: np.ndarray, b: np.ndarray) -> float:
    return float((a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0]))


def is_convex(pts: np.ndarray) -> bool:
    """True if the polygon, taken in the given vertex order, is strictly convex."""
    p = np.asarray(pts, dtype=np.float64).reshape(-1, 2)
    n = len(p)
    if n < 3:
        return False
    signs = []
    for i in range(n):
        z = _cross_z(p[i], p[(i + 1) % n], p[(i + 2) % n])
        if z == 0:
            return False
        signs.append(z > 0)
    return all(signs) or not any(signs)


def is_degenerate(quad: np.ndarray, min_area: float = 1.0) -> bool:
    """True if the quad (or any three of its corners) encloses less than min_area.

    Catches colinear corners and collapsed edges, for which no projective
    transform between the quad and a rectangle exists.
    """
    q = as_quad(quad).astype(np.float64)
    if not np.isfinite(q).all():
        return True
    if polygon_area(q) < min_area:
        return True
    for i in range(4):
        tri = np.array([q[i], q[(i + 1) % 4], q[(i + 2) % 4]])
        if polygon_area(tri) < min_area / 2.0:
            return True
    return False


def max_corner_shift(a: np.ndarray, b: np.ndarray) -> Tuple[float, float]:
    """Largest per-axis absolute difference between corresponding corners."""
    d = np.abs(as_quad(a).astype(np.float64) - as_quad(b).astype(np.float64))
    return float(d[:, 0].max()), float(d[:, 1].max())


def scale_quad(
    quad: np.ndarray,
    from_size: Tuple[int, int],
    to_size: Tuple[int, int],
) -> np.ndarray:
    """Rescale quad coordinates from one (width, height) frame size to another."""
    fw, fh = from_size
    tw, th = to_size
    if fw <= 0 or fh <= 0:
        raise ValueError(f"invalid source size: {from_size}")
    scaled = as_quad(quad).copy()
    scaled[:, 0] *= tw / float(fw)
    scaled[:, 1] *= th / float(fh)
    return scaled


def default_corners(width: int, height: int, margin: float = 0.02) -> np.ndarray:
    """Corners inset by a margin from the frame edges (TL, TR, BR, BL).

    Used as the starting point for a manual crop when nothing was detected.
    """
    mx = width * margin
    my = height * margin
    return np.array([
        [mx, my],                    # Top-left
        [width - mx, my],            # Top-right
        [width - mx, height - my],   # Bottom-right
        [mx, height - my],           # Bottom-left
    ], dtype=np.float32)
