"""Canonical corner ordering."""

import numpy as np

from .geometry import as_quad


def order_corners(pts) -> np.ndarray:
    """Order 4 points as top-left, top-right, bottom-right, bottom-left.

    Points are stable-sorted by y; the upper two and lower two are then each
    stable-sorted by x. The result does not depend on the input order for a
    convex quad in general position.

    Args:
        pts: Any array-like of 4 (x, y) points, e.g. an OpenCV contour.

    Returns:
        Array of shape (4, 2), dtype float32.
    """
    p = as_quad(pts)

    by_y = p[np.argsort(p[:, 1], kind="stable")]
    top = by_y[:2][np.argsort(by_y[:2, 0], kind="stable")]
    bottom = by_y[2:][np.argsort(by_y[2:, 0], kind="stable")]

    tl, tr = top
    bl, br = bottom
    return np.array([tl, tr, br, bl], dtype=np.float32)
