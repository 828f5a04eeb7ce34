"""Preview overlay for the detected document outline."""

from typing import Optional

import cv2
import numpy as np

# BGR
LOCKED_COLOR = (80, 175, 76)
SEARCHING_COLOR = (0, 152, 255)


def draw_detection(
    frame: np.ndarray,
    quad: Optional[np.ndarray],
    locked: bool = False,
    thickness: int = 3,
) -> np.ndarray:
    """Return a copy of the frame with the quad filled and outlined.

    Orange while the detection is still settling, green once locked.
    """
    vis = frame.copy()
    if vis.ndim == 2:
        vis = cv2.cvtColor(vis, cv2.COLOR_GRAY2BGR)
    elif vis.shape[2] == 4:
        vis = cv2.cvtColor(vis, cv2.COLOR_BGRA2BGR)

    if quad is None:
        return vis

    color = LOCKED_COLOR if locked else SEARCHING_COLOR
    alpha = 0.25 if locked else 0.2
    pts = np.round(np.asarray(quad, dtype=np.float32).reshape(-1, 1, 2)).astype(np.int32)

    fill = vis.copy()
    cv2.fillPoly(fill, [pts], color)
    vis = cv2.addWeighted(fill, alpha, vis, 1 - alpha, 0)

    cv2.polylines(vis, [pts], True, color, thickness, lineType=cv2.LINE_AA)
    for x, y in pts.reshape(-1, 2):
        cv2.circle(vis, (int(x), int(y)), thickness * 3, color, -1, lineType=cv2.LINE_AA)
    return vis
