"""Perspective transformation for document correction."""

import logging
from typing import Optional, Tuple

import cv2
import numpy as np

from .config import ScannerConfig
from .errors import DegenerateGeometry
from .geometry import as_quad, distance, is_degenerate

logger = logging.getLogger(__name__)

# Homographies worse conditioned than this are treated as singular
_MAX_CONDITION = 1e12


class PerspectiveTransformer:
    """Applies perspective transformation to flatten a skewed document.

    Given the 4 ordered corners of a detected document, this class warps the
    image to an axis-aligned rectangle whose size follows the longer of each
    pair of opposite edges, so the document keeps its real proportions.
    """

    def __init__(self, config: Optional[ScannerConfig] = None):
        self.config = config or ScannerConfig()

    def compute_output_dimensions(self, pts: np.ndarray) -> Tuple[int, int]:
        """Compute output dimensions preserving aspect ratio.

        Args:
            pts: Ordered array of 4 corner points (TL, TR, BR, BL).

        Returns:
            Tuple of (width, height) for the output image.
        """
        tl, tr, br, bl = as_quad(pts)

        # Width as maximum of top and bottom edge lengths
        width = int(round(max(distance(tr, tl), distance(br, bl))))

        # Height as maximum of left and right edge lengths
        height = int(round(max(distance(bl, tl), distance(br, tr))))

        return width, height

    def get_transformation_matrix(
        self, pts: np.ndarray
    ) -> Tuple[np.ndarray, Tuple[int, int]]:
        """Solve the homography mapping the quad onto the output rectangle.

        Args:
            pts: Ordered array of 4 corner points (TL, TR, BR, BL).

        Returns:
            Tuple of (3x3 transformation matrix, (width, height)).

        Raises:
            DegenerateGeometry: The output would be empty or the corners do
                not define a usable transform.
        """
        src = as_quad(pts)
        width, height = self.compute_output_dimensions(src)

        if width < 1 or height < 1:
            raise DegenerateGeometry(f"output size {width}x{height} is empty")
        if is_degenerate(src, self.config.min_quad_area_px):
            raise DegenerateGeometry("corners are colinear or enclose no area")

        dst = np.array([
            [0, 0],              # Top-left
            [width, 0],          # Top-right
            [width, height],     # Bottom-right
            [0, height],         # Bottom-left
        ], dtype=np.float32)

        try:
            matrix = cv2.getPerspectiveTransform(src, dst)
        except cv2.error as e:
            raise DegenerateGeometry(f"perspective transform failed: {e}") from e

        if not np.isfinite(matrix).all() or abs(np.linalg.det(matrix)) < 1e-12:
            raise DegenerateGeometry("perspective transform is singular")
        if np.linalg.cond(matrix) > _MAX_CONDITION:
            raise DegenerateGeometry("perspective transform is ill-conditioned")

        return matrix, (width, height)

    def transform(self, image: np.ndarray, pts: np.ndarray) -> np.ndarray:
        """Extract the document as a flat rectangle.

        Each output pixel is mapped back into the source through the inverse
        transform and sampled bilinearly; samples outside the source are black.

        Args:
            image: Source image (gray, BGR or BGRA).
            pts: Ordered array of 4 corner points in source coordinates.

        Returns:
            Rectified image of shape (height, width[, channels]).

        Raises:
            DegenerateGeometry: See get_transformation_matrix.
        """
        if image is None or image.size == 0:
            raise ValueError("empty image")

        matrix, (width, height) = self.get_transformation_matrix(pts)

        transformed = cv2.warpPerspective(
            image, matrix, (width, height),
            flags=cv2.INTER_LINEAR,
            borderMode=cv2.BORDER_CONSTANT,
            borderValue=0,
        )

        logger.debug("Rectified %dx%d document", width, height)
        return transformed
