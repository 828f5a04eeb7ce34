"""Per-frame document boundary detection."""

import logging
from typing import Optional, Tuple

import cv2
import numpy as np

from .config import ScannerConfig

logger = logging.getLogger(__name__)


class FrameBuffers:
    """Scratch images reused between detection passes.

    Buffers are sized to the current frame and only reallocated when the
    frame resolution changes (e.g. after switching camera).
    """

    def __init__(self):
        self.size: Optional[Tuple[int, int]] = None
        self.gray: Optional[np.ndarray] = None
        self.blurred: Optional[np.ndarray] = None
        self.edges: Optional[np.ndarray] = None
        self.dilated: Optional[np.ndarray] = None
        self.allocations = 0

    def ensure(self, width: int, height: int) -> None:
        """Make sure all buffers match a width x height frame."""
        if self.size == (width, height):
            return
        shape = (height, width)
        self.gray = np.empty(shape, np.uint8)
        self.blurred = np.empty(shape, np.uint8)
        self.edges = np.empty(shape, np.uint8)
        self.dilated = np.empty(shape, np.uint8)
        self.size = (width, height)
        self.allocations += 1
        logger.debug("Allocated detection buffers for %dx%d", width, height)

    def release(self) -> None:
        self.size = None
        self.gray = self.blurred = self.edges = self.dilated = None


class EdgeDetector:
    """Finds the largest convex quadrilateral outline in a camera frame.

    Pipeline: luminance, Gaussian blur, Canny edges, dilation to close small
    gaps, then external contours approximated to polygons. Only 4-vertex
    convex polygons whose area lies within the configured fraction of the
    frame are kept; the largest one wins.
    """

    def __init__(self, config: Optional[ScannerConfig] = None):
        """Initialize the edge detector.

        Args:
            config: Scanner options; defaults are used when omitted.
        """
        self.config = config or ScannerConfig()
        self.buffers = FrameBuffers()
        k = self.config.dilate_kernel_size
        self._kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (k, k))

    def detect(self, frame: np.ndarray) -> Optional[np.ndarray]:
        """Detect the document boundary in one frame.

        Never raises: a failure on this frame is logged and reported as
        "nothing detected".

        Args:
            frame: Gray, BGR or BGRA uint8 image.

        Returns:
            Array of 4 corner points (unordered, float32) or None.
        """
        try:
            edges = self.detect_edges(frame)
            height, width = edges.shape[:2]
            return self._find_best_quadrilateral(edges, width * height)
        except Exception as e:
            logger.debug("Detection failed for this frame: %s", e)
            return None

    def detect_edges(self, frame: np.ndarray) -> np.ndarray:
        """Return the dilated edge map for a frame.

        The returned array is one of the pooled buffers and is overwritten by
        the next call.
        """
        if frame is None or frame.size == 0:
            raise ValueError("empty frame")

        height, width = frame.shape[:2]
        self.buffers.ensure(width, height)
        buf = self.buffers
        cfg = self.config

        self._to_gray(frame, buf.gray)

        ksize = (cfg.blur_kernel_size, cfg.blur_kernel_size)
        cv2.GaussianBlur(buf.gray, ksize, 0, dst=buf.blurred)
        cv2.Canny(buf.blurred, cfg.canny_low, cfg.canny_high, edges=buf.edges)

        # Bridge small breaks in the document outline
        cv2.dilate(buf.edges, self._kernel, dst=buf.dilated)
        return buf.dilated

    @staticmethod
    def _to_gray(frame: np.ndarray, dst: np.ndarray) -> None:
        if frame.dtype != np.uint8:
            raise ValueError(f"expected uint8 frame, got {frame.dtype}")
        if frame.ndim == 2:
            np.copyto(dst, frame)
        elif frame.ndim == 3 and frame.shape[2] == 1:
            np.copyto(dst, frame[:, :, 0])
        elif frame.ndim == 3 and frame.shape[2] == 3:
            cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY, dst=dst)
        elif frame.ndim == 3 and frame.shape[2] == 4:
            cv2.cvtColor(frame, cv2.COLOR_BGRA2GRAY, dst=dst)
        else:
            raise ValueError(f"unsupported frame shape: {frame.shape}")

    def _find_best_quadrilateral(
        self, edges: np.ndarray, frame_area: float
    ) -> Optional[np.ndarray]:
        """Find the largest acceptable quadrilateral contour in an edge map."""
        contours, _ = cv2.findContours(
            edges, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE
        )

        if not contours:
            return None

        min_area = frame_area * self.config.min_area_ratio
        max_area = frame_area * self.config.max_area_ratio

        best = None
        best_area = 0.0

        for contour in contours:
            area = cv2.contourArea(contour)

            if area < min_area or area > max_area:
                continue

            # Approximate to polygon
            perimeter = cv2.arcLength(contour, True)
            epsilon = self.config.approx_epsilon_fraction * perimeter
            approx = cv2.approxPolyDP(contour, epsilon, True)

            if len(approx) == 4 and cv2.isContourConvex(approx) and area > best_area:
                best = approx
                best_area = area

        if best is None:
            return None

        return best.reshape(4, 2).astype(np.float32)

    def release(self) -> None:
        """Drop the pooled scratch buffers."""
        self.buffers.release()
