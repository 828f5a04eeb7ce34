"""Shared synthetic scenes. Frames are generated on the fly, no test assets needed."""

import cv2
import numpy as np
import pytest

from docscanner import ScannerConfig

# TL, TR, BR, BL of the reference page drawn by make_page_frame()
PAGE_CORNERS = np.array([[100, 100], [900, 100], [900, 800], [100, 800]], dtype=np.float32)


def make_page_frame(width: int = 1000, height: int = 1000, corners=PAGE_CORNERS,
                    channels: int = 3) -> np.ndarray:
    """White filled quad on a black background."""
    shape = (height, width) if channels == 1 else (height, width, channels)
    frame = np.zeros(shape, np.uint8)
    color = 255 if channels == 1 else (255,) * channels
    cv2.fillConvexPoly(frame, np.round(corners).astype(np.int32), color)
    return frame


@pytest.fixture
def config() -> ScannerConfig:
    return ScannerConfig()


@pytest.fixture
def page_frame() -> np.ndarray:
    return make_page_frame()
