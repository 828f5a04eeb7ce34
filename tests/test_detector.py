import cv2
import numpy as np
import pytest

from docscanner import EdgeDetector, ScannerConfig, order_corners

from conftest import PAGE_CORNERS, make_page_frame


def _assert_corners_close(got: np.ndarray, expected: np.ndarray, tol: float = 5.0):
    assert got is not None, "nothing detected"
    err = np.abs(order_corners(got) - expected).max()
    assert err <= tol, f"corner error {err:.1f}px\n{order_corners(got)}"


def test_detects_axis_aligned_page(page_frame):
    got = EdgeDetector().detect(page_frame)
    assert got.shape == (4, 2)
    assert got.dtype == np.float32
    _assert_corners_close(got, PAGE_CORNERS)


def test_detects_perspective_page():
    corners = np.array([[150, 120], [820, 180], [870, 760], [120, 700]], dtype=np.float32)
    frame = make_page_frame(1000, 900, corners)
    _assert_corners_close(EdgeDetector().detect(frame), corners)


@pytest.mark.parametrize("channels", [1, 4])
def test_accepts_gray_and_bgra(channels):
    frame = make_page_frame(channels=channels)
    _assert_corners_close(EdgeDetector().detect(frame), PAGE_CORNERS)


def test_noisy_background_still_detected():
    rng = np.random.default_rng(7)
    frame = rng.integers(0, 25, (800, 1000, 3), dtype=np.uint8)
    corners = np.array([[200, 150], [800, 150], [800, 650], [200, 650]], dtype=np.float32)
    cv2.fillConvexPoly(frame, corners.astype(np.int32), (230, 230, 230))
    _assert_corners_close(EdgeDetector().detect(frame), corners)


def test_blank_frame_returns_none():
    assert EdgeDetector().detect(np.zeros((480, 640, 3), np.uint8)) is None


def test_too_small_quad_rejected():
    corners = np.array([[10, 10], [60, 10], [60, 60], [10, 60]], dtype=np.float32)
    frame = make_page_frame(1000, 1000, corners)
    assert EdgeDetector().detect(frame) is None
    # Accepted once the minimum area allows it
    relaxed = ScannerConfig(min_area_ratio=0.001)
    _assert_corners_close(EdgeDetector(relaxed).detect(frame), corners)


def test_non_quadrilateral_rejected():
    frame = np.zeros((800, 800, 3), np.uint8)
    cv2.circle(frame, (400, 400), 250, (255, 255, 255), -1)
    assert EdgeDetector().detect(frame) is None

    frame = np.zeros((800, 800, 3), np.uint8)
    l_shape = np.array([[100, 100], [700, 100], [700, 300], [300, 300],
                        [300, 700], [100, 700]], dtype=np.int32)
    cv2.fillPoly(frame, [l_shape], (255, 255, 255))
    assert EdgeDetector().detect(frame) is None


def test_largest_candidate_wins():
    frame = np.zeros((1000, 1000, 3), np.uint8)
    small = np.array([[50, 50], [300, 50], [300, 300], [50, 300]], dtype=np.float32)
    big = np.array([[400, 350], [950, 350], [950, 950], [400, 950]], dtype=np.float32)
    cv2.fillConvexPoly(frame, small.astype(np.int32), (255, 255, 255))
    cv2.fillConvexPoly(frame, big.astype(np.int32), (255, 255, 255))
    _assert_corners_close(EdgeDetector().detect(frame), big)


def test_bad_input_degrades_to_none():
    detector = EdgeDetector()
    assert detector.detect(None) is None
    assert detector.detect(np.zeros((0, 0, 3), np.uint8)) is None
    assert detector.detect(np.zeros((100, 100, 3), np.float32)) is None
    assert detector.detect(np.zeros((100, 100, 2), np.uint8)) is None
    # Still usable afterwards
    _assert_corners_close(detector.detect(make_page_frame()), PAGE_CORNERS)


def test_buffers_reused_until_resolution_changes():
    detector = EdgeDetector()
    detector.detect(make_page_frame(1000, 1000))
    detector.detect(make_page_frame(1000, 1000))
    assert detector.buffers.allocations == 1
    assert detector.buffers.size == (1000, 1000)

    small = make_page_frame(640, 480, PAGE_CORNERS * 0.4)
    _assert_corners_close(detector.detect(small), PAGE_CORNERS * 0.4)
    assert detector.buffers.allocations == 2
    assert detector.buffers.size == (640, 480)


def test_input_frame_not_modified(page_frame):
    before = page_frame.copy()
    EdgeDetector().detect(page_frame)
    assert np.array_equal(before, page_frame)
