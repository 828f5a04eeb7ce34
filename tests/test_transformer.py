import numpy as np
import pytest

from docscanner import DegenerateGeometry, PerspectiveTransformer


def _gradient_image(width=400, height=300) -> np.ndarray:
    x = np.linspace(0, 255, width, dtype=np.float32)
    y = np.linspace(0, 255, height, dtype=np.float32)
    img = np.zeros((height, width, 3), np.uint8)
    img[:, :, 0] = np.round(x[None, :]).astype(np.uint8)
    img[:, :, 1] = np.round(y[:, None]).astype(np.uint8)
    img[:, :, 2] = 128
    return img


def _rect(x0, y0, x1, y1):
    return np.array([[x0, y0], [x1, y0], [x1, y1], [x0, y1]], dtype=np.float32)


def test_output_dimensions_use_longer_edges():
    t = PerspectiveTransformer()
    # Top edge 300, bottom edge 200; both sides ~111.8
    quad = np.array([[0, 0], [300, 0], [250, 100], [50, 100]], dtype=np.float32)
    w, h = t.compute_output_dimensions(quad)
    assert w == 300
    assert h == round(np.hypot(50, 100))


def test_unrotated_rectangle_keeps_size():
    t = PerspectiveTransformer()
    out = t.transform(_gradient_image(), _rect(50, 40, 350, 240))
    assert out.shape == (200, 300, 3)


def test_identity_mapping():
    rng = np.random.default_rng(3)
    img = rng.integers(0, 256, (150, 200, 3), dtype=np.uint8)
    out = PerspectiveTransformer().transform(img, _rect(0, 0, 200, 150))
    assert out.shape == img.shape
    assert np.abs(out.astype(int) - img.astype(int)).max() <= 1


def test_rectangle_crop_matches_source():
    img = _gradient_image()
    out = PerspectiveTransformer().transform(img, _rect(50, 40, 350, 240))
    crop = img[40:240, 50:350]
    assert np.abs(out.astype(int) - crop.astype(int)).max() <= 1


def test_matrix_maps_corners_to_rectangle():
    quad = np.array([[120, 95], [880, 130], [905, 790], [90, 760]], dtype=np.float32)
    matrix, (w, h) = PerspectiveTransformer().get_transformation_matrix(quad)
    pts = np.hstack([quad, np.ones((4, 1), np.float32)]) @ matrix.T
    pts = pts[:, :2] / pts[:, 2:]
    assert np.allclose(pts, _rect(0, 0, w, h), atol=1e-3)


def test_outside_source_is_black():
    img = np.full((100, 100), 255, np.uint8)
    out = PerspectiveTransformer().transform(img, _rect(-50, 0, 50, 100))
    assert out.shape == (100, 100)
    assert (out[:, :45] == 0).all()
    assert (out[:, 55:] == 255).all()


def test_bgra_and_gray_supported():
    gray = np.full((120, 160), 200, np.uint8)
    assert PerspectiveTransformer().transform(gray, _rect(10, 10, 110, 60)).shape == (50, 100)
    bgra = np.full((120, 160, 4), 200, np.uint8)
    assert PerspectiveTransformer().transform(bgra, _rect(10, 10, 110, 60)).shape == (50, 100, 4)


def test_deterministic():
    img = _gradient_image()
    quad = np.array([[60, 30], [330, 50], [360, 260], [40, 250]], dtype=np.float32)
    t = PerspectiveTransformer()
    assert np.array_equal(t.transform(img, quad), t.transform(img, quad))


@pytest.mark.parametrize("quad", [
    # colinear
    np.array([[0, 0], [100, 100], [200, 200], [300, 300]], dtype=np.float32),
    # collapsed to a point
    np.full((4, 2), 50, dtype=np.float32),
    # width rounds to zero
    np.array([[10, 10], [10.3, 10], [10.3, 50], [10, 50]], dtype=np.float32),
    # three corners on one line
    np.array([[0, 0], [100, 0], [200, 0], [100, 80]], dtype=np.float32),
])
def test_degenerate_geometry(quad):
    img = _gradient_image()
    with pytest.raises(DegenerateGeometry):
        PerspectiveTransformer().transform(img, quad)


def test_empty_image_rejected():
    with pytest.raises(ValueError):
        PerspectiveTransformer().transform(np.zeros((0, 0, 3), np.uint8), _rect(0, 0, 10, 10))
