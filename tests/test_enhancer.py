import cv2
import numpy as np
import pytest

from docscanner import FilterMode, ScannerConfig, apply_filter


def _page(width=200, height=160) -> np.ndarray:
    """Light page with a few dark 'text' strokes and a colour tint."""
    img = np.full((height, width, 3), (215, 225, 235), np.uint8)
    for y in range(30, height - 20, 25):
        cv2.line(img, (20, y), (width - 20, y), (30, 30, 30), 3)
    return img


@pytest.mark.parametrize("mode", list(FilterMode))
def test_input_never_modified(mode):
    img = _page()
    before = img.copy()
    apply_filter(img, mode)
    assert np.array_equal(img, before)


def test_none_is_identity_copy():
    img = _page()
    out = apply_filter(img, FilterMode.NONE)
    assert np.array_equal(out, img)
    assert out is not img


def test_grayscale_single_channel_and_idempotent():
    once = apply_filter(_page(), FilterMode.GRAYSCALE)
    twice = apply_filter(once, FilterMode.GRAYSCALE)
    assert once.ndim == 2
    assert np.array_equal(once, twice)


def test_grayscale_from_bgra():
    bgra = cv2.cvtColor(_page(), cv2.COLOR_BGR2BGRA)
    assert apply_filter(bgra, FilterMode.GRAYSCALE).shape == (160, 200)


def test_linear_enhance_values():
    img = np.array([[[0, 100, 250]]], np.uint8)
    out = apply_filter(img, FilterMode.ENHANCE, ScannerConfig(enhance_alpha=1.2, enhance_beta=10))
    assert out.tolist() == [[[10, 130, 255]]]


def test_linear_enhance_keeps_alpha():
    bgra = np.full((4, 4, 4), 100, np.uint8)
    bgra[:, :, 3] = 77
    out = apply_filter(bgra, FilterMode.ENHANCE)
    assert (out[:, :, :3] == 130).all()
    assert (out[:, :, 3] == 77).all()


def test_clahe_enhance_raises_local_contrast():
    rng = np.random.default_rng(5)
    flat = rng.integers(110, 140, (128, 128), dtype=np.uint8)
    cfg = ScannerConfig(enhance_method="clahe")
    out = apply_filter(flat, FilterMode.ENHANCE, cfg)
    assert out.shape == flat.shape and out.dtype == np.uint8
    assert out.std() > flat.std()


def test_clahe_enhance_colour_keeps_shape():
    cfg = ScannerConfig(enhance_method="clahe")
    img = _page()
    assert apply_filter(img, FilterMode.ENHANCE, cfg).shape == img.shape
    bgra = cv2.cvtColor(img, cv2.COLOR_BGR2BGRA)
    out = apply_filter(bgra, FilterMode.ENHANCE, cfg)
    assert out.shape == bgra.shape
    assert (out[:, :, 3] == 255).all()


def test_black_white_is_binary():
    out = apply_filter(_page(), FilterMode.BLACK_WHITE)
    assert out.ndim == 2
    assert set(np.unique(out)) <= {0, 255}
    # Strokes go black, paper stays white
    assert out[30, 100] == 0
    assert out[42, 100] == 255


def test_black_white_uniform_page_is_white():
    gray = np.full((64, 64), 128, np.uint8)
    assert (apply_filter(gray, "bw") == 255).all()


@pytest.mark.parametrize("value,expected", [
    ("bw", FilterMode.BLACK_WHITE),
    ("BLACK_WHITE", FilterMode.BLACK_WHITE),
    ("grayscale", FilterMode.GRAYSCALE),
    (" enhance ", FilterMode.ENHANCE),
    (FilterMode.NONE, FilterMode.NONE),
])
def test_filter_mode_parse(value, expected):
    assert FilterMode.parse(value) is expected


def test_unknown_mode_and_bad_input():
    with pytest.raises(ValueError):
        FilterMode.parse("sepia")
    with pytest.raises(ValueError):
        apply_filter(np.zeros((4, 4), np.float32), FilterMode.NONE)
    with pytest.raises(ValueError):
        apply_filter(np.zeros((0, 4), np.uint8), FilterMode.NONE)
