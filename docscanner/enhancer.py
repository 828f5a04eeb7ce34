"""Output filters applied to a rectified document."""

from enum import Enum
from typing import Callable, Dict, Optional, Union

import cv2
import numpy as np

from .config import ScannerConfig


class FilterMode(Enum):
    NONE = "none"
    ENHANCE = "enhance"
    BLACK_WHITE = "bw"
    GRAYSCALE = "grayscale"

    @classmethod
    def parse(cls, value: Union["FilterMode", str]) -> "FilterMode":
        """Accept a FilterMode, its value ("bw") or its name ("BLACK_WHITE")."""
        if isinstance(value, cls):
            return value
        key = str(value).strip()
        for mode in cls:
            if key.lower() == mode.value or key.upper() == mode.name:
                return mode
        raise ValueError(f"unknown filter mode: {value!r}")


def _check_image(image: np.ndarray) -> None:
    if image is None or image.size == 0:
        raise ValueError("empty image")
    if image.dtype != np.uint8:
        raise ValueError(f"expected uint8 image, got {image.dtype}")


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Single-channel luminance; gray input is returned as a copy."""
    if image.ndim == 2:
        return image.copy()
    channels = image.shape[2]
    if channels == 1:
        return image[:, :, 0].copy()
    if channels == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    if channels == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    raise ValueError(f"unsupported image shape: {image.shape}")


def enhance_linear(image: np.ndarray, alpha: float = 1.2, beta: float = 10.0) -> np.ndarray:
    """out = clamp(in * alpha + beta) on colour channels; alpha channel kept."""
    out = image.astype(np.float32) * alpha + beta
    out = np.clip(np.rint(out), 0, 255).astype(np.uint8)
    if image.ndim == 3 and image.shape[2] == 4:
        out[:, :, 3] = image[:, :, 3]
    return out


def enhance_clahe(image: np.ndarray, clip_limit: float = 2.0, tile_size: int = 8) -> np.ndarray:
    """Local histogram equalization on the lightness channel only.

    Working on L of LAB keeps colours from shifting the way a global
    per-channel stretch would.
    """
    clahe = cv2.createCLAHE(clipLimit=clip_limit, tileGridSize=(tile_size, tile_size))

    if image.ndim == 2:
        return clahe.apply(image)
    if image.shape[2] == 1:
        return clahe.apply(image[:, :, 0])

    bgr = image[:, :, :3]
    lab = cv2.cvtColor(bgr, cv2.COLOR_BGR2LAB)
    l, a, b = cv2.split(lab)
    lab = cv2.merge((clahe.apply(l), a, b))
    out = cv2.cvtColor(lab, cv2.COLOR_LAB2BGR)

    if image.shape[2] == 4:
        out = np.dstack((out, image[:, :, 3]))
    return out


def black_and_white(image: np.ndarray, window: int = 21, constant: float = 10.0) -> np.ndarray:
    """Binarize against a Gaussian-weighted local mean minus a constant."""
    gray = to_grayscale(image)
    return cv2.adaptiveThreshold(
        gray, 255, cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
        cv2.THRESH_BINARY, window, constant
    )


def _identity(image: np.ndarray, config: ScannerConfig) -> np.ndarray:
    return image.copy()


def _enhance(image: np.ndarray, config: ScannerConfig) -> np.ndarray:
    if config.enhance_method == "clahe":
        return enhance_clahe(image, config.clahe_clip_limit, config.clahe_tile_size)
    return enhance_linear(image, config.enhance_alpha, config.enhance_beta)


def _grayscale(image: np.ndarray, config: ScannerConfig) -> np.ndarray:
    return to_grayscale(image)


def _black_white(image: np.ndarray, config: ScannerConfig) -> np.ndarray:
    return black_and_white(
        image, config.adaptive_threshold_window, config.adaptive_threshold_constant
    )


_FILTERS: Dict[FilterMode, Callable[[np.ndarray, ScannerConfig], np.ndarray]] = {
    FilterMode.NONE: _identity,
    FilterMode.ENHANCE: _enhance,
    FilterMode.GRAYSCALE: _grayscale,
    FilterMode.BLACK_WHITE: _black_white,
}


def apply_filter(
    image: np.ndarray,
    mode: Union[FilterMode, str] = FilterMode.NONE,
    config: Optional[ScannerConfig] = None,
) -> np.ndarray:
    """Apply one output filter. The input image is never modified.

    Args:
        image: uint8 gray, BGR or BGRA image.
        mode: Filter to apply.
        config: Filter parameters; defaults when omitted.

    Returns:
        New image (single channel for GRAYSCALE and BLACK_WHITE).
    """
    _check_image(image)
    return _FILTERS[FilterMode.parse(mode)](image, config or ScannerConfig())
