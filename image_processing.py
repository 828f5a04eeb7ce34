"""
Image conversion helpers for still-image scanning and handing results off.
"""

import base64
import io
from typing import Optional, Tuple, Union

import cv2
import numpy as np
from PIL import Image, ExifTags

from docscanner import (
    EdgeDetector,
    FilterMode,
    PerspectiveTransformer,
    ScannerConfig,
    apply_filter,
    order_corners,
)
from docscanner.geometry import default_corners


def bytes_to_cv2(image_bytes: bytes) -> Optional[np.ndarray]:
    """Decode encoded image bytes (JPEG, PNG, ...) to a BGR array."""
    nparr = np.frombuffer(image_bytes, np.uint8)
    return cv2.imdecode(nparr, cv2.IMREAD_COLOR)


def base64_to_cv2(base64_string: str) -> Optional[np.ndarray]:
    """Convert base64 string to OpenCV image."""
    return bytes_to_cv2(base64.b64decode(base64_string))


def encode_image(image: np.ndarray, format: str = 'JPEG') -> bytes:
    """Encode an OpenCV image (gray or BGR) as JPEG or PNG bytes."""
    if format.upper() in ('JPEG', 'JPG'):
        ext = '.jpg'
        params = [cv2.IMWRITE_JPEG_QUALITY, 90]
    else:
        ext = '.png'
        params = [cv2.IMWRITE_PNG_COMPRESSION, 3]

    ok, buffer = cv2.imencode(ext, image, params)
    if not ok:
        raise ValueError(f"Could not encode image as {format}")
    return buffer.tobytes()


def cv2_to_base64(image: np.ndarray, format: str = 'JPEG') -> str:
    """Convert OpenCV image to base64 string."""
    return base64.b64encode(encode_image(image, format)).decode('utf-8')


def cv2_to_pil(image: np.ndarray) -> Image.Image:
    """Convert a gray, BGR or BGRA array to a PIL image."""
    if image.ndim == 2:
        return Image.fromarray(image)
    if image.shape[2] == 4:
        return Image.fromarray(cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA))
    return Image.fromarray(cv2.cvtColor(image, cv2.COLOR_BGR2RGB))


def pil_to_cv2(image: Image.Image) -> np.ndarray:
    """Convert a PIL image to a BGR (or gray for mode L) array."""
    if image.mode == 'L':
        return np.array(image)
    rgb = np.array(image.convert('RGB'))
    return cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)


def fix_orientation_from_exif(image: Image.Image) -> Image.Image:
    """
    Fix image orientation based on EXIF data.

    Phone cameras store portrait shots sideways and record the rotation in
    EXIF, so uploaded stills must be turned upright before detection.

    Args:
        image: PIL Image

    Returns:
        Rotated image if EXIF orientation found
    """
    exif = image.getexif()
    if not exif:
        return image

    orientation_key = None
    for key, val in ExifTags.TAGS.items():
        if val == 'Orientation':
            orientation_key = key
            break

    if orientation_key is None or orientation_key not in exif:
        return image

    orientation = exif[orientation_key]

    if orientation == 2:
        return image.transpose(Image.Transpose.FLIP_LEFT_RIGHT)
    elif orientation == 3:
        return image.rotate(180, expand=True)
    elif orientation == 4:
        return image.transpose(Image.Transpose.FLIP_TOP_BOTTOM)
    elif orientation == 5:
        return image.transpose(Image.Transpose.FLIP_LEFT_RIGHT).rotate(270, expand=True)
    elif orientation == 6:
        return image.rotate(270, expand=True)
    elif orientation == 7:
        return image.transpose(Image.Transpose.FLIP_LEFT_RIGHT).rotate(90, expand=True)
    elif orientation == 8:
        return image.rotate(90, expand=True)

    return image


def load_still(image_bytes: bytes) -> np.ndarray:
    """Decode an uploaded photo to an upright BGR array.

    Raises:
        ValueError: The bytes are not a readable image.
    """
    try:
        pil_image = Image.open(io.BytesIO(image_bytes))
        pil_image.load()
    except (OSError, Image.DecompressionBombError) as e:
        raise ValueError(f"Could not read image: {e}") from e
    return pil_to_cv2(fix_orientation_from_exif(pil_image))


def create_thumbnail(image: np.ndarray, max_size: Tuple[int, int] = (300, 300)) -> Image.Image:
    """
    Create a thumbnail of a scanned page.

    Args:
        image: OpenCV image
        max_size: Maximum dimensions

    Returns:
        Thumbnail image
    """
    thumbnail = cv2_to_pil(image)
    thumbnail.thumbnail(max_size, Image.Resampling.LANCZOS)
    return thumbnail


def detect_corners(
    image: np.ndarray,
    config: Optional[ScannerConfig] = None,
) -> Tuple[np.ndarray, bool]:
    """
    Find document corners in a still image.

    Falls back to corners inset 2% from the image edges so the user has
    something to adjust when nothing was found.

    Returns:
        Tuple of (ordered corners TL, TR, BR, BL, whether they were detected)
    """
    boundary = EdgeDetector(config).detect(image)

    if boundary is None:
        height, width = image.shape[:2]
        return default_corners(width, height), False

    return order_corners(boundary), True


def scan_still(
    image: np.ndarray,
    corners: np.ndarray,
    filter_mode: Union[FilterMode, str] = FilterMode.NONE,
    config: Optional[ScannerConfig] = None,
) -> np.ndarray:
    """
    Rectify a still image with user-confirmed corners and apply a filter.

    Raises:
        DegenerateGeometry: The corners do not enclose a usable area.
    """
    transformer = PerspectiveTransformer(config)
    rectified = transformer.transform(image, order_corners(corners))
    return apply_filter(rectified, filter_mode, config)
