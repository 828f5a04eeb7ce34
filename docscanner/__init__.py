"""Live document scanner: boundary detection, lock tracking and perspective correction."""

from .config import ScannerConfig, load_config
from .corners import order_corners
from .detector import EdgeDetector
from .enhancer import FilterMode, apply_filter
from .errors import ConfigError, DegenerateGeometry, FrameSourceError, ScannerError
from .session import CaptureResult, ScanSession
from .stability import DetectionSnapshot, StabilityTracker, TrackerState
from .transformer import PerspectiveTransformer

__all__ = [
    "CaptureResult",
    "ConfigError",
    "DegenerateGeometry",
    "DetectionSnapshot",
    "EdgeDetector",
    "FilterMode",
    "FrameSourceError",
    "PerspectiveTransformer",
    "ScanSession",
    "ScannerConfig",
    "ScannerError",
    "StabilityTracker",
    "TrackerState",
    "apply_filter",
    "load_config",
    "order_corners",
]
