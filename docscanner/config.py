"""Tunable scanner options with documented defaults."""

import json
import numbers
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Union

from .errors import ConfigError

ENHANCE_METHODS = ("linear", "clahe")

INT_OPTIONS = (
    "lock_threshold",
    "blur_kernel_size",
    "dilate_kernel_size",
    "clahe_tile_size",
    "adaptive_threshold_window",
)


@dataclass(frozen=True)
class ScannerConfig:
    """All numeric options used by detection, tracking and filtering.

    Attributes:
        min_area_ratio: Minimum contour area as ratio of frame area.
        max_area_ratio: Maximum contour area as ratio of frame area.
        corner_stability_px: Per-axis tolerance for a corner to count as stable.
        lock_threshold: Consecutive stable frames needed to lock.
        canny_low: Lower Canny hysteresis threshold.
        canny_high: Upper Canny hysteresis threshold.
        blur_kernel_size: Gaussian blur kernel size (odd).
        dilate_kernel_size: Structuring element size used to bridge edges.
        approx_epsilon_fraction: Polygon approximation tolerance as a
            fraction of the contour perimeter.
        clahe_clip_limit: CLAHE contrast clip limit.
        clahe_tile_size: CLAHE tile grid size (tiles per side).
        adaptive_threshold_window: Neighbourhood size for black & white (odd).
        adaptive_threshold_constant: Constant subtracted from the local mean.
        enhance_alpha: Contrast gain of the linear enhance filter.
        enhance_beta: Brightness offset of the linear enhance filter.
        enhance_method: "linear" or "clahe".
        min_quad_area_px: Quads enclosing less area than this are degenerate.
    """

    min_area_ratio: float = 0.05
    max_area_ratio: float = 0.98
    corner_stability_px: float = 40.0
    lock_threshold: int = 4
    canny_low: float = 30.0
    canny_high: float = 100.0
    blur_kernel_size: int = 5
    dilate_kernel_size: int = 3
    approx_epsilon_fraction: float = 0.02
    clahe_clip_limit: float = 2.0
    clahe_tile_size: int = 8
    adaptive_threshold_window: int = 21
    adaptive_threshold_constant: float = 10.0
    enhance_alpha: float = 1.2
    enhance_beta: float = 10.0
    enhance_method: str = "linear"
    min_quad_area_px: float = 1.0

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Raise ConfigError if any option is out of range.

        Integral floats (e.g. 5.0 from a JSON file) are converted to int for
        the integer options.
        """
        for name in INT_OPTIONS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise ConfigError(f"{name} must be an integer, got {value!r}")
            if not isinstance(value, int):
                if not float(value).is_integer():
                    raise ConfigError(f"{name} must be an integer, got {value!r}")
                object.__setattr__(self, name, int(value))
        if not 0.0 <= self.min_area_ratio < self.max_area_ratio <= 1.0:
            raise ConfigError(
                "expected 0 <= min_area_ratio < max_area_ratio <= 1, got "
                f"{self.min_area_ratio} / {self.max_area_ratio}"
            )
        if self.corner_stability_px < 0:
            raise ConfigError("corner_stability_px must be >= 0")
        if self.lock_threshold < 1:
            raise ConfigError("lock_threshold must be >= 1")
        if not 0 <= self.canny_low <= self.canny_high:
            raise ConfigError("expected 0 <= canny_low <= canny_high")
        for name in ("blur_kernel_size", "adaptive_threshold_window"):
            value = getattr(self, name)
            if value < 3 or value % 2 == 0:
                raise ConfigError(f"{name} must be an odd integer >= 3, got {value}")
        if self.dilate_kernel_size < 1:
            raise ConfigError("dilate_kernel_size must be >= 1")
        if not 0.0 < self.approx_epsilon_fraction < 1.0:
            raise ConfigError("approx_epsilon_fraction must be in (0, 1)")
        if self.clahe_clip_limit <= 0 or self.clahe_tile_size < 1:
            raise ConfigError("clahe_clip_limit must be > 0 and clahe_tile_size >= 1")
        if self.enhance_method not in ENHANCE_METHODS:
            raise ConfigError(
                f"unknown enhance_method: {self.enhance_method!r} "
                f"(expected one of {', '.join(ENHANCE_METHODS)})"
            )
        if self.min_quad_area_px < 0:
            raise ConfigError("min_quad_area_px must be >= 0")

    def replace(self, **overrides: Any) -> "ScannerConfig":
        """Return a copy with some options changed."""
        return replace(self, **overrides)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ScannerConfig":
        """Build a config from a mapping, keeping defaults for missing keys.

        Unknown keys are rejected so a typo does not silently fall back to
        a default value.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"unknown config option(s): {', '.join(unknown)}")
        try:
            return cls(**dict(data))
        except TypeError as exc:
            raise ConfigError(str(exc)) from exc


def load_config(path: Union[str, Path]) -> ScannerConfig:
    """Load a ScannerConfig from a JSON file."""
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"could not read config file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError("config file must contain a JSON object at the top level")

    return ScannerConfig.from_mapping(data)
