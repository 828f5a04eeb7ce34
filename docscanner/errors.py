"""Exception types raised by the scanner core."""


class ScannerError(Exception):
    """Base class for all scanner errors."""


class ConfigError(ScannerError, ValueError):
    """Raised when a configuration value is missing or out of range."""


class DegenerateGeometry(ScannerError):
    """The corner quad cannot be rectified.

    Raised when the output size rounds below one pixel or when the corners are
    colinear / enclose (near) zero area, so no usable perspective transform
    exists.
    """


class FrameSourceError(ScannerError):
    """The frame source could not be opened or stopped delivering frames."""
