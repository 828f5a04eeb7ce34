"""Frame sources feeding the scan loop."""

import logging
import threading
import time
from typing import Optional, Protocol, Union

import cv2
import numpy as np

from .errors import FrameSourceError

logger = logging.getLogger(__name__)


class FrameSource(Protocol):
    """Anything that hands out the most recent frame."""

    def read(self, timeout: Optional[float] = None) -> Optional[np.ndarray]:
        """Return the newest unseen frame, or None if none arrived in time."""

    def release(self) -> None:
        """Stop delivering frames and free the device."""


class CameraSource:
    """Camera wrapper that keeps only the most recent frame.

    A grabber thread reads the device continuously and overwrites a single
    slot, so a slow consumer skips frames instead of building a backlog.
    """

    def __init__(
        self,
        device: Union[int, str] = 0,
        width: Optional[int] = None,
        height: Optional[int] = None,
        max_read_failures: int = 30,
    ):
        """
        Args:
            device: Camera index or video file / stream URL.
            width: Requested frame width (the device may ignore it).
            height: Requested frame height.
            max_read_failures: Consecutive failed reads before giving up.
        """
        self.device = device
        self.width = width
        self.height = height
        self.max_read_failures = max_read_failures

        self._capture: Optional[cv2.VideoCapture] = None
        self._thread: Optional[threading.Thread] = None
        self._running = False
        self._cond = threading.Condition()
        self._frame: Optional[np.ndarray] = None
        self._frame_id = 0
        self._read_id = 0
        self._error: Optional[FrameSourceError] = None
        self.dropped_frames = 0

    def open(self) -> "CameraSource":
        """Open the device and start grabbing.

        Raises:
            FrameSourceError: The device could not be opened.
        """
        if self._running:
            logger.warning("Camera %s already open", self.device)
            return self

        # Grab loop died with an error; drop the old handle before reopening
        if self._capture is not None:
            self._capture.release()
            self._capture = None

        self._capture = cv2.VideoCapture(self.device)
        if not self._capture.isOpened():
            self._capture.release()
            self._capture = None
            raise FrameSourceError(f"Failed to open camera {self.device}")

        if self.width:
            self._capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        if self.height:
            self._capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)

        actual_width = int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH))
        actual_height = int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT))
        logger.info("Camera opened: %s at %dx%d", self.device, actual_width, actual_height)

        self._error = None
        self._running = True
        self._thread = threading.Thread(target=self._grab_loop, daemon=True)
        self._thread.start()
        return self

    def _grab_loop(self) -> None:
        failures = 0
        while self._running:
            ok, frame = self._capture.read()
            if not ok or frame is None:
                failures += 1
                if failures >= self.max_read_failures:
                    with self._cond:
                        self._error = FrameSourceError(
                            f"Camera {self.device} stopped delivering frames"
                        )
                        self._running = False
                        self._cond.notify_all()
                    logger.error("Camera %s stopped delivering frames", self.device)
                    return
                time.sleep(0.01)
                continue

            failures = 0
            with self._cond:
                if self._frame_id > self._read_id:
                    self.dropped_frames += 1
                self._frame = frame
                self._frame_id += 1
                self._cond.notify_all()

    def read(self, timeout: Optional[float] = 1.0) -> Optional[np.ndarray]:
        """Wait for a frame newer than the last one returned.

        Raises:
            FrameSourceError: The device failed while streaming, or the
                source is not open.
        """
        with self._cond:
            if not self._running and self._error is None:
                raise FrameSourceError(f"Camera {self.device} is not open")
            self._cond.wait_for(
                lambda: self._frame_id > self._read_id or self._error is not None
                or not self._running,
                timeout=timeout,
            )
            if self._error is not None:
                raise self._error
            if self._frame_id <= self._read_id:
                return None
            self._read_id = self._frame_id
            return self._frame

    def release(self) -> None:
        """Stop the grabber thread and release the device."""
        self._running = False
        with self._cond:
            self._cond.notify_all()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=2.0)
        self._thread = None
        if self._capture is not None:
            self._capture.release()
            self._capture = None
        logger.info("Camera %s released", self.device)

    def __enter__(self) -> "CameraSource":
        return self.open()

    def __exit__(self, *exc) -> None:
        self.release()
