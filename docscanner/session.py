"""Live scan loop: detect, track and capture."""

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

import numpy as np

from .camera import FrameSource
from .config import ScannerConfig
from .corners import order_corners
from .detector import EdgeDetector
from .enhancer import FilterMode, apply_filter
from .errors import DegenerateGeometry, FrameSourceError
from .geometry import scale_quad
from .stability import DetectionSnapshot, SnapshotStore, StabilityTracker, make_snapshot
from .transformer import PerspectiveTransformer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CaptureResult:
    """A finished, rectified and filtered document image.

    The unfiltered warp is kept in ``rectified`` so the same scan can be
    shown with another filter without capturing again.
    """

    image: np.ndarray = field(repr=False)
    filter_mode: FilterMode
    quad: np.ndarray = field(repr=False)
    rectified: np.ndarray = field(repr=False)

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])

    def refilter(
        self,
        filter_mode: Union[FilterMode, str],
        config: Optional[ScannerConfig] = None,
    ) -> "CaptureResult":
        """Return this scan with a different filter applied."""
        mode = FilterMode.parse(filter_mode)
        return CaptureResult(
            image=apply_filter(self.rectified, mode, config),
            filter_mode=mode,
            quad=self.quad,
            rectified=self.rectified,
        )


class ScanSession:
    """Runs detection on incoming frames and rectifies on demand.

    The frame loop is the only writer of the DetectionSnapshot; capture only
    reads the latest published snapshot. Capture is allowed only while the
    detection is locked, and only one capture may run at a time.
    """

    def __init__(
        self,
        config: Optional[ScannerConfig] = None,
        on_lock: Optional[Callable[[], None]] = None,
    ):
        """
        Args:
            config: Scanner options shared by all stages.
            on_lock: One-shot side effect fired on each transition into lock
                (e.g. a beep or haptic pulse).
        """
        self.config = config or ScannerConfig()
        self.detector = EdgeDetector(self.config)
        self.tracker = StabilityTracker(self.config, on_lock=on_lock)
        self.transformer = PerspectiveTransformer(self.config)
        self.store = SnapshotStore()

        self._capture_lock = threading.Lock()
        self._redetect = threading.Event()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.error: Optional[BaseException] = None

    @property
    def snapshot(self) -> DetectionSnapshot:
        """The most recently published detection."""
        return self.store.latest()

    @property
    def capture_enabled(self) -> bool:
        return self.snapshot.locked and not self._redetect.is_set()

    def reset(self) -> None:
        """Forget all corners and counters."""
        self.tracker.reset()
        self.store.clear()
        self._redetect.clear()

    # ------------------------------------------------------------------ #
    # Frame loop
    # ------------------------------------------------------------------ #

    def process_frame(self, frame: np.ndarray) -> DetectionSnapshot:
        """Run one detection pass and publish its snapshot."""
        redetect = self._redetect.is_set()
        if redetect:
            self.tracker.reset()

        raw = self.detector.detect(frame)
        quad = order_corners(raw) if raw is not None else None
        just_locked = self.tracker.update(quad)

        snapshot = make_snapshot(self.tracker, quad, frame, just_locked)
        self.store.publish(snapshot)
        if redetect:
            self._redetect.clear()
        return snapshot

    def run(
        self,
        source: FrameSource,
        on_snapshot: Optional[Callable[[DetectionSnapshot], None]] = None,
        read_timeout: float = 0.5,
    ) -> None:
        """Process frames from a source until stop() is called.

        Raises:
            FrameSourceError: The source failed; the loop does not retry.
        """
        self._stop.clear()
        self.reset()
        logger.info("Scan loop started")
        try:
            while not self._stop.is_set():
                frame = source.read(timeout=read_timeout)
                if frame is None:
                    continue

                snapshot = self.process_frame(frame)

                if on_snapshot is not None:
                    try:
                        on_snapshot(snapshot)
                    except Exception as e:
                        logger.error("Error in snapshot callback: %s", e)
        finally:
            logger.info("Scan loop stopped")

    def start(
        self,
        source: FrameSource,
        on_snapshot: Optional[Callable[[DetectionSnapshot], None]] = None,
    ) -> threading.Thread:
        """Run the frame loop in a background thread."""
        if self._thread and self._thread.is_alive():
            logger.warning("Scan loop already running")
            return self._thread

        self.error = None
        self._stop.clear()
        self.reset()

        def _target():
            try:
                self.run(source, on_snapshot)
            except FrameSourceError as e:
                logger.error("Frame source failed: %s", e)
                self.error = e

        self._thread = threading.Thread(target=_target, daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: float = 2.0) -> None:
        """Cancel the frame loop and wait for it to exit."""
        self._stop.set()
        if self._thread and self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
        self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ------------------------------------------------------------------ #
    # Capture
    # ------------------------------------------------------------------ #

    def capture(
        self,
        image: Optional[np.ndarray] = None,
        filter_mode: Union[FilterMode, str] = FilterMode.NONE,
    ) -> Optional[CaptureResult]:
        """Rectify and filter the locked document.

        Args:
            image: Full-resolution capture. Defaults to the frame the locked
                quad was detected in; if its size differs from that frame
                the corners are rescaled.
            filter_mode: Output filter.

        Returns:
            The capture, or None when the trigger is ignored (not locked, or
            another capture is still running).

        Raises:
            DegenerateGeometry: The locked quad cannot be rectified. The
                tracker is reset so a fresh detection is needed first.
        """
        if not self._capture_lock.acquire(blocking=False):
            logger.warning("Capture already in progress, ignoring trigger")
            return None

        try:
            snapshot = self.store.latest()
            if not snapshot.locked or snapshot.quad is None or self._redetect.is_set():
                logger.warning("Capture rejected: document not locked")
                return None

            source = image if image is not None else snapshot.frame
            if source is None:
                logger.warning("Capture rejected: no frame available")
                return None

            mode = FilterMode.parse(filter_mode)
            quad = snapshot.quad
            height, width = source.shape[:2]
            if snapshot.frame_size is not None and snapshot.frame_size != (width, height):
                quad = scale_quad(quad, snapshot.frame_size, (width, height))

            try:
                rectified = self.transformer.transform(source, quad)
            except DegenerateGeometry as e:
                logger.warning("Capture failed, waiting for a new detection: %s", e)
                self._redetect.set()
                raise

            result = CaptureResult(
                image=apply_filter(rectified, mode, self.config),
                filter_mode=mode,
                quad=quad,
                rectified=rectified,
            )
            logger.info(
                "Captured %dx%d document (filter: %s)",
                result.width, result.height, mode.value,
            )
            return result
        finally:
            self._capture_lock.release()
