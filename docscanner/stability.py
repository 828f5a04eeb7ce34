"""Lock state machine for consecutive, consistent detections.

Counter policy: a frame with no quad, or with a quad whose corners moved more
than ``corner_stability_px`` on either axis, resets the counter to 0, clears
the reference quad and returns to SEARCHING. The next quad then starts a new
run at 1, so N identical detections lock at exactly N = ``lock_threshold``.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Tuple

import numpy as np

from .config import ScannerConfig
from .geometry import as_quad, max_corner_shift

logger = logging.getLogger(__name__)


class TrackerState(Enum):
    SEARCHING = "searching"
    ACCUMULATING = "accumulating"
    LOCKED = "locked"


@dataclass(frozen=True)
class DetectionSnapshot:
    """Everything the presentation and capture sides need about one frame.

    Published as a whole after every detection pass; never mutated.
    """

    quad: Optional[np.ndarray] = field(default=None, compare=False)
    state: TrackerState = TrackerState.SEARCHING
    locked_frame_count: int = 0
    timestamp: float = 0.0
    frame_size: Optional[Tuple[int, int]] = None
    just_locked: bool = False
    # The frame the quad was found in, kept for capture.
    frame: Optional[np.ndarray] = field(default=None, compare=False, repr=False)

    @property
    def locked(self) -> bool:
        return self.state is TrackerState.LOCKED

    @property
    def has_quad(self) -> bool:
        return self.quad is not None


EMPTY_SNAPSHOT = DetectionSnapshot()


class StabilityTracker:
    """Counts consecutive stable detections and decides when to lock."""

    def __init__(
        self,
        config: Optional[ScannerConfig] = None,
        on_lock: Optional[Callable[[], None]] = None,
    ):
        """
        Args:
            config: Scanner options (corner_stability_px, lock_threshold).
            on_lock: Called once on every transition into LOCKED.
        """
        self.config = config or ScannerConfig()
        self.on_lock = on_lock
        self.reset()

    def reset(self) -> None:
        self.state = TrackerState.SEARCHING
        self.count = 0
        self.reference: Optional[np.ndarray] = None

    @property
    def locked(self) -> bool:
        return self.state is TrackerState.LOCKED

    def is_stable(self, quad: np.ndarray) -> bool:
        """True if every corner is within tolerance of the reference quad."""
        if self.reference is None:
            return False
        dx, dy = max_corner_shift(quad, self.reference)
        tol = self.config.corner_stability_px
        return dx <= tol and dy <= tol

    def update(self, quad: Optional[np.ndarray]) -> bool:
        """Feed the ordered quad of the current frame (or None).

        Returns:
            True only on the frame where the tracker enters LOCKED.
        """
        if quad is None:
            self._break("no detection")
            return False

        quad = as_quad(quad)

        if self.reference is None:
            self.count = 1
        elif self.is_stable(quad):
            self.count += 1
        else:
            self._break("corners moved")
            return False

        self.reference = quad

        if self.count >= self.config.lock_threshold:
            was_locked = self.locked
            self.state = TrackerState.LOCKED
            if not was_locked:
                logger.info("Document locked after %d stable frames", self.count)
                if self.on_lock is not None:
                    self.on_lock()
                return True
            return False

        self.state = TrackerState.ACCUMULATING
        return False

    def _break(self, reason: str) -> None:
        if self.locked:
            logger.info("Lock lost: %s", reason)
        self.reset()


class SnapshotStore:
    """Single-writer holder for the latest DetectionSnapshot.

    The writer swaps in a whole new snapshot; readers always see either the
    previous or the new one, never a mix.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._snapshot = EMPTY_SNAPSHOT

    def publish(self, snapshot: DetectionSnapshot) -> None:
        with self._lock:
            self._snapshot = snapshot

    def latest(self) -> DetectionSnapshot:
        with self._lock:
            return self._snapshot

    def clear(self) -> None:
        self.publish(EMPTY_SNAPSHOT)


def make_snapshot(
    tracker: StabilityTracker,
    quad: Optional[np.ndarray],
    frame: Optional[np.ndarray],
    just_locked: bool,
) -> DetectionSnapshot:
    """Freeze the tracker state after one update into a snapshot."""
    frame_size = None
    if frame is not None:
        height, width = frame.shape[:2]
        frame_size = (width, height)
    return DetectionSnapshot(
        quad=None if quad is None else as_quad(quad).copy(),
        state=tracker.state,
        locked_frame_count=tracker.count,
        timestamp=time.monotonic(),
        frame_size=frame_size,
        just_locked=just_locked,
        frame=frame,
    )
