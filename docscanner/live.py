#!/usr/bin/env python3
"""
Live camera scanner.

Shows the camera preview with the detected outline (orange while settling,
green once locked). Keys: space = capture, 1-4 = filter
(none / enhance / black & white / grayscale; also re-renders the last scan),
q or Esc = quit.

    python -m docscanner.live --device 0 --out-dir scans
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence, Union

import cv2

from .camera import CameraSource
from .config import ScannerConfig, load_config
from .enhancer import FilterMode
from .errors import ConfigError, DegenerateGeometry, FrameSourceError
from .overlay import draw_detection
from .session import CaptureResult, ScanSession

logger = logging.getLogger(__name__)

FILTER_KEYS = {
    ord("1"): FilterMode.NONE,
    ord("2"): FilterMode.ENHANCE,
    ord("3"): FilterMode.BLACK_WHITE,
    ord("4"): FilterMode.GRAYSCALE,
}

PREVIEW_WINDOW = "docscanner"
RESULT_WINDOW = "docscanner - scan"


def _parse_device(value: str) -> Union[int, str]:
    return int(value) if value.isdigit() else value


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Scan documents from a live camera feed.")
    ap.add_argument("--device", default="0", help="Camera index or video path/URL.")
    ap.add_argument("--width", type=int, default=None, help="Requested frame width.")
    ap.add_argument("--height", type=int, default=None, help="Requested frame height.")
    ap.add_argument("--config", default=None, help="JSON file with scanner options.")
    ap.add_argument("--filter", default="none",
                    choices=[m.value for m in FilterMode],
                    help="Initial output filter.")
    ap.add_argument("--out-dir", default="scans", help="Where captured scans are written.")
    ap.add_argument("--log-level", default="INFO",
                    choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return ap


def _save_scan(image, out_dir: Path, path: Optional[Path] = None) -> Path:
    """Write a scan as PNG, to a new timestamped file unless a path is given."""
    out_dir.mkdir(parents=True, exist_ok=True)
    if path is None:
        path = out_dir / f"scan_{datetime.now().strftime('%Y%m%d_%H%M%S_%f')}.png"
    if not cv2.imwrite(str(path), image):
        raise OSError(f"Could not write {path}")
    return path


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config) if args.config else ScannerConfig()
    except ConfigError as e:
        logger.error("Invalid configuration: %s", e)
        return 2

    mode = FilterMode.parse(args.filter)
    out_dir = Path(args.out_dir)

    # Terminal bell stands in for a haptic pulse
    session = ScanSession(config, on_lock=lambda: print("\a", end="", flush=True))
    source = CameraSource(_parse_device(args.device), args.width, args.height)

    try:
        source.open()
    except FrameSourceError as e:
        logger.error("%s", e)
        return 1

    last: Optional[CaptureResult] = None
    last_path: Optional[Path] = None

    try:
        session.start(source)
        while True:
            if session.error is not None:
                logger.error("Stopping: %s", session.error)
                return 1

            snapshot = session.snapshot
            if snapshot.frame is not None:
                cv2.imshow(PREVIEW_WINDOW, draw_detection(snapshot.frame, snapshot.quad, snapshot.locked))

            key = cv2.waitKey(15) & 0xFF
            if key in (ord("q"), 27):
                break
            if key in FILTER_KEYS:
                mode = FILTER_KEYS[key]
                logger.info("Filter: %s", mode.value)
                if last is not None:
                    last = last.refilter(mode, config)
                    _save_scan(last.image, out_dir, last_path)
                    cv2.imshow(RESULT_WINDOW, last.image)
            elif key == ord(" "):
                try:
                    result = session.capture(filter_mode=mode)
                except DegenerateGeometry as e:
                    logger.warning("Scan failed, hold the document steady: %s", e)
                    continue
                if result is None:
                    continue
                last = result
                last_path = _save_scan(result.image, out_dir)
                logger.info("Saved %dx%d scan to %s", result.width, result.height, last_path)
                cv2.imshow(RESULT_WINDOW, result.image)
    finally:
        session.stop()
        source.release()
        cv2.destroyAllWindows()

    return 0


if __name__ == "__main__":
    sys.exit(main())
