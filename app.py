"""
Document Scanner - Streamlit front end

Take a photo (or upload one), check the detected document outline, adjust
the corners if needed, then download a flattened and filtered scan.
"""

import logging
from typing import Optional

import numpy as np
import streamlit as st

from docscanner import DegenerateGeometry, FilterMode, ScannerConfig
from docscanner.overlay import draw_detection
from image_processing import (
    create_thumbnail,
    cv2_to_pil,
    detect_corners,
    encode_image,
    load_still,
    scan_still,
)

logger = logging.getLogger(__name__)

FILTER_LABELS = {
    FilterMode.NONE: "Original",
    FilterMode.ENHANCE: "Enhanced",
    FilterMode.BLACK_WHITE: "Black & white",
    FilterMode.GRAYSCALE: "Grayscale",
}

CORNER_LABELS = ["Top-left", "Top-right", "Bottom-right", "Bottom-left"]


# Page configuration
st.set_page_config(
    page_title="Document Scanner",
    page_icon="📄",
    layout="wide",
)


def init_session_state():
    """Initialize session state variables."""
    if 'source_key' not in st.session_state:
        st.session_state.source_key = None
    if 'image' not in st.session_state:
        st.session_state.image = None
    if 'corners' not in st.session_state:
        st.session_state.corners = None
    if 'detected' not in st.session_state:
        st.session_state.detected = False
    if 'scan' not in st.session_state:
        st.session_state.scan = None


def sidebar_config() -> ScannerConfig:
    """Expose the detection and filter options that are worth tuning by hand."""
    st.sidebar.title("📄 Scanner settings")
    defaults = ScannerConfig()
    min_area = st.sidebar.slider("Min document area (%)", 1, 50, int(defaults.min_area_ratio * 100))
    canny_low, canny_high = st.sidebar.slider(
        "Edge thresholds", 0, 255, (int(defaults.canny_low), int(defaults.canny_high))
    )
    enhance_method = st.sidebar.radio("Enhance method", ["linear", "clahe"], horizontal=True)
    window = st.sidebar.slider(
        "B&W window (px)", 3, 51, defaults.adaptive_threshold_window, step=2
    )
    return defaults.replace(
        min_area_ratio=min_area / 100.0,
        canny_low=float(canny_low),
        canny_high=float(max(canny_low, canny_high)),
        enhance_method=enhance_method,
        adaptive_threshold_window=window,
    )


def load_input(config: ScannerConfig) -> Optional[np.ndarray]:
    """Read the camera shot or upload and (re)detect corners when it changes."""
    tab_camera, tab_upload = st.tabs(["📷 Camera", "📤 Upload"])
    with tab_camera:
        shot = st.camera_input("Point the camera at the document")
    with tab_upload:
        upload = st.file_uploader("Choose a photo", type=['jpg', 'jpeg', 'png', 'webp'])

    source = shot or upload
    if source is None:
        return None

    source_key = (source.name, source.size, config)
    if source_key != st.session_state.source_key:
        try:
            image = load_still(source.getvalue())
        except ValueError as e:
            st.error(str(e))
            return None
        corners, detected = detect_corners(image, config)
        st.session_state.source_key = source_key
        st.session_state.image = image
        st.session_state.corners = corners
        st.session_state.detected = detected
        st.session_state.scan = None
        # Corner inputs keep their own state; drop it so they show the new corners
        for i in range(4):
            st.session_state.pop(f"corner_{i}_x", None)
            st.session_state.pop(f"corner_{i}_y", None)
        logger.info("New input %s, document detected: %s", source.name, detected)

    return st.session_state.image


def corner_editor(image: np.ndarray) -> np.ndarray:
    """Let the user nudge each corner; returns the edited corners."""
    height, width = image.shape[:2]
    corners = np.array(st.session_state.corners, dtype=np.float32)

    with st.expander("Adjust corners"):
        cols = st.columns(4)
        for i, (col, label) in enumerate(zip(cols, CORNER_LABELS)):
            with col:
                st.caption(label)
                corners[i, 0] = st.number_input(
                    "x", 0.0, float(width), float(corners[i, 0]), key=f"corner_{i}_x"
                )
                corners[i, 1] = st.number_input(
                    "y", 0.0, float(height), float(corners[i, 1]), key=f"corner_{i}_y"
                )

    st.session_state.corners = corners
    return corners


def scan_section(image: np.ndarray, config: ScannerConfig):
    col1, col2 = st.columns(2)

    with col1:
        if st.session_state.detected:
            st.success("Document detected")
        else:
            st.warning("No document found, adjust the corners manually")

        corners = corner_editor(image)
        preview = draw_detection(image, corners, locked=st.session_state.detected)
        st.image(cv2_to_pil(preview), use_container_width=True)

        mode = st.radio(
            "Filter",
            list(FILTER_LABELS),
            format_func=FILTER_LABELS.get,
            horizontal=True,
        )

        if st.button("📄 Scan", type="primary"):
            try:
                st.session_state.scan = scan_still(image, corners, mode, config)
            except DegenerateGeometry as e:
                st.session_state.scan = None
                st.error(f"These corners can't be flattened: {e}")

    with col2:
        scan = st.session_state.scan
        if scan is not None:
            height, width = scan.shape[:2]
            st.image(cv2_to_pil(scan), caption=f"{width} × {height}", use_container_width=True)
            st.download_button(
                "⬇️ Download JPEG",
                data=encode_image(scan, 'JPEG'),
                file_name="scan.jpg",
                mime="image/jpeg",
            )
            st.sidebar.divider()
            st.sidebar.image(create_thumbnail(scan), caption="Last scan")


def main():
    """Main application."""
    init_session_state()
    config = sidebar_config()

    st.title("📄 Document Scanner")

    image = load_input(config)
    if image is None:
        st.info("Take a photo or upload one to get started.")
        return

    scan_section(image, config)


if __name__ == "__main__":
    main()
