from __future__ import annotations

import os
import time

import cv2

from autoshot.exceptions import CameraError

_BACKENDS = {
    "auto": "CAP_ANY",
    "v4l2": "CAP_V4L2",
    "dshow": "CAP_DSHOW",
    "msmf": "CAP_MSMF",
    "avfoundation": "CAP_AVFOUNDATION",
}


def backend_candidates() -> list[tuple[str, int]]:
    """Capture APIs to try, in order. AUTOSHOT_CAMERA_BACKENDS overrides the default."""
    raw = os.getenv("AUTOSHOT_CAMERA_BACKENDS", "").strip()
    names = [token.strip().lower() for token in raw.split(",") if token.strip()] or ["auto"]

    candidates: list[tuple[str, int]] = []
    seen: set[int] = set()
    for name in names:
        attr = _BACKENDS.get(name)
        api = getattr(cv2, attr, None) if attr else None
        if api is None or api in seen:
            continue
        seen.add(api)
        candidates.append((name, api))
    return candidates or [("auto", cv2.CAP_ANY)]


def open_camera_capture(camera_index: int, probe_reads: int = 6) -> tuple[cv2.VideoCapture, str]:
    attempted: list[str] = []
    for name, api in backend_candidates():
        attempted.append(name)
        cap = cv2.VideoCapture(camera_index, api)
        if cap.isOpened():
            # Opened is not enough; some drivers never deliver a frame.
            for _ in range(probe_reads):
                ok, frame = cap.read()
                if ok and frame is not None:
                    return cap, name
                time.sleep(0.03)
        cap.release()

    raise CameraError(
        f"Unable to open camera index {camera_index}. Tried backends: {', '.join(attempted)}."
    )
