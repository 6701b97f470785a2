from __future__ import annotations

import logging
import time
from datetime import datetime
from pathlib import Path
from threading import Lock

import cv2

from autoshot.exceptions import CameraError, CaptureError
from autoshot.utils.types import CapturedArtifact, CaptureOptions, FramePacket

from .capture import open_camera_capture

logger = logging.getLogger(__name__)

QUALITY_JPEG = 95


class OpenCVFrameSource:
    """Webcam frame source.

    ``read`` is called from the frame thread and ``capture_still`` from the
    consumer thread; both go through one lock because ``cv2.VideoCapture`` is
    not thread-safe.
    """

    def __init__(
        self,
        camera_index: int = 0,
        width: int = 1280,
        height: int = 720,
        fps: int = 30,
        output_dir: Path = Path("captures"),
        jpeg_quality: int = 90,
    ) -> None:
        self.camera_index = camera_index
        self.width = width
        self.height = height
        self.fps = fps
        self.output_dir = Path(output_dir)
        self.jpeg_quality = jpeg_quality
        self.cap: cv2.VideoCapture | None = None
        self.backend_name: str | None = None
        self._lock = Lock()
        self._frame_id = 0

    def open(self) -> None:
        with self._lock:
            if self.cap is not None:
                return
            self.cap, self.backend_name = open_camera_capture(self.camera_index)
            self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
            self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
            self.cap.set(cv2.CAP_PROP_FPS, self.fps)
        cv2.setUseOptimized(True)
        logger.info(
            "Camera stream opened",
            extra={"event": "camera_opened", "camera_index": self.camera_index, "backend": self.backend_name},
        )

    def _grab(self):
        if self.cap is None:
            raise CameraError("Camera stream is not open.")
        ok, frame = self.cap.read()
        if not ok or frame is None:
            raise CameraError("Failed to read frame from camera.")
        return frame

    def read(self) -> FramePacket:
        with self._lock:
            frame = self._grab()
            self._frame_id += 1
            return FramePacket(frame_id=self._frame_id, timestamp=time.perf_counter(), image=frame)

    def capture_still(self, options: CaptureOptions) -> CapturedArtifact:
        if options.flash != "off" or options.enable_shutter_sound:
            logger.debug(
                "Flash and shutter sound are not available on webcams",
                extra={"event": "capture_option_ignored", "flash": options.flash},
            )
        quality = QUALITY_JPEG if options.quality_prioritization == "quality" else self.jpeg_quality

        with self._lock:
            try:
                frame = self._grab()
            except CameraError as exc:
                raise CaptureError(f"Still capture failed: {exc}") from exc

        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / f"capture_{datetime.now().strftime('%Y%m%d_%H%M%S_%f')}.jpg"
        if not cv2.imwrite(str(path), frame, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)]):
            raise CaptureError(f"Failed to write still image to {path}")

        h, w = frame.shape[:2]
        return CapturedArtifact(path=str(path), width=int(w), height=int(h), captured_at=time.time())

    def close(self) -> None:
        with self._lock:
            if self.cap is not None:
                self.cap.release()
                self.cap = None
