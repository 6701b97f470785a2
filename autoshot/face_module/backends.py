from __future__ import annotations

import logging

import cv2
import numpy as np

from autoshot.exceptions import FaceDetectorError
from autoshot.utils.types import FaceBox

try:
    import mediapipe as mp
except Exception:  # pragma: no cover - runtime dependency guard
    mp = None

logger = logging.getLogger(__name__)


def _clip_box(x: float, y: float, width: float, height: float, score: float) -> FaceBox | None:
    x1 = min(1.0, max(0.0, x))
    y1 = min(1.0, max(0.0, y))
    x2 = min(1.0, max(0.0, x + width))
    y2 = min(1.0, max(0.0, y + height))
    if x2 <= x1 or y2 <= y1:
        return None
    return FaceBox(x=x1, y=y1, width=x2 - x1, height=y2 - y1, score=score)


class MediaPipeFaceBackend:
    """MediaPipe short-range face detection, boxes in normalized frame coordinates."""

    name = "mediapipe"

    def __init__(self, min_detection_confidence: float = 0.5, min_face_size: float = 0.2) -> None:
        if mp is None:
            raise FaceDetectorError("mediapipe is required for the mediapipe detector backend.")

        self.min_face_size = min_face_size
        try:
            self.detector = mp.solutions.face_detection.FaceDetection(
                model_selection=0,
                min_detection_confidence=min_detection_confidence,
            )
        except Exception as exc:
            raise FaceDetectorError(f"Failed to initialize mediapipe face detection: {exc}") from exc

    def detect(self, image: np.ndarray) -> list[FaceBox]:
        try:
            rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
            result = self.detector.process(rgb)
        except Exception as exc:
            raise FaceDetectorError(f"Face detection failed: {exc}") from exc

        if not result.detections:
            return []

        boxes: list[FaceBox] = []
        for det in result.detections:
            rel = det.location_data.relative_bounding_box
            if rel.width < self.min_face_size:
                continue
            score = float(det.score[0]) if det.score else 0.0
            box = _clip_box(rel.xmin, rel.ymin, rel.width, rel.height, score)
            if box is not None:
                boxes.append(box)
        return boxes

    def close(self) -> None:
        self.detector.close()


class HaarCascadeFaceBackend:
    """OpenCV frontal-face cascade; lighter than mediapipe, no confidence score."""

    name = "haar"

    def __init__(self, min_face_size: float = 0.2, scale_factor: float = 1.1, min_neighbors: int = 5) -> None:
        cascade_path = cv2.data.haarcascades + "haarcascade_frontalface_default.xml"
        self.cascade = cv2.CascadeClassifier(cascade_path)
        if self.cascade.empty():
            raise FaceDetectorError("Failed to initialize OpenCV Haar face detector.")
        self.min_face_size = min_face_size
        self.scale_factor = scale_factor
        self.min_neighbors = min_neighbors

    def detect(self, image: np.ndarray) -> list[FaceBox]:
        try:
            gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
            h, w = gray.shape[:2]
            min_side = max(1, int(self.min_face_size * w))
            rects = self.cascade.detectMultiScale(
                gray,
                scaleFactor=self.scale_factor,
                minNeighbors=self.min_neighbors,
                minSize=(min_side, min_side),
            )
        except cv2.error as exc:
            raise FaceDetectorError(f"Face detection failed: {exc}") from exc

        boxes: list[FaceBox] = []
        for x, y, bw, bh in rects:
            box = _clip_box(x / w, y / h, bw / w, bh / h, 1.0)
            if box is not None:
                boxes.append(box)
        return boxes

    def close(self) -> None:
        pass


def build_face_backend(
    name: str,
    min_detection_confidence: float = 0.5,
    min_face_size: float = 0.2,
) -> MediaPipeFaceBackend | HaarCascadeFaceBackend:
    if name == "mediapipe":
        try:
            return MediaPipeFaceBackend(
                min_detection_confidence=min_detection_confidence,
                min_face_size=min_face_size,
            )
        except FaceDetectorError as exc:
            # Fallback for environments without a usable mediapipe wheel.
            logger.warning(
                "mediapipe unavailable, using Haar cascade",
                extra={"event": "detector_fallback", "error": str(exc)},
            )
            return HaarCascadeFaceBackend(min_face_size=min_face_size)
    if name == "haar":
        return HaarCascadeFaceBackend(min_face_size=min_face_size)
    raise FaceDetectorError(f"Unknown face detector backend: {name}")
