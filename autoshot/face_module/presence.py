from __future__ import annotations

import logging
from typing import Protocol, Sequence

import numpy as np

from autoshot.utils.types import FaceBox, FramePacket

logger = logging.getLogger(__name__)


class FaceBackend(Protocol):
    def detect(self, image: np.ndarray) -> Sequence[FaceBox]: ...


class FacePresenceDetector:
    """Runs the face backend on every frame.

    Backend failures are fail-closed: the frame counts as having no faces and
    the error is logged, so the frame loop keeps running and the next frame
    starts clean. Boxes are passed through untouched; mirroring for a
    front-facing preview belongs to the renderer.
    """

    def __init__(self, backend: FaceBackend) -> None:
        self.backend = backend
        self.failures = 0

    def detect(self, packet: FramePacket) -> tuple[FaceBox, ...]:
        try:
            faces = self.backend.detect(packet.image)
        except Exception as exc:
            self.failures += 1
            logger.warning(
                "Face detection failed",
                extra={"event": "face_detect_failed", "frame_id": packet.frame_id, "error": str(exc)},
            )
            return ()
        return tuple(faces or ())

    def close(self) -> None:
        close = getattr(self.backend, "close", None)
        if close is not None:
            close()
