from __future__ import annotations

import logging

import cv2
import numpy as np

from autoshot.utils.types import CapturedArtifact, FaceBox, FramePacket

logger = logging.getLogger(__name__)

COMMAND_QUIT = "quit"
COMMAND_CLOSE = "close"

_BOX_COLOR = (0, 255, 0)
_LIT_COLOR = (0, 220, 255)
_DARK_COLOR = (90, 90, 90)


class PipelineListener:
    """Consumer-side callbacks. Always invoked on the consumer thread."""

    def on_faces_changed(self, faces: tuple[FaceBox, ...]) -> None:
        pass

    def on_lighting_changed(self, lit: bool) -> None:
        pass

    def on_captured(self, artifact: CapturedArtifact) -> None:
        pass

    def on_session_reset(self) -> None:
        pass


def box_to_display(box: FaceBox, width: int, height: int, mirror: bool) -> tuple[int, int, int, int]:
    """Pixel rectangle (x1, y1, x2, y2) of ``box`` on a ``width`` x ``height`` view.

    With ``mirror`` the view is flipped horizontally, as a front camera
    preview is, so the left edge becomes ``width - (x + w) * width``.
    """
    if not mirror:
        return box.to_pixels(width, height)
    left = (1.0 - (box.x + box.width)) * width
    top = box.y * height
    return (
        int(round(left)),
        int(round(top)),
        int(round(left + box.width * width)),
        int(round(top + box.height * height)),
    )


class PreviewWindow(PipelineListener):
    window_name = "autoshot | X close photo | Q quit"

    def __init__(self, mirror: bool = True, headless: bool = False) -> None:
        self.mirror = mirror
        self.headless = headless
        self.faces: tuple[FaceBox, ...] = ()
        self.lit = False
        self.artifact: CapturedArtifact | None = None
        self.captured_image: np.ndarray | None = None
        self._window_open = False

    def on_faces_changed(self, faces: tuple[FaceBox, ...]) -> None:
        self.faces = faces

    def on_lighting_changed(self, lit: bool) -> None:
        self.lit = lit

    def on_captured(self, artifact: CapturedArtifact) -> None:
        self.artifact = artifact
        self.faces = ()
        self.captured_image = None if self.headless else cv2.imread(artifact.path)
        if self.captured_image is None and not self.headless:
            logger.warning(
                "Captured still could not be loaded for preview",
                extra={"event": "preview_load_failed", "path": artifact.path},
            )

    def on_session_reset(self) -> None:
        self.artifact = None
        self.captured_image = None
        self.faces = ()
        self.lit = False

    def render(self, packet: FramePacket | None) -> np.ndarray | None:
        if self.captured_image is not None:
            view = self.captured_image.copy()
            cv2.putText(view, "X", (view.shape[1] - 40, 40), cv2.FONT_HERSHEY_SIMPLEX, 1.0, (255, 255, 255), 2, cv2.LINE_AA)
            return view
        if packet is None:
            return None

        view = cv2.flip(packet.image, 1) if self.mirror else packet.image.copy()
        h, w = view.shape[:2]
        for box in self.faces:
            x1, y1, x2, y2 = box_to_display(box, w, h, self.mirror)
            cv2.rectangle(view, (x1, y1), (x2, y2), _BOX_COLOR, 2)

        label = "Light OK" if self.lit else "Too dark"
        color = _LIT_COLOR if self.lit else _DARK_COLOR
        cv2.rectangle(view, (0, 0), (w, 40), (30, 30, 30), -1)
        cv2.putText(view, label, (16, 28), cv2.FONT_HERSHEY_SIMPLEX, 0.8, color, 2, cv2.LINE_AA)
        return view

    def show(self, packet: FramePacket | None) -> str | None:
        if self.headless:
            return None

        view = self.render(packet)
        try:
            if not self._window_open:
                cv2.namedWindow(self.window_name, cv2.WINDOW_NORMAL)
                self._window_open = True
            if view is not None:
                cv2.imshow(self.window_name, view)
            key = cv2.waitKey(1) & 0xFF
        except cv2.error:
            self.headless = True
            logger.warning("Display unavailable, switching to headless mode.", extra={"event": "headless_display"})
            return None

        if key in (ord("q"), 27):
            return COMMAND_QUIT
        if key == ord("x") and self.artifact is not None:
            return COMMAND_CLOSE
        return None

    def close(self) -> None:
        if not self._window_open:
            return
        try:
            cv2.destroyWindow(self.window_name)
        except cv2.error:
            pass
        self._window_open = False
