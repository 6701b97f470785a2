from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np


@dataclass
class FramePacket:
    frame_id: int
    timestamp: float
    image: np.ndarray

    @property
    def height(self) -> int:
        return int(self.image.shape[0])

    @property
    def width(self) -> int:
        return int(self.image.shape[1])


@dataclass(frozen=True)
class FaceBox:
    """Face rectangle normalized to the frame (0.0 - 1.0)."""

    x: float
    y: float
    width: float
    height: float
    score: float = 1.0

    def to_pixels(self, frame_width: int, frame_height: int) -> tuple[int, int, int, int]:
        x1 = int(round(self.x * frame_width))
        y1 = int(round(self.y * frame_height))
        x2 = int(round((self.x + self.width) * frame_width))
        y2 = int(round((self.y + self.height) * frame_height))
        return x1, y1, x2, y2


@dataclass(frozen=True)
class CaptureOptions:
    flash: str = "off"
    enable_shutter_sound: bool = False
    quality_prioritization: str = "quality"


@dataclass(frozen=True)
class CapturedArtifact:
    path: str
    width: int
    height: int
    captured_at: float


@dataclass(frozen=True)
class Envelope:
    topic: str
    frame_id: int
    payload: Any
