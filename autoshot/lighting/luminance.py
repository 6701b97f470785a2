from __future__ import annotations

import logging
from enum import Enum
from typing import Any

import numpy as np

from autoshot.exceptions import LuminanceError
from autoshot.utils.types import FramePacket

logger = logging.getLogger(__name__)

BRIGHTNESS_THRESHOLD = 140.0


class FailurePolicy(str, Enum):
    """What a signal reports when its input cannot be read.

    OPEN keeps the pipeline moving (unreadable frames count as lit), CLOSED
    blocks the trigger until a readable frame arrives.
    """

    OPEN = "open"
    CLOSED = "closed"

    @property
    def fallback(self) -> bool:
        return self is FailurePolicy.OPEN


def mean_luminance(buffer: Any) -> float:
    """Arithmetic mean of every byte sample in ``buffer``."""
    try:
        if isinstance(buffer, np.ndarray):
            samples = np.ascontiguousarray(buffer).view(np.uint8).reshape(-1)
        else:
            samples = np.frombuffer(buffer, dtype=np.uint8)
    except (TypeError, ValueError, AttributeError) as exc:
        raise LuminanceError(f"Unreadable pixel buffer: {exc}") from exc

    if samples.size == 0:
        raise LuminanceError("Pixel buffer is empty.")
    return float(samples.mean(dtype=np.float64))


class LuminanceSampler:
    """Throttled brightness gate.

    At most one evaluation per ``interval_seconds`` of frame time; frames in
    between are skipped without reading their buffer. The result is sticky
    until the next evaluation overwrites it.
    """

    def __init__(
        self,
        threshold: float = BRIGHTNESS_THRESHOLD,
        interval_seconds: float = 1.0,
        failure_policy: FailurePolicy = FailurePolicy.OPEN,
    ) -> None:
        self.threshold = float(threshold)
        self.interval_seconds = max(0.0, float(interval_seconds))
        self.failure_policy = FailurePolicy(failure_policy)
        self._state = False
        self._last_sampled: float | None = None
        self._last_mean: float | None = None
        self.evaluations = 0
        self.failures = 0

    @property
    def state(self) -> bool:
        return self._state

    @property
    def last_mean(self) -> float | None:
        return self._last_mean

    def due(self, timestamp: float) -> bool:
        if self._last_sampled is None:
            return True
        return (timestamp - self._last_sampled) >= self.interval_seconds

    def sample(self, packet: FramePacket) -> bool | None:
        if not self.due(packet.timestamp):
            return None

        self._last_sampled = packet.timestamp
        self.evaluations += 1
        try:
            self._last_mean = mean_luminance(packet.image)
        except Exception as exc:
            self.failures += 1
            self._last_mean = None
            self._state = self.failure_policy.fallback
            logger.warning(
                "Luminance sample failed",
                extra={
                    "event": "luminance_failed",
                    "frame_id": packet.frame_id,
                    "policy": self.failure_policy.value,
                    "error": str(exc),
                },
            )
            return self._state

        self._state = self._last_mean > self.threshold
        logger.debug(
            "Luminance sampled",
            extra={
                "event": "luminance_sampled",
                "frame_id": packet.frame_id,
                "mean": round(self._last_mean, 2),
                "lit": self._state,
            },
        )
        return self._state
