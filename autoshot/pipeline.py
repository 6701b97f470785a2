from __future__ import annotations

import time
from dataclasses import dataclass

from autoshot.capture import CaptureArbiter, CaptureState, Decision
from autoshot.face_module import FacePresenceDetector
from autoshot.lighting import LuminanceSampler
from autoshot.utils.metrics import PerformanceTracker
from autoshot.utils.publisher import CrossThreadPublisher
from autoshot.utils.types import FaceBox, FramePacket


@dataclass(frozen=True)
class FrameOutcome:
    frame_id: int
    faces: tuple[FaceBox, ...]
    lit: bool
    sampled: bool
    decision: Decision

    @property
    def state(self) -> CaptureState:
        return self.decision.session.state


class FramePipeline:
    """Per-frame decision path, run on the frame thread only.

    Lighting is read once per frame after the sampler had its chance to
    update it, so the arbiter always sees the value that was published for
    this frame.
    """

    def __init__(
        self,
        sampler: LuminanceSampler,
        detector: FacePresenceDetector,
        arbiter: CaptureArbiter,
        publisher: CrossThreadPublisher,
        metrics: PerformanceTracker | None = None,
    ) -> None:
        self.sampler = sampler
        self.detector = detector
        self.arbiter = arbiter
        self.publisher = publisher
        self.metrics = metrics or PerformanceTracker()

    def process(self, packet: FramePacket) -> FrameOutcome:
        started = time.perf_counter()

        sampled = self.sampler.sample(packet)
        if sampled is not None:
            self.metrics.update("luminance", (time.perf_counter() - started) * 1000.0)
            self.publisher.publish_lighting(sampled, packet.frame_id)
        else:
            self.metrics.skip("luminance")
        lit = self.sampler.state

        detect_started = time.perf_counter()
        faces = self.detector.detect(packet)
        self.metrics.update("faces", (time.perf_counter() - detect_started) * 1000.0)

        decision = self.arbiter.on_frame(packet.frame_id, faces, lit, now=packet.timestamp)
        if decision.cleared or decision.session.captured:
            self.publisher.clear_overlay(packet.frame_id)
        else:
            self.publisher.publish_faces(faces, packet.frame_id)
            self.publisher.publish_lighting(lit, packet.frame_id)

        self.metrics.update("frames", (time.perf_counter() - started) * 1000.0)
        return FrameOutcome(
            frame_id=packet.frame_id,
            faces=faces,
            lit=lit,
            sampled=sampled is not None,
            decision=decision,
        )
