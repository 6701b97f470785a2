from __future__ import annotations

import time
from pathlib import Path

import numpy as np
import pytest

from autoshot.capture import CaptureArbiter
from autoshot.config import AutoshotSettings
from autoshot.consumer import PipelineListener
from autoshot.exceptions import CameraError, CaptureError
from autoshot.face_module import FacePresenceDetector
from autoshot.lighting import LuminanceSampler
from autoshot.pipeline import FramePipeline
from autoshot.utils.publisher import TOPIC_CAPTURE_REQUESTED, CrossThreadPublisher
from autoshot.utils.types import CapturedArtifact, FaceBox, FramePacket

FACE = FaceBox(x=0.3, y=0.2, width=0.35, height=0.45, score=0.9)


def make_packet(frame_id: int, brightness: int = 200, fps: float = 30.0, size: int = 8) -> FramePacket:
    image = np.full((size, size, 3), brightness, dtype=np.uint8)
    return FramePacket(frame_id=frame_id, timestamp=(frame_id - 1) / fps, image=image)


class ScriptedBackend:
    """Returns scripted results per call; an Exception entry is raised instead."""

    def __init__(self, script=None, default=()):
        self.script = list(script or [])
        self.default = list(default)
        self.calls = 0

    def detect(self, image):
        self.calls += 1
        if self.script:
            result = self.script.pop(0)
        else:
            result = self.default
        if isinstance(result, Exception):
            raise result
        return list(result)


class FakeFrameSource:
    def __init__(self, tmp_path: Path, brightness: int = 200, capture_script=None, delay: float = 0.0):
        self.tmp_path = tmp_path
        self.brightness = brightness
        self.capture_script = list(capture_script or [])
        self.delay = delay
        self.frame_id = 0
        self.capture_calls = 0
        self.opened = False
        self.closed = False

    def open(self):
        self.opened = True

    def close(self):
        self.closed = True

    def read(self) -> FramePacket:
        if not self.opened:
            raise CameraError("not open")
        if self.delay:
            time.sleep(self.delay)
        self.frame_id += 1
        image = np.full((8, 8, 3), self.brightness, dtype=np.uint8)
        return FramePacket(frame_id=self.frame_id, timestamp=time.perf_counter(), image=image)

    def capture_still(self, options) -> CapturedArtifact:
        self.capture_calls += 1
        outcome = self.capture_script.pop(0) if self.capture_script else None
        if isinstance(outcome, Exception):
            raise outcome
        path = self.tmp_path / f"capture_{self.capture_calls}.jpg"
        return CapturedArtifact(path=str(path), width=8, height=8, captured_at=time.time())


class RecordingListener(PipelineListener):
    def __init__(self):
        self.faces = []
        self.lighting = []
        self.captured = []
        self.resets = 0

    def on_faces_changed(self, faces):
        self.faces.append(faces)

    def on_lighting_changed(self, lit):
        self.lighting.append(lit)

    def on_captured(self, artifact):
        self.captured.append(artifact)

    def on_session_reset(self):
        self.resets += 1


class PipelineHarness:
    """Frame pipeline plus a hand-driven consumer for capture requests."""

    def __init__(self, backend: ScriptedBackend, timeout_seconds: float = 0.0, interval: float = 1.0):
        self.publisher = CrossThreadPublisher()
        self.sampler = LuminanceSampler(threshold=140, interval_seconds=interval)
        self.detector = FacePresenceDetector(backend)
        self.arbiter = CaptureArbiter(self.publisher, timeout_seconds=timeout_seconds)
        self.pipeline = FramePipeline(self.sampler, self.detector, self.arbiter, self.publisher)

    def run_frame(self, frame_id: int, brightness: int = 200):
        return self.pipeline.process(make_packet(frame_id, brightness))

    def pending_requests(self):
        return [env.payload for env in self.publisher.drain() if env.topic == TOPIC_CAPTURE_REQUESTED]

    def succeed(self, request, path: str = "/tmp/still.jpg") -> bool:
        artifact = CapturedArtifact(path=path, width=8, height=8, captured_at=0.0)
        return self.arbiter.complete(request.request_id, artifact)

    def fail(self, request) -> bool:
        return self.arbiter.fail(request.request_id, CaptureError("shutter busy"))


@pytest.fixture
def settings(tmp_path: Path) -> AutoshotSettings:
    return AutoshotSettings(
        project_root=tmp_path,
        luminance_interval_seconds=0.0,
        capture_timeout_seconds=0.0,
        headless=True,
        metrics_log_seconds=60.0,
    )
