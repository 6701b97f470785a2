"""Automatic still capture once a face is visible in sufficient light."""

from autoshot.capture import CaptureArbiter, CaptureSession, CaptureState
from autoshot.face_module import FacePresenceDetector
from autoshot.lighting import FailurePolicy, LuminanceSampler
from autoshot.pipeline import FramePipeline, FrameOutcome
from autoshot.utils.publisher import CrossThreadPublisher
from autoshot.utils.types import CapturedArtifact, CaptureOptions, FaceBox, FramePacket

__version__ = "0.1.0"

__all__ = [
    "CaptureArbiter",
    "CaptureOptions",
    "CaptureSession",
    "CaptureState",
    "CapturedArtifact",
    "CrossThreadPublisher",
    "FaceBox",
    "FacePresenceDetector",
    "FailurePolicy",
    "FrameOutcome",
    "FramePacket",
    "FramePipeline",
    "LuminanceSampler",
]
