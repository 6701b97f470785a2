import cv2
import numpy as np
import pytest

from autoshot.camera import OpenCVFrameSource
from autoshot.exceptions import CameraError, CaptureError
from autoshot.utils.types import CaptureOptions


class FakeCapture:
    def __init__(self, frames):
        self.frames = list(frames)
        self.released = False

    def read(self):
        if not self.frames:
            return False, None
        return True, self.frames.pop(0)

    def release(self):
        self.released = True


def _frame(value=120):
    return np.full((24, 32, 3), value, dtype=np.uint8)


def test_read_numbers_frames(tmp_path):
    source = OpenCVFrameSource(output_dir=tmp_path)
    source.cap = FakeCapture([_frame(), _frame()])

    first = source.read()
    second = source.read()
    assert (first.frame_id, second.frame_id) == (1, 2)
    assert second.timestamp >= first.timestamp
    assert (first.width, first.height) == (32, 24)


def test_read_before_open_raises(tmp_path):
    with pytest.raises(CameraError):
        OpenCVFrameSource(output_dir=tmp_path).read()


def test_capture_still_writes_jpeg(tmp_path):
    source = OpenCVFrameSource(output_dir=tmp_path / "captures", jpeg_quality=70)
    source.cap = FakeCapture([_frame(180)])

    artifact = source.capture_still(CaptureOptions(quality_prioritization="speed"))

    image = cv2.imread(artifact.path)
    assert image is not None
    assert image.shape[:2] == (24, 32)
    assert (artifact.width, artifact.height) == (32, 24)
    assert artifact.path.endswith(".jpg")


def test_capture_still_without_frame_raises_capture_error(tmp_path):
    source = OpenCVFrameSource(output_dir=tmp_path)
    source.cap = FakeCapture([])
    with pytest.raises(CaptureError):
        source.capture_still(CaptureOptions())


def test_close_releases_capture(tmp_path):
    source = OpenCVFrameSource(output_dir=tmp_path)
    cap = FakeCapture([])
    source.cap = cap
    source.close()
    assert cap.released
    assert source.cap is None
