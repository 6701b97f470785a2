from .capture import backend_candidates, open_camera_capture
from .source import OpenCVFrameSource

__all__ = ["OpenCVFrameSource", "backend_candidates", "open_camera_capture"]
