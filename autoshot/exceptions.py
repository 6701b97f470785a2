class AutoshotError(Exception):
    """Base exception for the capture pipeline."""


class CameraError(AutoshotError):
    """Raised when the webcam cannot be opened or read."""


class LuminanceError(AutoshotError):
    """Raised when a frame buffer cannot be sampled for brightness."""


class FaceDetectorError(AutoshotError):
    """Raised when a face detection backend fails to initialize or run."""


class CaptureError(AutoshotError):
    """Raised when a still capture cannot be produced."""
