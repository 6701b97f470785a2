from .backends import HaarCascadeFaceBackend, MediaPipeFaceBackend, build_face_backend
from .presence import FaceBackend, FacePresenceDetector

__all__ = [
    "FaceBackend",
    "FacePresenceDetector",
    "HaarCascadeFaceBackend",
    "MediaPipeFaceBackend",
    "build_face_backend",
]
