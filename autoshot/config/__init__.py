from .settings import DETECTOR_BACKENDS, FAILURE_POLICIES, AutoshotSettings

__all__ = ["AutoshotSettings", "DETECTOR_BACKENDS", "FAILURE_POLICIES"]
