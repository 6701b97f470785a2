from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off"}


def _env_choice(name: str, default: str, choices: tuple[str, ...]) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    return value if value in choices else default


DETECTOR_BACKENDS = ("mediapipe", "haar")
FAILURE_POLICIES = ("open", "closed")


@dataclass
class AutoshotSettings:
    project_root: Path
    camera_index: int = 0
    frame_width: int = 1280
    frame_height: int = 720
    frame_fps: int = 30
    queue_size: int = 2
    brightness_threshold: float = 140.0
    luminance_interval_seconds: float = 1.0
    lighting_failure_policy: str = "open"
    detector_backend: str = "mediapipe"
    detection_confidence: float = 0.5
    min_face_size: float = 0.2
    capture_timeout_seconds: float = 10.0
    jpeg_quality: int = 90
    mirror_preview: bool = True
    headless: bool = False
    exit_on_capture: bool = False
    metrics_log_seconds: float = 5.0
    benchmark_seconds: int = 0

    @property
    def log_dir(self) -> Path:
        return self.project_root / "logs"

    @property
    def capture_dir(self) -> Path:
        return self.project_root / "captures"

    def ensure_directories(self) -> None:
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.capture_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_env(cls, project_root: Path) -> "AutoshotSettings":
        return cls(
            project_root=project_root,
            camera_index=_env_int("AUTOSHOT_CAMERA_INDEX", 0),
            frame_width=_env_int("AUTOSHOT_FRAME_WIDTH", 1280),
            frame_height=_env_int("AUTOSHOT_FRAME_HEIGHT", 720),
            frame_fps=_env_int("AUTOSHOT_FRAME_FPS", 30),
            queue_size=max(1, _env_int("AUTOSHOT_QUEUE_SIZE", 2)),
            brightness_threshold=_env_float("AUTOSHOT_BRIGHTNESS_THRESHOLD", 140.0),
            luminance_interval_seconds=max(0.0, _env_float("AUTOSHOT_LUMINANCE_INTERVAL", 1.0)),
            lighting_failure_policy=_env_choice("AUTOSHOT_LIGHTING_FAILURE_POLICY", "open", FAILURE_POLICIES),
            detector_backend=_env_choice("AUTOSHOT_DETECTOR", "mediapipe", DETECTOR_BACKENDS),
            detection_confidence=_env_float("AUTOSHOT_DETECTION_CONFIDENCE", 0.5),
            min_face_size=min(1.0, max(0.0, _env_float("AUTOSHOT_MIN_FACE_SIZE", 0.2))),
            capture_timeout_seconds=max(0.0, _env_float("AUTOSHOT_CAPTURE_TIMEOUT", 10.0)),
            jpeg_quality=min(100, max(1, _env_int("AUTOSHOT_JPEG_QUALITY", 90))),
            mirror_preview=_env_bool("AUTOSHOT_MIRROR_PREVIEW", True),
            headless=_env_bool("AUTOSHOT_HEADLESS", False),
            exit_on_capture=_env_bool("AUTOSHOT_EXIT_ON_CAPTURE", False),
            metrics_log_seconds=max(0.5, _env_float("AUTOSHOT_METRICS_LOG_SECONDS", 5.0)),
            benchmark_seconds=max(0, _env_int("AUTOSHOT_BENCHMARK_SECONDS", 0)),
        )
