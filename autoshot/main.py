from __future__ import annotations

import argparse
import os
import threading
import time
from pathlib import Path
from queue import Queue

import cv2

from autoshot.camera import OpenCVFrameSource
from autoshot.capture import CaptureArbiter, CaptureRequest
from autoshot.config import DETECTOR_BACKENDS, FAILURE_POLICIES, AutoshotSettings
from autoshot.consumer import COMMAND_CLOSE, COMMAND_QUIT, PipelineListener, PreviewWindow
from autoshot.exceptions import CameraError, LuminanceError
from autoshot.face_module import FaceBackend, FacePresenceDetector, build_face_backend
from autoshot.lighting import FailurePolicy, LuminanceSampler, mean_luminance
from autoshot.pipeline import FramePipeline
from autoshot.utils import CrossThreadPublisher, PerformanceTracker, configure_logger, drain, put_latest
from autoshot.utils.publisher import (
    TOPIC_CAPTURE_REQUESTED,
    TOPIC_CAPTURED,
    TOPIC_FACES,
    TOPIC_LIGHTING,
    TOPIC_SESSION_RESET,
)
from autoshot.utils.types import CapturedArtifact, Envelope, FramePacket


class CaptureRuntime:
    """Frame thread + consumer loop around one :class:`FramePipeline`.

    The frame thread reads and evaluates frames. The calling thread is the
    consumer: it drains the publisher, performs requested still captures
    against the frame source and drives the listener.
    """

    def __init__(
        self,
        settings: AutoshotSettings,
        source=None,
        backend: FaceBackend | None = None,
        listener: PipelineListener | None = None,
    ) -> None:
        self.settings = settings
        self.settings.ensure_directories()
        self.logger = configure_logger(settings.log_dir)
        self.metrics = PerformanceTracker()
        self.stop_event = threading.Event()
        self.publisher = CrossThreadPublisher()
        self.display_queue: Queue[FramePacket] = Queue(maxsize=settings.queue_size)

        self.source = source or OpenCVFrameSource(
            camera_index=settings.camera_index,
            width=settings.frame_width,
            height=settings.frame_height,
            fps=settings.frame_fps,
            output_dir=settings.capture_dir,
            jpeg_quality=settings.jpeg_quality,
        )
        if backend is None:
            backend = build_face_backend(
                settings.detector_backend,
                min_detection_confidence=settings.detection_confidence,
                min_face_size=settings.min_face_size,
            )

        self.sampler = LuminanceSampler(
            threshold=settings.brightness_threshold,
            interval_seconds=settings.luminance_interval_seconds,
            failure_policy=FailurePolicy(settings.lighting_failure_policy),
        )
        self.detector = FacePresenceDetector(backend)
        self.arbiter = CaptureArbiter(self.publisher, timeout_seconds=settings.capture_timeout_seconds)
        self.pipeline = FramePipeline(
            sampler=self.sampler,
            detector=self.detector,
            arbiter=self.arbiter,
            publisher=self.publisher,
            metrics=self.metrics,
        )
        self.listener = listener or PreviewWindow(mirror=settings.mirror_preview, headless=settings.headless)

        self.captures: list[CapturedArtifact] = []
        self.start_time = time.perf_counter()

    def run(self) -> dict[str, float]:
        self.source.open()
        self.start_time = time.perf_counter()
        self.logger.info(
            "Runtime initialized",
            extra={
                "event": "runtime_initialized",
                "camera_index": self.settings.camera_index,
                "detector": self.settings.detector_backend,
                "brightness_threshold": self.settings.brightness_threshold,
                "luminance_interval": self.settings.luminance_interval_seconds,
                "capture_timeout": self.settings.capture_timeout_seconds,
            },
        )

        worker = threading.Thread(target=self._frame_worker, name="frame-thread", daemon=True)
        worker.start()
        try:
            self._consumer_loop()
        finally:
            self.stop_event.set()
            worker.join(timeout=1.5)
            self.detector.close()
            self.source.close()
            close = getattr(self.listener, "close", None)
            if close is not None:
                close()

        return self.summary()

    def summary(self) -> dict[str, float]:
        duration = max(1e-6, time.perf_counter() - self.start_time)
        snapshot = self.metrics.snapshot()
        return {
            "duration_seconds": duration,
            "frames": snapshot.get("frames", {}).get("calls", 0.0),
            "frame_fps": snapshot.get("frames", {}).get("fps", 0.0),
            "face_latency_ms": snapshot.get("faces", {}).get("latency_ms", 0.0),
            "luminance_samples": float(self.sampler.evaluations),
            "luminance_skipped": snapshot.get("luminance", {}).get("skipped", 0.0),
            "capture_requests": float(self.arbiter.requests_dispatched),
            "captures": float(len(self.captures)),
        }

    def _frame_worker(self) -> None:
        read_failures = 0
        while not self.stop_event.is_set():
            try:
                packet = self.source.read()
            except CameraError as exc:
                read_failures += 1
                if read_failures == 1 or read_failures % 100 == 0:
                    self.logger.warning(
                        "Frame read failed",
                        extra={"event": "frame_read_failed", "failures": read_failures, "error": str(exc)},
                    )
                time.sleep(0.01)
                continue
            read_failures = 0

            try:
                self.pipeline.process(packet)
            except Exception as exc:
                self.logger.exception(
                    "Frame processing failure",
                    extra={"event": "frame_failure", "frame_id": packet.frame_id, "error": str(exc)},
                )
                continue

            put_latest(self.display_queue, packet)
            if self.settings.benchmark_seconds > 0:
                if (time.perf_counter() - self.start_time) >= self.settings.benchmark_seconds:
                    self.stop_event.set()

    def _consumer_loop(self) -> None:
        last_metrics_log = time.perf_counter()
        while not self.stop_event.is_set():
            self.publisher.wait(timeout=0.03)
            self.pump()

            frames = drain(self.display_queue)
            show = getattr(self.listener, "show", None)
            command = show(frames[-1] if frames else None) if show is not None else None
            if command == COMMAND_QUIT:
                self.stop_event.set()
                break
            if command == COMMAND_CLOSE:
                self.close_captured_view()

            if self.settings.exit_on_capture and self.captures:
                self.stop_event.set()
                break

            now = time.perf_counter()
            if now - last_metrics_log >= self.settings.metrics_log_seconds:
                self.logger.info(
                    "Performance snapshot",
                    extra={"event": "metrics", "snapshot": self.metrics.snapshot(), "state": self.arbiter.state.value},
                )
                last_metrics_log = now

    def pump(self) -> int:
        """Deliver everything the frame thread published so far. Consumer thread only."""
        envelopes = self.publisher.drain()
        for envelope in envelopes:
            self._dispatch(envelope)
        return len(envelopes)

    def _dispatch(self, envelope: Envelope) -> None:
        if envelope.topic == TOPIC_FACES:
            self.listener.on_faces_changed(envelope.payload)
        elif envelope.topic == TOPIC_LIGHTING:
            self.listener.on_lighting_changed(envelope.payload)
        elif envelope.topic == TOPIC_CAPTURE_REQUESTED:
            self._perform_capture(envelope.payload)
        elif envelope.topic == TOPIC_CAPTURED:
            self.captures.append(envelope.payload)
            self.listener.on_captured(envelope.payload)
        elif envelope.topic == TOPIC_SESSION_RESET:
            self.listener.on_session_reset()

    def _perform_capture(self, request: CaptureRequest) -> None:
        try:
            artifact = self.source.capture_still(request.options)
        except Exception as exc:
            self.arbiter.fail(request.request_id, exc)
            return
        self.arbiter.complete(request.request_id, artifact)

    def close_captured_view(self) -> None:
        self.arbiter.reset()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Automatic selfie capture: one still once light and face line up")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Watch the camera and capture once conditions are met")
    run.add_argument("--camera", type=int, default=None, help="Camera index")
    run.add_argument("--width", type=int, default=None, help="Frame width")
    run.add_argument("--height", type=int, default=None, help="Frame height")
    run.add_argument("--fps", type=int, default=None, help="Camera FPS")
    run.add_argument("--threshold", type=float, default=None, help="Mean brightness threshold (0-255)")
    run.add_argument("--interval", type=float, default=None, help="Seconds between luminance samples")
    run.add_argument("--lighting-failure-policy", choices=FAILURE_POLICIES, default=None)
    run.add_argument("--detector", choices=DETECTOR_BACKENDS, default=None, help="Face detection backend")
    run.add_argument("--detection-confidence", type=float, default=None)
    run.add_argument("--min-face-size", type=float, default=None, help="Minimum face width as a fraction of the frame")
    run.add_argument("--capture-timeout", type=float, default=None, help="Seconds before a pending capture is retried (0 waits forever)")
    run.add_argument("--jpeg-quality", type=int, default=None)
    run.add_argument("--no-mirror", action="store_true", help="Show the preview unmirrored")
    run.add_argument("--headless", action="store_true", help="No preview window")
    run.add_argument("--exit-on-capture", action="store_true", help="Stop after the first successful capture")
    run.add_argument("--benchmark-seconds", type=int, default=None, help="Stop after N seconds")

    lum = subparsers.add_parser("luminance", help="Report mean luminance of image files")
    lum.add_argument("images", nargs="+", type=Path)
    lum.add_argument("--threshold", type=float, default=None)
    return parser


def _apply_overrides(settings: AutoshotSettings, args: argparse.Namespace) -> AutoshotSettings:
    if args.camera is not None:
        settings.camera_index = args.camera
    if args.width is not None:
        settings.frame_width = args.width
    if args.height is not None:
        settings.frame_height = args.height
    if args.fps is not None:
        settings.frame_fps = args.fps
    if args.threshold is not None:
        settings.brightness_threshold = args.threshold
    if args.interval is not None:
        settings.luminance_interval_seconds = max(0.0, args.interval)
    if args.lighting_failure_policy is not None:
        settings.lighting_failure_policy = args.lighting_failure_policy
    if args.detector is not None:
        settings.detector_backend = args.detector
    if args.detection_confidence is not None:
        settings.detection_confidence = args.detection_confidence
    if args.min_face_size is not None:
        settings.min_face_size = min(1.0, max(0.0, args.min_face_size))
    if args.capture_timeout is not None:
        settings.capture_timeout_seconds = max(0.0, args.capture_timeout)
    if args.jpeg_quality is not None:
        settings.jpeg_quality = min(100, max(1, args.jpeg_quality))
    if args.no_mirror:
        settings.mirror_preview = False
    if args.headless:
        settings.headless = True
    if args.exit_on_capture:
        settings.exit_on_capture = True
    if args.benchmark_seconds is not None:
        settings.benchmark_seconds = max(0, args.benchmark_seconds)
    return settings


def _run_command(args: argparse.Namespace, project_root: Path) -> int:
    settings = _apply_overrides(AutoshotSettings.from_env(project_root=project_root), args)
    runtime = CaptureRuntime(settings)
    summary = runtime.run()
    print(
        "Session summary: "
        f"duration={summary['duration_seconds']:.2f}s, "
        f"frames={summary['frames']:.0f} ({summary['frame_fps']:.1f}fps), "
        f"face={summary['face_latency_ms']:.1f}ms, "
        f"luminance_samples={summary['luminance_samples']:.0f} (skipped {summary['luminance_skipped']:.0f}), "
        f"requests={summary['capture_requests']:.0f}, "
        f"captures={summary['captures']:.0f}"
    )
    for artifact in runtime.captures:
        print(f"Captured: {artifact.path}")
    return 0


def _luminance_command(args: argparse.Namespace, project_root: Path) -> int:
    settings = AutoshotSettings.from_env(project_root=project_root)
    threshold = settings.brightness_threshold if args.threshold is None else args.threshold
    status = 0
    for path in args.images:
        image = cv2.imread(str(path))
        if image is None:
            print(f"{path}: unreadable image")
            status = 1
            continue
        try:
            mean = mean_luminance(image)
        except LuminanceError as exc:
            print(f"{path}: {exc}")
            status = 1
            continue
        verdict = "lit" if mean > threshold else "dark"
        print(f"{path}: mean={mean:.1f} threshold={threshold:.1f} -> {verdict}")
    return status


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    project_root = Path(os.getenv("AUTOSHOT_HOME", Path.cwd())).resolve()
    try:
        if args.command == "run":
            return _run_command(args, project_root)
        if args.command == "luminance":
            return _luminance_command(args, project_root)
    except KeyboardInterrupt:
        print("\nStopped by user.")
        return 1
    except Exception as exc:
        print(f"Error: {exc}")
        return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
