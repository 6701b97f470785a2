from autoshot.utils import PerformanceTracker
from conftest import PipelineHarness, ScriptedBackend


def test_tracker_counts_calls_and_smooths_latency():
    tracker = PerformanceTracker()
    tracker.update("faces", 10.0)
    tracker.update("faces", 20.0)

    snapshot = tracker.snapshot()["faces"]
    assert snapshot["calls"] == 2.0
    assert snapshot["latency_ms"] == 12.0
    assert snapshot["skipped"] == 0.0


def test_skipped_stage_has_no_latency():
    tracker = PerformanceTracker()
    tracker.skip("luminance")
    tracker.skip("luminance")

    snapshot = tracker.snapshot()["luminance"]
    assert snapshot["skipped"] == 2.0
    assert snapshot["calls"] == 0.0
    assert snapshot["fps"] == 0.0


def test_pipeline_counts_frames_the_sampler_passes_over():
    harness = PipelineHarness(ScriptedBackend(default=[]), interval=1.0)
    for frame_id in range(1, 31):
        harness.run_frame(frame_id)

    luminance = harness.pipeline.metrics.snapshot()["luminance"]
    assert luminance["calls"] == 1.0
    assert luminance["skipped"] == 29.0
    assert harness.pipeline.metrics.snapshot()["frames"]["calls"] == 30.0
