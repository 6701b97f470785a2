from autoshot.capture import CaptureState
from autoshot.utils.publisher import TOPIC_FACES, TOPIC_LIGHTING
from conftest import FACE, PipelineHarness, ScriptedBackend


def test_face_and_light_capture_exactly_once():
    backend = ScriptedBackend([[]] * 9 + [[FACE]], default=[FACE])
    harness = PipelineHarness(backend, interval=0.1)

    states = []
    for frame_id in range(1, 10):
        states.append(harness.run_frame(frame_id, brightness=200).state)
    assert set(states) == {CaptureState.IDLE}
    assert harness.sampler.evaluations >= 3
    assert harness.pending_requests() == []

    outcome = harness.run_frame(10, brightness=200)
    assert outcome.state is CaptureState.CAPTURE_IN_FLIGHT
    requests = harness.pending_requests()
    assert len(requests) == 1
    assert harness.succeed(requests[0], "/tmp/selfie.jpg")

    outcome = harness.run_frame(11, brightness=200)
    assert outcome.state is CaptureState.CAPTURED
    for frame_id in range(12, 40):
        assert harness.run_frame(frame_id, brightness=200).state is CaptureState.CAPTURED
    assert harness.pending_requests() == []
    assert harness.arbiter.requests_dispatched == 1
    assert harness.arbiter.session.artifact_path == "/tmp/selfie.jpg"


def test_dark_scene_stays_armed_forever():
    harness = PipelineHarness(ScriptedBackend(default=[FACE]), interval=0.1)
    for frame_id in range(1, 301):
        assert harness.run_frame(frame_id, brightness=50).state is CaptureState.ARMED
    assert harness.pending_requests() == []
    assert harness.arbiter.requests_dispatched == 0


def test_losing_the_face_forgets_the_armed_state():
    script = [[FACE]] * 5 + [[]] + [[FACE]]
    harness = PipelineHarness(ScriptedBackend(script, default=[FACE]))

    assert harness.run_frame(1).state is CaptureState.CAPTURE_IN_FLIGHT
    first = harness.pending_requests()[0]
    for frame_id in range(2, 6):
        assert harness.run_frame(frame_id).state is CaptureState.CAPTURE_IN_FLIGHT
    assert harness.fail(first)

    assert harness.run_frame(6).state is CaptureState.IDLE
    outcome = harness.run_frame(7)
    assert outcome.state is CaptureState.CAPTURE_IN_FLIGHT
    assert outcome.decision.request.frame_id == 7
    assert outcome.decision.request.request_id == first.request_id + 1


def test_failed_capture_is_retried_and_recorded_once():
    harness = PipelineHarness(ScriptedBackend(default=[FACE]))
    seen = [harness.run_frame(1).state]

    first = harness.pending_requests()[0]
    harness.fail(first)
    seen.append(harness.arbiter.state)

    seen.append(harness.run_frame(2).state)
    second = harness.pending_requests()[0]
    assert harness.succeed(second, "/tmp/retry.jpg")
    seen.append(harness.run_frame(3).state)

    assert seen == [
        CaptureState.CAPTURE_IN_FLIGHT,
        CaptureState.ARMED,
        CaptureState.CAPTURE_IN_FLIGHT,
        CaptureState.CAPTURED,
    ]
    assert harness.arbiter.captures_completed == 1
    assert harness.arbiter.session.artifact_path == "/tmp/retry.jpg"
    assert not harness.succeed(first, "/tmp/late.jpg")


def test_detector_failure_is_one_empty_frame():
    backend = ScriptedBackend([[FACE], RuntimeError("boom"), [FACE]])
    harness = PipelineHarness(backend)

    harness.run_frame(1, brightness=50)
    outcome = harness.run_frame(2, brightness=50)
    assert outcome.faces == ()
    assert outcome.state is CaptureState.IDLE
    assert harness.run_frame(3, brightness=50).state is CaptureState.ARMED
    assert harness.detector.failures == 1


def test_overlay_is_cleared_once_when_faces_disappear():
    harness = PipelineHarness(ScriptedBackend([[FACE]], default=[]))
    harness.run_frame(1, brightness=50)
    published = harness.publisher.drain()
    assert (TOPIC_FACES, (FACE,)) in [(env.topic, env.payload) for env in published]

    harness.run_frame(2, brightness=50)
    cleared = [(env.topic, env.payload) for env in harness.publisher.drain()]
    assert cleared == [(TOPIC_FACES, ())]

    harness.run_frame(3, brightness=50)
    assert harness.publisher.drain() == []


def test_lighting_is_published_when_sampled():
    harness = PipelineHarness(ScriptedBackend(default=[]), interval=0.0)
    outcome = harness.run_frame(1, brightness=220)
    assert outcome.sampled and outcome.lit
    # No faces: the overlay is cleared, so the consumer sees lighting go back to False.
    lighting = [env.payload for env in harness.publisher.drain() if env.topic == TOPIC_LIGHTING]
    assert lighting == [False]
    assert harness.sampler.state is True


def test_capture_timeout_after_face_lost_stays_idle():
    harness = PipelineHarness(ScriptedBackend([[FACE], [], []], default=[FACE]), timeout_seconds=0.05)

    assert harness.run_frame(1).state is CaptureState.CAPTURE_IN_FLIGHT
    first = harness.pending_requests()[0]
    assert harness.run_frame(2).state is CaptureState.IDLE
    harness.publisher.drain()

    outcome = harness.run_frame(3)
    assert outcome.decision.timed_out
    assert outcome.decision.cleared
    assert outcome.state is CaptureState.IDLE
    assert harness.publisher.drain() == []
    assert not harness.succeed(first)

    outcome = harness.run_frame(4)
    assert outcome.state is CaptureState.CAPTURE_IN_FLIGHT
    assert outcome.decision.request.request_id == first.request_id + 1
