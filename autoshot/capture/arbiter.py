"""One-shot capture state machine.

The session is an immutable :class:`CaptureSession`; the module-level
functions compute the next session from the current one and the frame's
signals. :class:`CaptureArbiter` owns the live session behind a lock so that
the frame thread (``on_frame``) and the consumer thread (``complete``,
``fail``, ``reset``) never interleave a read-modify-write.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from enum import Enum
from threading import Lock
from typing import Callable, Sequence

from autoshot.utils.publisher import (
    TOPIC_CAPTURE_REQUESTED,
    TOPIC_CAPTURED,
    TOPIC_SESSION_RESET,
    CrossThreadPublisher,
)
from autoshot.utils.types import CapturedArtifact, CaptureOptions, FaceBox

logger = logging.getLogger(__name__)


class CaptureState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    CAPTURE_IN_FLIGHT = "capture_in_flight"
    CAPTURED = "captured"


@dataclass(frozen=True)
class CaptureSession:
    state: CaptureState = CaptureState.IDLE
    captured: bool = False
    in_flight: bool = False
    artifact_path: str | None = None
    request_id: int = 0
    requested_at: float | None = None
    attempts: int = 0


@dataclass(frozen=True)
class CaptureRequest:
    request_id: int
    frame_id: int
    options: CaptureOptions
    requested_at: float


@dataclass(frozen=True)
class Decision:
    session: CaptureSession
    request: CaptureRequest | None = None
    cleared: bool = False
    timed_out: bool = False


def evaluate(
    session: CaptureSession,
    faces: Sequence[FaceBox],
    lit: bool,
    *,
    frame_id: int,
    now: float,
    options: CaptureOptions,
    timeout_seconds: float = 0.0,
) -> Decision:
    if session.captured:
        return Decision(session=session)

    if (
        session.in_flight
        and timeout_seconds > 0
        and session.requested_at is not None
        and (now - session.requested_at) >= timeout_seconds
    ):
        reverted = replace(session, in_flight=False, requested_at=None)
        if not faces:
            return Decision(session=replace(reverted, state=CaptureState.IDLE), cleared=True, timed_out=True)
        # Retry is left to a later frame.
        return Decision(session=replace(reverted, state=CaptureState.ARMED), timed_out=True)

    if not faces:
        return Decision(session=replace(session, state=CaptureState.IDLE), cleared=True)

    if session.state is CaptureState.IDLE:
        session = replace(session, state=CaptureState.ARMED)

    if session.state is CaptureState.ARMED and lit and not session.in_flight:
        request_id = session.request_id + 1
        session = replace(
            session,
            state=CaptureState.CAPTURE_IN_FLIGHT,
            in_flight=True,
            request_id=request_id,
            requested_at=now,
            attempts=session.attempts + 1,
        )
        request = CaptureRequest(
            request_id=request_id,
            frame_id=frame_id,
            options=options,
            requested_at=now,
        )
        return Decision(session=session, request=request)

    return Decision(session=session)


def _is_pending(session: CaptureSession, request_id: int) -> bool:
    return session.in_flight and not session.captured and session.request_id == request_id


def resolve_success(session: CaptureSession, request_id: int, artifact_path: str) -> CaptureSession | None:
    """Latch the session; None when the request is no longer the pending one."""
    if not _is_pending(session, request_id):
        return None
    return replace(
        session,
        state=CaptureState.CAPTURED,
        captured=True,
        in_flight=False,
        artifact_path=artifact_path,
        requested_at=None,
    )


def resolve_failure(session: CaptureSession, request_id: int) -> CaptureSession | None:
    if not _is_pending(session, request_id):
        return None
    return replace(session, state=CaptureState.ARMED, in_flight=False, requested_at=None)


def new_session(previous: CaptureSession | None = None) -> CaptureSession:
    # Request ids keep counting across sessions so late results from an
    # earlier session can never match the new one.
    return CaptureSession(request_id=previous.request_id if previous else 0)


class CaptureArbiter:
    def __init__(
        self,
        publisher: CrossThreadPublisher,
        options: CaptureOptions | None = None,
        timeout_seconds: float = 10.0,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.publisher = publisher
        self.options = options or CaptureOptions()
        self.timeout_seconds = max(0.0, timeout_seconds)
        self.clock = clock
        self._lock = Lock()
        self._session = new_session()
        self.requests_dispatched = 0
        self.captures_completed = 0

    @property
    def session(self) -> CaptureSession:
        with self._lock:
            return self._session

    @property
    def state(self) -> CaptureState:
        return self.session.state

    def on_frame(self, frame_id: int, faces: Sequence[FaceBox], lit: bool, now: float | None = None) -> Decision:
        """Frame thread: fold one frame's signals into the session."""
        now = self.clock() if now is None else now
        with self._lock:
            previous = self._session
            decision = evaluate(
                previous,
                faces,
                lit,
                frame_id=frame_id,
                now=now,
                options=self.options,
                timeout_seconds=self.timeout_seconds,
            )
            self._session = decision.session
            if decision.request is not None:
                self.requests_dispatched += 1
                # Published under the lock: a competing evaluation sees in_flight first.
                self.publisher.publish_event(TOPIC_CAPTURE_REQUESTED, decision.request, frame_id)

        if decision.timed_out:
            logger.warning(
                "Capture request timed out",
                extra={
                    "event": "capture_timeout",
                    "request_id": previous.request_id,
                    "timeout_seconds": self.timeout_seconds,
                },
            )
        if decision.request is not None:
            logger.info(
                "Capture requested",
                extra={
                    "event": "capture_requested",
                    "request_id": decision.request.request_id,
                    "frame_id": frame_id,
                    "attempt": decision.session.attempts,
                },
            )
        elif previous.state is not decision.session.state:
            logger.debug(
                "Capture state changed",
                extra={
                    "event": "capture_state",
                    "frame_id": frame_id,
                    "from_state": previous.state.value,
                    "to_state": decision.session.state.value,
                },
            )
        return decision

    def complete(self, request_id: int, artifact: CapturedArtifact) -> bool:
        """Consumer thread: the still for ``request_id`` is ready."""
        with self._lock:
            updated = resolve_success(self._session, request_id, artifact.path)
            if updated is not None:
                self._session = updated
                self.captures_completed += 1
                self.publisher.publish_event(TOPIC_CAPTURED, artifact)

        if updated is None:
            logger.warning(
                "Discarding capture result for a request that is no longer pending",
                extra={"event": "capture_stale", "request_id": request_id, "path": artifact.path},
            )
            return False
        logger.info(
            "Capture completed",
            extra={"event": "capture_completed", "request_id": request_id, "path": artifact.path},
        )
        return True

    def fail(self, request_id: int, error: BaseException | str) -> bool:
        """Consumer thread: the still for ``request_id`` could not be produced."""
        with self._lock:
            updated = resolve_failure(self._session, request_id)
            if updated is not None:
                self._session = updated

        if updated is None:
            logger.info(
                "Ignoring failure for a request that is no longer pending",
                extra={"event": "capture_stale_failure", "request_id": request_id, "error": str(error)},
            )
            return False
        logger.warning(
            "Capture failed; retry allowed on a later frame",
            extra={"event": "capture_failed", "request_id": request_id, "error": str(error)},
        )
        return True

    def reset(self) -> CaptureSession:
        """Consumer thread: close the captured view and start a fresh session."""
        with self._lock:
            previous = self._session
            fresh = new_session(previous)
            self._session = fresh
            self.publisher.clear_overlay()
            self.publisher.publish_event(TOPIC_SESSION_RESET, previous)

        logger.info(
            "Capture session reset",
            extra={"event": "session_reset", "from_state": previous.state.value},
        )
        return fresh
