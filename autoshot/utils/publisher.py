from __future__ import annotations

import threading
from queue import Queue
from threading import Lock
from typing import Generic, TypeVar

from .queueing import drain
from .types import Envelope, FaceBox

T = TypeVar("T")

TOPIC_FACES = "faces"
TOPIC_LIGHTING = "lighting"
TOPIC_CAPTURE_REQUESTED = "capture_requested"
TOPIC_CAPTURED = "captured"
TOPIC_SESSION_RESET = "session_reset"


class LatestValue(Generic[T]):
    """Single-slot cell. A newer value replaces one the consumer has not read yet."""

    def __init__(self, initial: T) -> None:
        self._lock = Lock()
        self._value = initial
        self._frame_id = 0
        self._version = 0
        self._seen = 0

    def set(self, value: T, frame_id: int = 0) -> bool:
        with self._lock:
            if value == self._value:
                return False
            self._value = value
            self._frame_id = frame_id
            self._version += 1
            return True

    def get(self) -> T:
        with self._lock:
            return self._value

    def take(self) -> tuple[bool, int, T]:
        with self._lock:
            changed = self._version != self._seen
            self._seen = self._version
            return changed, self._frame_id, self._value


class EventChannel(Generic[T]):
    """Unbounded FIFO; every published item is delivered once, in order."""

    def __init__(self) -> None:
        self._queue: Queue[T] = Queue()

    def publish(self, item: T) -> None:
        self._queue.put_nowait(item)

    def drain(self) -> list[T]:
        return drain(self._queue)

    def __len__(self) -> int:
        return self._queue.qsize()


class CrossThreadPublisher:
    """Hands pipeline output from the frame thread to the consumer thread.

    Face lists and the lighting indicator are high-frequency signals and use
    latest-value cells: the consumer sees the most recent value, intermediate
    ones may be skipped. Capture requests, captured artifacts and session
    resets go through a FIFO channel and are never dropped.

    Producers only take short locks; the consumer blocks in :meth:`wait`.
    """

    def __init__(self) -> None:
        self.faces: LatestValue[tuple[FaceBox, ...]] = LatestValue(())
        self.lighting: LatestValue[bool] = LatestValue(False)
        self.events: EventChannel[Envelope] = EventChannel()
        self._wake = threading.Event()

    def publish_faces(self, faces: tuple[FaceBox, ...], frame_id: int = 0) -> None:
        if self.faces.set(tuple(faces), frame_id):
            self._wake.set()

    def publish_lighting(self, lit: bool, frame_id: int = 0) -> None:
        if self.lighting.set(bool(lit), frame_id):
            self._wake.set()

    def clear_overlay(self, frame_id: int = 0) -> None:
        self.publish_faces((), frame_id)
        self.publish_lighting(False, frame_id)

    def publish_event(self, topic: str, payload: object = None, frame_id: int = 0) -> None:
        self.events.publish(Envelope(topic=topic, frame_id=frame_id, payload=payload))
        self._wake.set()

    def wait(self, timeout: float | None = None) -> bool:
        fired = self._wake.wait(timeout)
        self._wake.clear()
        return fired

    def drain(self) -> list[Envelope]:
        envelopes: list[Envelope] = []
        changed, frame_id, faces = self.faces.take()
        if changed:
            envelopes.append(Envelope(topic=TOPIC_FACES, frame_id=frame_id, payload=faces))
        changed, frame_id, lit = self.lighting.take()
        if changed:
            envelopes.append(Envelope(topic=TOPIC_LIGHTING, frame_id=frame_id, payload=lit))
        envelopes.extend(self.events.drain())
        return envelopes
