from __future__ import annotations

from queue import Empty, Full, Queue
from typing import TypeVar

T = TypeVar("T")


def put_latest(queue_obj: Queue[T], item: T) -> bool:
    """Put without blocking, evicting the oldest item when the queue is full.

    Returns False only when the slot was taken again by a racing producer.
    """
    try:
        queue_obj.put_nowait(item)
        return True
    except Full:
        pass

    try:
        queue_obj.get_nowait()
    except Empty:
        pass

    try:
        queue_obj.put_nowait(item)
    except Full:
        return False
    return True


def drain(queue_obj: Queue[T]) -> list[T]:
    items: list[T] = []
    while True:
        try:
            items.append(queue_obj.get_nowait())
        except Empty:
            return items
