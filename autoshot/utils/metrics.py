from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from threading import Lock

_EMA_ALPHA = 0.2


@dataclass
class StageStats:
    calls: int = 0
    skipped: int = 0
    latency_ema_ms: float = 0.0
    events: deque[float] = field(default_factory=lambda: deque(maxlen=240))


class PerformanceTracker:
    """Per-stage call rate and latency, shared by the frame and consumer threads."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._stats: dict[str, StageStats] = {}

    def update(self, stage: str, latency_ms: float) -> None:
        now = time.perf_counter()
        with self._lock:
            stat = self._stats.setdefault(stage, StageStats())
            stat.calls += 1
            stat.events.append(now)
            if stat.calls == 1:
                stat.latency_ema_ms = latency_ms
            else:
                stat.latency_ema_ms = (_EMA_ALPHA * latency_ms) + ((1.0 - _EMA_ALPHA) * stat.latency_ema_ms)

    def skip(self, stage: str) -> None:
        """Count a frame the stage passed over without doing work."""
        with self._lock:
            self._stats.setdefault(stage, StageStats()).skipped += 1

    def snapshot(self) -> dict[str, dict[str, float]]:
        now = time.perf_counter()
        with self._lock:
            return {
                stage: {
                    "fps": self._rate(stat.events, now),
                    "latency_ms": stat.latency_ema_ms,
                    "calls": float(stat.calls),
                    "skipped": float(stat.skipped),
                }
                for stage, stat in self._stats.items()
            }

    @staticmethod
    def _rate(events: deque[float], now: float) -> float:
        if len(events) < 2:
            return 0.0
        return len(events) / max(1e-6, now - events[0])
