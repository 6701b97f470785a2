from .logger import configure_logger
from .metrics import PerformanceTracker
from .publisher import CrossThreadPublisher, EventChannel, LatestValue
from .queueing import drain, put_latest

__all__ = [
    "CrossThreadPublisher",
    "EventChannel",
    "LatestValue",
    "PerformanceTracker",
    "configure_logger",
    "drain",
    "put_latest",
]
