from .arbiter import (
    CaptureArbiter,
    CaptureRequest,
    CaptureSession,
    CaptureState,
    Decision,
    evaluate,
    new_session,
    resolve_failure,
    resolve_success,
)

__all__ = [
    "CaptureArbiter",
    "CaptureRequest",
    "CaptureSession",
    "CaptureState",
    "Decision",
    "evaluate",
    "new_session",
    "resolve_failure",
    "resolve_success",
]
