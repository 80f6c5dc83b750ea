"""
Generation session services: persistence, background runs, cancellation
and event streaming.
"""
from app.services.generation.session_service import GenerationSessionService
from app.services.generation.cancellation import (
    set_cancellation_flag,
    check_cancellation,
    clear_cancellation,
)
from app.services.generation.runner import GenerationRunner
from app.services.generation.stream import (
    DONE_FRAME,
    sse_frame,
    relay_session_events,
    snapshot_events,
)
from app.services.generation.cleanup import run_cleanup

__all__ = [
    # Store
    "GenerationSessionService",
    # Cancellation
    "set_cancellation_flag",
    "check_cancellation",
    "clear_cancellation",
    # Runner
    "GenerationRunner",
    # Streaming
    "DONE_FRAME",
    "sse_frame",
    "relay_session_events",
    "snapshot_events",
    # Cleanup
    "run_cleanup",
]
