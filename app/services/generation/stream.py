"""
Server-Sent Events relay for generation progress.

Frames are `data: <json>\\n\\n`; a finished stream ends with `data: [DONE]\\n\\n`.
A stream that ends in error sends the error frame and closes without [DONE].
There is no replay: a client only sees events published after it subscribed.
"""
import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict

from app.database.models.generation_session import GenerationSession
from app.models.domain import SessionStatus

logger = logging.getLogger(__name__)

DONE_FRAME = "data: [DONE]\n\n"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def sse_frame(payload: Dict[str, Any]) -> str:
    """Encode one event as an SSE data frame."""
    return f"data: {json.dumps(payload, default=str)}\n\n"


_TERMINAL_STATUS_EVENTS = (SessionStatus.COMPLETED.value, SessionStatus.CANCELLED.value)


def _ends_stream(event: Dict[str, Any]) -> bool:
    return event.get("type") == "completed" or (
        event.get("type") == "status" and event.get("status") in _TERMINAL_STATUS_EVENTS
    )


async def relay_session_events(queue: asyncio.Queue, session_id: str) -> AsyncIterator[str]:
    """
    Relay a subscriber queue as SSE frames until the session finishes.

    Yields a `connected` frame first, then every event. `completed` and a
    completed or cancelled status are followed by [DONE]; an `error` event ends the
    stream after its own frame.
    """
    yield sse_frame({"type": "connected", "session_id": session_id})

    while True:
        event = await queue.get()
        yield sse_frame(event)

        if event.get("type") == "error":
            logger.debug(f"Stream for {session_id} closed on error")
            return
        if _ends_stream(event):
            yield DONE_FRAME
            return


async def snapshot_events(session: GenerationSession) -> AsyncIterator[str]:
    """
    Frames for a session that is not running in this worker: its status,
    then its files, then [DONE] (or the error frame for a failed session).
    """
    yield sse_frame({"type": "connected", "session_id": session.id})
    yield sse_frame({"type": "status", "session_id": session.id, "status": session.status})

    if session.status == SessionStatus.FAILED.value:
        yield sse_frame({"type": "error", "session_id": session.id, "error": session.error or "Generation failed"})
        return

    for generated in session.files or []:
        yield sse_frame({"type": "file", "session_id": session.id, "file": generated})

    if session.status == SessionStatus.COMPLETED.value:
        yield sse_frame({
            "type": "completed",
            "session_id": session.id,
            "file_count": len(session.files or []),
            "metadata": session.session_metadata or {},
        })
    yield DONE_FRAME
