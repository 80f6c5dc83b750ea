import asyncio
import json
from types import SimpleNamespace

import pytest

from app.services.generation.stream import DONE_FRAME, relay_session_events, snapshot_events, sse_frame


def _payloads(frames):
    return [json.loads(frame[len("data: "):]) for frame in frames if frame != DONE_FRAME]


async def _collect(iterator):
    return [frame async for frame in iterator]


def test_sse_frame_format():
    assert sse_frame({"type": "connected"}) == 'data: {"type": "connected"}\n\n'


@pytest.mark.asyncio
async def test_relay_ends_with_done_after_completion():
    queue = asyncio.Queue()
    for event in (
        {"type": "status", "status": "generating"},
        {"type": "file", "file": {"path": "a.md"}},
        {"type": "completed", "file_count": 1},
        {"type": "status", "status": "ignored"},
    ):
        queue.put_nowait(event)

    frames = await _collect(relay_session_events(queue, "s1"))

    assert frames[-1] == DONE_FRAME
    assert [p["type"] for p in _payloads(frames)] == ["connected", "status", "file", "completed"]
    assert _payloads(frames)[0]["session_id"] == "s1"


@pytest.mark.asyncio
async def test_relay_error_closes_without_done():
    queue = asyncio.Queue()
    queue.put_nowait({"type": "error", "error": "boom"})

    frames = await _collect(relay_session_events(queue, "s1"))

    assert DONE_FRAME not in frames
    assert _payloads(frames)[-1] == {"type": "error", "error": "boom"}


@pytest.mark.asyncio
async def test_relay_cancelled_status_ends_stream():
    queue = asyncio.Queue()
    queue.put_nowait({"type": "status", "status": "cancelled"})

    frames = await _collect(relay_session_events(queue, "s1"))

    assert frames[-1] == DONE_FRAME
    assert len(frames) == 3


@pytest.mark.asyncio
async def test_relay_completed_status_ends_stream():
    queue = asyncio.Queue()
    queue.put_nowait({"type": "status", "status": "completed"})

    frames = await _collect(relay_session_events(queue, "s1"))

    assert frames[-1] == DONE_FRAME
    assert len(frames) == 3


def _session(**overrides):
    values = dict(
        id="s1",
        status="completed",
        files=[{"path": "a.md", "content": "x"}],
        error=None,
        session_metadata={"tokens_used": 5},
    )
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.mark.asyncio
async def test_snapshot_of_completed_session():
    frames = await _collect(snapshot_events(_session()))

    payloads = _payloads(frames)
    assert [p["type"] for p in payloads] == ["connected", "status", "file", "completed"]
    assert payloads[3]["metadata"] == {"tokens_used": 5}
    assert frames[-1] == DONE_FRAME


@pytest.mark.asyncio
async def test_snapshot_of_failed_session():
    frames = await _collect(snapshot_events(_session(status="failed", files=[], error="provider down")))

    assert DONE_FRAME not in frames
    assert _payloads(frames)[-1]["error"] == "provider down"


@pytest.mark.asyncio
async def test_snapshot_of_cancelled_session():
    frames = await _collect(snapshot_events(_session(status="cancelled", files=[])))

    assert [p["type"] for p in _payloads(frames)] == ["connected", "status"]
    assert frames[-1] == DONE_FRAME
