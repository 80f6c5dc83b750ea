import asyncio
from unittest.mock import AsyncMock

import pytest

from app.core.exceptions import GenerationInProgressException, ProviderException
from app.models.domain import SessionStatus
from app.models.session_schemas import GenerationSessionRequest
from app.services.generation.stream import DONE_FRAME, relay_session_events

from tests.conftest import APP_RESPONSE, REACT_APP_VARIABLES, REACT_COMPONENT_VARIABLES, USER_ID, wait_for_runs


async def _start(session_service, runner, **request):
    session = await session_service.create(USER_ID, GenerationSessionRequest(**request))
    runner.start(session)
    return session


async def _wait_for_call(provider, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not provider.calls:
        if loop.time() > deadline:
            raise AssertionError("provider was never called")
        await asyncio.sleep(0.01)


def _drain(queue):
    events = []
    while not queue.empty():
        events.append(queue.get_nowait())
    return events


@pytest.mark.asyncio
async def test_app_generation(session_service, runner, provider):
    provider.replies = [APP_RESPONSE]

    session = await _start(session_service, runner, prompt="A todo app", features=["lists"])
    await wait_for_runs(runner)

    stored = await session_service.get_by_id(session.id)
    assert stored.status == "completed"
    assert [f["path"] for f in stored.files] == ["src/App.tsx", "src/index.css"]
    assert stored.session_metadata["provider"] == "openai"
    assert stored.session_metadata["tokens_used"] == 150
    assert stored.session_metadata["processing_time_seconds"] >= 0
    assert stored.completed_at is not None
    assert "A todo app" in provider.calls[0]["messages"][1].content
    assert provider.calls[0]["temperature"] == 0.7
    assert not runner.is_running(session.id)


@pytest.mark.asyncio
async def test_unparseable_app_response_fails(session_service, runner, provider):
    provider.replies = ["Sorry, I can't do that."]

    session = await _start(session_service, runner, prompt="A todo app")
    await wait_for_runs(runner)

    stored = await session_service.get_by_id(session.id)
    assert stored.status == "failed"
    assert "Invalid response format" in stored.error
    assert stored.files == []


@pytest.mark.asyncio
async def test_template_generation(session_service, runner, provider):
    session = await _start(
        session_service,
        runner,
        template_id="react-component",
        variables=REACT_COMPONENT_VARIABLES,
        include_tests=True,
    )
    await wait_for_runs(runner)

    stored = await session_service.get_by_id(session.id)
    assert stored.status == "completed"
    assert [f["path"] for f in stored.files] == ["react-component.md", "react-component.test.md"]
    assert stored.files[1]["type"] == "test"
    assert stored.session_metadata["template"] == "react-component"
    assert stored.session_metadata["tokens_used"] == 300
    assert len(provider.calls) == 2


@pytest.mark.asyncio
async def test_template_missing_variables_fail_session(session_service, runner, provider):
    session = await _start(session_service, runner, template_id="react-component", variables={"componentName": "X"})
    await wait_for_runs(runner)

    stored = await session_service.get_by_id(session.id)
    assert stored.status == "failed"
    assert "Missing required variables" in stored.error
    assert provider.calls == []


@pytest.mark.asyncio
async def test_project_generation(session_service, runner, provider):
    session = await session_service.create(USER_ID, GenerationSessionRequest(
        plan_type="react-app", project_name="Todo", variables=REACT_APP_VARIABLES,
    ))
    queue = runner.subscribe(session.id)
    runner.start(session)
    await wait_for_runs(runner)

    stored = await session_service.get_by_id(session.id)
    assert stored.status == "completed"
    paths = [f["path"] for f in stored.files]
    assert paths[0] == "phases/01-blueprint.md"
    assert "phases/02-main-components.test.md" in paths
    assert "phases/03-routing.md" in paths
    assert len(paths) == 8
    assert stored.session_metadata["phases"] == ["blueprint", "main-components", "routing", "state-management"]
    assert stored.session_metadata["plan_type"] == "react-app"

    events = _drain(queue)
    phase_events = [(e["event"], e["phase"]) for e in events if e["type"] == "phase"]
    assert phase_events[0] == ("phase_started", "blueprint")
    assert phase_events[-1] == ("phase_completed", "state-management")
    assert events[-1]["type"] == "completed"
    assert events[-1]["file_count"] == 8


@pytest.mark.asyncio
async def test_provider_failure_marks_session_failed(session_service, runner, provider):
    provider.replies = [ProviderException("openai", "HTTP 500: down")]
    session = await session_service.create(USER_ID, GenerationSessionRequest(prompt="A todo app"))
    queue = runner.subscribe(session.id)
    runner.start(session)
    await wait_for_runs(runner)

    stored = await session_service.get_by_id(session.id)
    assert stored.status == "failed"
    assert "HTTP 500" in stored.error

    events = _drain(queue)
    assert [e["type"] for e in events] == ["status", "error"]
    assert events[0]["status"] == "generating"


@pytest.mark.asyncio
async def test_events_for_successful_run(session_service, runner, provider):
    provider.replies = [APP_RESPONSE]
    session = await session_service.create(USER_ID, GenerationSessionRequest(prompt="A todo app"))
    queue = runner.subscribe(session.id)
    runner.start(session)
    await wait_for_runs(runner)

    events = _drain(queue)
    assert [e["type"] for e in events] == ["status", "file", "file", "completed"]
    assert events[1]["file"]["path"] == "src/App.tsx"
    assert events[3]["metadata"]["tokens_used"] == 150


@pytest.mark.asyncio
async def test_duplicate_start_rejected(session_service, runner, provider):
    provider.delay = 0.2
    session = await _start(session_service, runner, prompt="A todo app")

    with pytest.raises(GenerationInProgressException):
        runner.start(session)

    await wait_for_runs(runner)


@pytest.mark.asyncio
async def test_cancel_mid_run(session_service, runner, provider):
    provider.delay = 5.0
    session = await _start(session_service, runner, prompt="A todo app")
    await _wait_for_call(provider)

    record = await runner.cancel(session.id, USER_ID)
    await wait_for_runs(runner)

    assert record.status == "cancelled"
    stored = await session_service.get_by_id(session.id)
    assert stored.status == "cancelled"
    assert stored.files == []
    assert not runner.is_running(session.id)


@pytest.mark.asyncio
async def test_late_completion_is_discarded(session_service, runner, provider):
    provider.delay = 0.2
    provider.replies = [APP_RESPONSE]
    session = await _start(session_service, runner, prompt="A todo app")
    await _wait_for_call(provider)

    # Cancelled by another worker: the local task keeps running to the end
    await session_service.cancel(session.id, USER_ID)
    await wait_for_runs(runner)

    stored = await session_service.get_by_id(session.id)
    assert stored.status == "cancelled"
    assert stored.files == []


@pytest.mark.asyncio
async def test_cancellation_flag_stops_project_between_phases(session_service, runner, provider, monkeypatch):
    monkeypatch.setattr(
        "app.services.generation.runner.check_cancellation",
        AsyncMock(return_value=True),
    )
    session = await _start(
        session_service, runner, plan_type="react-app", variables=REACT_APP_VARIABLES,
    )
    await wait_for_runs(runner)

    stored = await session_service.get_by_id(session.id)
    assert stored.status == "cancelled"
    assert provider.calls == []


@pytest.mark.asyncio
async def test_shutdown_cancels_running_sessions(session_service, runner, provider):
    provider.delay = 5.0
    session = await _start(session_service, runner, prompt="A todo app")
    await _wait_for_call(provider)

    await runner.shutdown()

    stored = await session_service.get_by_id(session.id)
    assert stored.status == "cancelled"


@pytest.mark.asyncio
async def test_session_no_longer_pending_is_skipped(session_service, runner, provider):
    session = await session_service.create(USER_ID, GenerationSessionRequest(prompt="A todo app"))
    await session_service.update_status(session.id, SessionStatus.CANCELLED)

    runner.start(session)
    await wait_for_runs(runner)

    assert provider.calls == []


async def _collect_frames(queue, session_id, timeout=2.0):
    frames = []

    async def consume():
        async for frame in relay_session_events(queue, session_id):
            frames.append(frame)

    await asyncio.wait_for(consume(), timeout=timeout)
    return frames


@pytest.mark.asyncio
async def test_relay_closes_when_cancelled_elsewhere(session_service, runner, provider):
    provider.delay = 0.2
    provider.replies = [APP_RESPONSE]
    session = await session_service.create(USER_ID, GenerationSessionRequest(prompt="A todo app"))
    queue = runner.subscribe(session.id)
    runner.start(session)
    await _wait_for_call(provider)

    await session_service.cancel(session.id, USER_ID)
    frames = await _collect_frames(queue, session.id)

    assert frames[-1] == DONE_FRAME
    assert '"status": "cancelled"' in frames[-2]
    assert not any('"type": "file"' in frame for frame in frames)


@pytest.mark.asyncio
async def test_relay_closes_when_session_was_not_pending(session_service, runner, provider):
    session = await session_service.create(USER_ID, GenerationSessionRequest(prompt="A todo app"))
    await session_service.update_status(session.id, SessionStatus.CANCELLED)
    queue = runner.subscribe(session.id)

    runner.start(session)
    frames = await _collect_frames(queue, session.id)

    assert frames[-1] == DONE_FRAME
    assert provider.calls == []
