"""
Generation session API endpoints.

Generations run in the background; clients either poll /status or follow
the SSE stream.
"""
import logging
import math
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import StreamingResponse

from app.api.deps import (
    get_current_user_id,
    get_generation_client,
    get_generation_runner,
    get_project_planner,
    get_session_service,
    get_template_registry,
)
from app.core.exceptions import TemplateNotFoundException
from app.database.models.generation_session import GenerationSession
from app.models.domain import SessionStatus
from app.models.session_schemas import (
    GenerationSessionListResponse,
    GenerationSessionRequest,
    GenerationSessionResponse,
    GenerationSessionSummary,
    PaginationInfo,
    SessionStatsResponse,
    SessionStatusResponse,
    StartGenerationResponse,
)
from app.services.ai.generation_client import GenerationClient
from app.services.ai.project_planner import ProjectPlanner
from app.services.ai.prompt_templates import PromptTemplateRegistry
from app.services.generation.runner import GenerationRunner
from app.services.generation.session_service import GenerationSessionService
from app.services.generation.stream import SSE_HEADERS, relay_session_events, snapshot_events

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/generations", tags=["generations"])


async def _create_session(
    request: GenerationSessionRequest,
    user_id: str,
    session_service: GenerationSessionService,
    client: GenerationClient,
    registry: PromptTemplateRegistry,
    planner: ProjectPlanner,
) -> GenerationSession:
    """Reject requests that cannot start, then create the pending session."""
    provider = client.resolve_provider(request.provider)
    if request.mode == "template" and request.template_id not in registry:
        raise TemplateNotFoundException(request.template_id)
    if request.mode == "project":
        planner.create_project_plan(request.plan_type, request.project_name or "Generated Project")

    return await session_service.create(
        user_id,
        request,
        provider=provider,
        model=request.model or client.get_default_model(provider),
    )


def _event_stream(body: AsyncIterator[str]) -> StreamingResponse:
    return StreamingResponse(body, media_type="text/event-stream", headers=SSE_HEADERS)


async def _relay(runner: GenerationRunner, session_id: str, queue) -> AsyncIterator[str]:
    try:
        async for frame in relay_session_events(queue, session_id):
            yield frame
    finally:
        runner.unsubscribe(session_id, queue)


@router.post("", response_model=StartGenerationResponse, status_code=202)
async def start_generation(
    request: GenerationSessionRequest,
    user_id: str = Depends(get_current_user_id),
    session_service: GenerationSessionService = Depends(get_session_service),
    runner: GenerationRunner = Depends(get_generation_runner),
    client: GenerationClient = Depends(get_generation_client),
    registry: PromptTemplateRegistry = Depends(get_template_registry),
    planner: ProjectPlanner = Depends(get_project_planner),
):
    """
    Start a background generation and return immediately.

    Raises:
        400: Unsupported provider
        404: Unknown template or plan type
    """
    session = await _create_session(request, user_id, session_service, client, registry, planner)
    runner.start(session)
    return StartGenerationResponse(
        session_id=session.id,
        status=SessionStatus.PENDING,
        message=f"Generation started ({request.mode} mode)",
    )


@router.get("", response_model=GenerationSessionListResponse)
async def list_generations(
    status: Optional[SessionStatus] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    session_service: GenerationSessionService = Depends(get_session_service),
):
    """The caller's generations, newest first."""
    sessions, total = await session_service.list(user_id, status=status, limit=limit, offset=(page - 1) * limit)
    total_pages = math.ceil(total / limit) if total else 0
    return GenerationSessionListResponse(
        sessions=[GenerationSessionSummary.model_validate(s) for s in sessions],
        pagination=PaginationInfo(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        ),
    )


@router.get("/stats", response_model=SessionStatsResponse)
async def generation_stats(
    user_id: str = Depends(get_current_user_id),
    session_service: GenerationSessionService = Depends(get_session_service),
):
    return await session_service.get_stats(user_id)


@router.post("/stream")
async def start_generation_stream(
    request: GenerationSessionRequest,
    user_id: str = Depends(get_current_user_id),
    session_service: GenerationSessionService = Depends(get_session_service),
    runner: GenerationRunner = Depends(get_generation_runner),
    client: GenerationClient = Depends(get_generation_client),
    registry: PromptTemplateRegistry = Depends(get_template_registry),
    planner: ProjectPlanner = Depends(get_project_planner),
):
    """Start a generation and stream its progress as Server-Sent Events."""
    session = await _create_session(request, user_id, session_service, client, registry, planner)
    queue = runner.subscribe(session.id)
    runner.start(session)
    return _event_stream(_relay(runner, session.id, queue))


@router.get("/{session_id}", response_model=GenerationSessionResponse)
async def get_generation(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    session_service: GenerationSessionService = Depends(get_session_service),
):
    """
    Full generation session, including generated files.

    Raises:
        404: Session not found
        403: Session belongs to another user
    """
    return await session_service.get(session_id, user_id)


@router.get("/{session_id}/status", response_model=SessionStatusResponse)
async def get_generation_status(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    session_service: GenerationSessionService = Depends(get_session_service),
    runner: GenerationRunner = Depends(get_generation_runner),
):
    """Lightweight status for polling."""
    session = await session_service.get(session_id, user_id)
    return SessionStatusResponse(
        session_id=session.id,
        status=session.status,
        file_count=len(session.files or []),
        error=session.error,
        running=runner.is_running(session.id),
        updated_at=session.updated_at,
        completed_at=session.completed_at,
    )


@router.post("/{session_id}/cancel", response_model=GenerationSessionResponse)
async def cancel_generation(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    runner: GenerationRunner = Depends(get_generation_runner),
):
    """
    Cancel a pending or running generation.

    Raises:
        409: The generation already finished
    """
    return await runner.cancel(session_id, user_id)


@router.delete("/{session_id}", status_code=204)
async def delete_generation(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    session_service: GenerationSessionService = Depends(get_session_service),
    runner: GenerationRunner = Depends(get_generation_runner),
):
    """Delete a generation; an unfinished one is cancelled first."""
    session = await session_service.get(session_id, user_id)
    if not SessionStatus(session.status).is_terminal:
        await runner.cancel(session_id, user_id)
    await session_service.delete(session_id, user_id)
    return Response(status_code=204)


@router.get("/{session_id}/stream")
async def stream_generation(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    session_service: GenerationSessionService = Depends(get_session_service),
    runner: GenerationRunner = Depends(get_generation_runner),
):
    """
    Follow a generation as Server-Sent Events.

    A generation running in this worker is relayed live from now on (no
    replay). Otherwise the stream is a snapshot of the stored session.
    """
    await session_service.get(session_id, user_id)

    # Subscribe before checking, so a run finishing in between is not missed
    queue = runner.subscribe(session_id)
    if runner.is_running(session_id):
        return _event_stream(_relay(runner, session_id, queue))

    runner.unsubscribe(session_id, queue)
    session = await session_service.get(session_id, user_id)
    return _event_stream(snapshot_events(session))
