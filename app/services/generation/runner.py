"""
Background generation runner.

Runs a generation session as an asyncio task keyed by its session id,
persisting progress through the session store and publishing events to
in-process subscribers (the SSE relay). Cancelling a session cancels its
task, which aborts the provider HTTP call in flight; a Redis flag carries the
request to tasks running in other workers.
"""
import asyncio
import functools
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from app.core.config import Settings
from app.core.exceptions import (
    AppGeneratorException,
    GenerationInProgressException,
    ProviderException,
    SessionNotFoundException,
)
from app.core.logging import (
    log_operation_complete,
    log_operation_error,
    log_operation_start,
    set_session_id,
)
from app.database.models.generation_session import GenerationSession
from app.models.domain import (
    ChatMessage,
    FileType,
    GeneratedFile,
    GenerationOptions,
    GenerationRequest,
    GenerationResult,
    OutputKind,
    ProviderRequest,
    SessionStatus,
)
from app.models.session_schemas import GenerationSessionRequest
from app.services.ai.code_generation_service import CodeGenerationService
from app.services.ai.generation_client import GenerationClient
from app.services.ai.project_planner import ProjectPlanner
from app.services.ai.response_parser import extract_generated_files
from app.services.generation.cancellation import (
    check_cancellation,
    clear_cancellation,
    set_cancellation_flag,
)
from app.services.generation.prompts import APP_MAX_TOKENS, APP_TEMPERATURE, build_app_prompt
from app.services.generation.session_service import GenerationSessionService

logger = logging.getLogger(__name__)

DEFAULT_PROJECT_NAME = "Generated Project"

_OUTPUT_FILE_TYPES = {
    OutputKind.CODE: FileType.COMPONENT,
    OutputKind.BLUEPRINT: FileType.DOCUMENTATION,
    OutputKind.DOCUMENTATION: FileType.DOCUMENTATION,
    OutputKind.TEST: FileType.TEST,
    OutputKind.CONFIGURATION: FileType.CONFIG,
}


@dataclass
class RunOutcome:
    """What one generation run produced, before it is persisted."""
    files: List[GeneratedFile]
    provider: str
    model: Optional[str]
    tokens_used: int = 0
    cost: float = 0.0
    partial: bool = False
    warnings: List[str] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)


def _slug(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-") or "output"


def result_files(stem: str, result: GenerationResult, output_kind: OutputKind = OutputKind.CODE) -> List[GeneratedFile]:
    """
    Files for one orchestrated generation: the main output, then tests and
    documentation when present. Model output is markdown with code blocks.
    """
    files = [GeneratedFile(
        name=f"{stem}.md",
        path=f"{stem}.md",
        content=result.code,
        language="markdown",
        type=_OUTPUT_FILE_TYPES.get(output_kind, FileType.OTHER),
    )]
    if result.tests:
        files.append(GeneratedFile(
            name=f"{stem}.test.md",
            path=f"{stem}.test.md",
            content=result.tests,
            language="markdown",
            type=FileType.TEST,
        ))
    if result.documentation:
        files.append(GeneratedFile(
            name=f"{stem}.docs.md",
            path=f"{stem}.docs.md",
            content=result.documentation,
            language="markdown",
            type=FileType.DOCUMENTATION,
        ))
    return files


class GenerationRunner:
    """Owns the background tasks and event subscribers of this worker."""

    def __init__(
        self,
        session_service: GenerationSessionService,
        orchestrator: CodeGenerationService,
        planner: ProjectPlanner,
        client: GenerationClient,
        settings: Settings,
    ):
        self.session_service = session_service
        self.orchestrator = orchestrator
        self.planner = planner
        self.client = client
        self.settings = settings
        self._tasks: Dict[str, asyncio.Task] = {}
        self._subscribers: Dict[str, List[asyncio.Queue]] = {}

    # Task management

    def is_running(self, session_id: str) -> bool:
        task = self._tasks.get(session_id)
        return task is not None and not task.done()

    def start(self, session: GenerationSession) -> asyncio.Task:
        """
        Schedule the generation for a pending session.

        Raises:
            GenerationInProgressException: A task for this session is already running
        """
        if self.is_running(session.id):
            raise GenerationInProgressException(session.id)

        request = GenerationSessionRequest.model_validate(session.request)
        task = asyncio.create_task(
            self.process_generation(session.id, request),
            name=f"generation:{session.id}",
        )
        self._tasks[session.id] = task
        task.add_done_callback(functools.partial(self._forget, session.id))
        logger.info(f"Started generation task for session {session.id} ({request.mode} mode)")
        return task

    def _forget(self, session_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(session_id) is task:
            del self._tasks[session_id]

    async def cancel(self, session_id: str, user_id: str) -> GenerationSession:
        """
        Cancel a pending or generating session owned by `user_id`.

        Raises:
            SessionNotFoundException, UnauthorizedException,
            InvalidStatusTransitionException
        """
        record = await self.session_service.cancel(session_id, user_id)
        await set_cancellation_flag(session_id)

        task = self._tasks.get(session_id)
        if task is not None and not task.done():
            task.cancel()
        self._publish(session_id, {"type": "status", "session_id": session_id, "status": SessionStatus.CANCELLED.value})
        return record

    async def shutdown(self) -> None:
        """Cancel every running task and wait for them to unwind."""
        tasks = [task for task in self._tasks.values() if not task.done()]
        if not tasks:
            return
        logger.info(f"Cancelling {len(tasks)} running generation task(s)")
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # Event fan-out

    def subscribe(self, session_id: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.setdefault(session_id, []).append(queue)
        return queue

    def unsubscribe(self, session_id: str, queue: asyncio.Queue) -> None:
        queues = self._subscribers.get(session_id)
        if not queues:
            return
        if queue in queues:
            queues.remove(queue)
        if not queues:
            del self._subscribers[session_id]

    def _publish(self, session_id: str, event: Dict[str, Any]) -> None:
        for queue in self._subscribers.get(session_id, []):
            queue.put_nowait(event)

    async def _publish_stored_status(self, session_id: str) -> None:
        """Publish the status another writer left on the session, so relays can close."""
        try:
            record = await self.session_service.get_by_id(session_id)
        except SessionNotFoundException:
            # Deleted while running
            self._publish(session_id, {"type": "status", "session_id": session_id, "status": SessionStatus.CANCELLED.value})
            return

        if record.status == SessionStatus.FAILED.value:
            self._publish(session_id, {"type": "error", "session_id": session_id, "error": record.error or "Generation failed"})
        else:
            self._publish(session_id, {"type": "status", "session_id": session_id, "status": record.status})

    # Execution

    async def process_generation(self, session_id: str, request: GenerationSessionRequest) -> None:
        """
        Run one session to a terminal status.

        Failures are recorded on the session and published, never raised.
        Cancellation is recorded and then propagated so the task ends cancelled.
        """
        set_session_id(session_id)
        start_time = time.time()
        log_operation_start(
            logger=__name__,
            function="process_generation",
            operation="background_generation",
            message=f"Processing generation session {session_id}",
            context={"mode": request.mode, "provider": request.provider},
        )

        try:
            if not await self.session_service.update_status(session_id, SessionStatus.GENERATING):
                logger.warning(f"Session {session_id} is no longer pending, not starting")
                await self._publish_stored_status(session_id)
                return
            self._publish(session_id, {"type": "status", "session_id": session_id, "status": SessionStatus.GENERATING.value})

            if request.mode == "project":
                outcome = await self._run_project(session_id, request)
            elif request.mode == "template":
                outcome = await self._run_template(request)
            else:
                outcome = await self._run_app(request)

            processing_time = time.time() - start_time
            metadata = {
                "provider": outcome.provider,
                "model": outcome.model,
                "tokens_used": outcome.tokens_used,
                "cost": outcome.cost,
                "processing_time_seconds": round(processing_time, 3),
                "partial": outcome.partial,
                "warnings": outcome.warnings,
                **outcome.extra,
            }

            stored = await self.session_service.update_files(session_id, outcome.files, metadata)
            if not stored or not await self.session_service.update_status(session_id, SessionStatus.COMPLETED):
                logger.warning(f"Session {session_id} left 'generating' before completion; result discarded")
                await self._publish_stored_status(session_id)
                return

            for generated in outcome.files:
                self._publish(session_id, {"type": "file", "session_id": session_id, "file": generated.to_dict()})
            self._publish(session_id, {
                "type": "completed",
                "session_id": session_id,
                "file_count": len(outcome.files),
                "metadata": metadata,
            })
            log_operation_complete(
                logger=__name__,
                function="process_generation",
                operation="background_generation",
                context={"file_count": len(outcome.files), "tokens_used": outcome.tokens_used},
                duration=processing_time,
            )

        except asyncio.CancelledError:
            logger.info(f"Generation session {session_id} cancelled")
            await self.session_service.update_status(session_id, SessionStatus.CANCELLED)
            await clear_cancellation(session_id)
            self._publish(session_id, {"type": "status", "session_id": session_id, "status": SessionStatus.CANCELLED.value})
            raise

        except Exception as e:
            error_message = e.message if isinstance(e, AppGeneratorException) else str(e)
            log_operation_error(
                logger=__name__,
                function="process_generation",
                operation="background_generation",
                error=e,
                context={"mode": request.mode},
            )
            await self.session_service.update_status(session_id, SessionStatus.FAILED, error=error_message)
            self._publish(session_id, {"type": "error", "session_id": session_id, "error": error_message})

        finally:
            set_session_id(None)

    async def _run_app(self, request: GenerationSessionRequest) -> RunOutcome:
        """Natural-language app generation: one call returning a JSON file list."""
        provider = self.client.resolve_provider(request.provider)
        system_prompt, user_prompt = build_app_prompt(request)
        response = await self.client.send(ProviderRequest(
            messages=[
                ChatMessage(role="system", content=system_prompt),
                ChatMessage(role="user", content=user_prompt),
            ],
            provider=provider,
            model=request.model,
            temperature=APP_TEMPERATURE if request.temperature is None else request.temperature,
            max_tokens=request.max_tokens or APP_MAX_TOKENS,
        ))

        try:
            files = extract_generated_files(response.content)
        except ValueError as e:
            raise ProviderException(provider, f"Invalid response format: {e}")

        return RunOutcome(
            files=files,
            provider=provider,
            model=response.model,
            tokens_used=response.usage.total_tokens,
            cost=response.cost,
        )

    async def _run_template(self, request: GenerationSessionRequest) -> RunOutcome:
        result = await self.orchestrator.generate_code(GenerationRequest(
            template=request.template_id,
            variables=dict(request.variables),
            framework=request.framework,
            provider=request.provider,
            model=request.model,
            options=GenerationOptions(
                temperature=request.temperature,
                max_tokens=request.max_tokens,
                include_tests=request.include_tests,
                include_documentation=request.include_documentation,
            ),
        ))
        return RunOutcome(
            files=result_files(_slug(request.template_id), result),
            provider=result.metadata.provider,
            model=result.metadata.model,
            tokens_used=result.metadata.tokens_used,
            cost=result.metadata.cost,
            partial=result.partial,
            warnings=list(result.warnings),
            extra={"template": request.template_id},
        )

    async def _run_project(self, session_id: str, request: GenerationSessionRequest) -> RunOutcome:
        plan = self.planner.create_project_plan(request.plan_type, request.project_name or DEFAULT_PROJECT_NAME)

        async def on_phase(event: Dict[str, Any]) -> None:
            if await check_cancellation(session_id):
                logger.info(f"Cancellation flag found for {session_id} at phase '{event['phase']}'")
                raise asyncio.CancelledError()
            payload = dict(event)
            payload["event"] = payload.pop("type")
            self._publish(session_id, {"type": "phase", "session_id": session_id, **payload})

        result = await self.planner.generate_project(
            plan,
            dict(request.variables),
            provider=request.provider,
            model=request.model,
            on_phase=on_phase,
        )

        files: List[GeneratedFile] = []
        warnings: List[str] = []
        partial = False
        models = set()
        for index, phase_result in enumerate(result.phases, start=1):
            phase = phase_result.phase
            stem = f"phases/{index:02d}-{_slug(phase.name)}"
            files.extend(result_files(stem, phase_result.result, phase.output_type))
            partial = partial or phase_result.result.partial
            warnings.extend(f"{phase.name}: {w}" for w in phase_result.result.warnings)
            models.add(phase_result.result.metadata.model)

        return RunOutcome(
            files=files,
            provider=self.client.resolve_provider(request.provider),
            model=models.pop() if len(models) == 1 else request.model,
            tokens_used=result.total_tokens,
            cost=result.total_cost,
            partial=partial,
            warnings=warnings,
            extra={
                "plan_type": request.plan_type,
                "plan_id": plan.id,
                "phases": [p.phase.name for p in result.phases],
                "total_time_minutes": result.total_time,
            },
        )
