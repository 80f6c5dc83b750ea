"""
Shared fixtures: a file-backed SQLite database, a scripted provider binding
and the service graph wired the way the API wires it.
"""
import asyncio
import os
import tempfile

# Must be set before app modules read the global settings
os.environ.setdefault("REDIS_CANCELLATION_ENABLED", "false")
os.environ.setdefault("LOG_TO_CONSOLE", "false")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="appforge-logs-"))
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import Settings
from app.database.session import build_engine, create_tables
from app.models.domain import ProviderResponse, TokenUsage
from app.services.ai.base_client import BaseProviderClient
from app.services.ai.code_generation_service import CodeGenerationService
from app.services.ai.generation_client import GenerationClient
from app.services.ai.project_planner import ProjectPlanner
from app.services.ai.prompt_templates import PromptTemplateRegistry
from app.services.ai.rate_limiter import ProviderRateLimiter, RateLimitPolicy
from app.services.generation.runner import GenerationRunner
from app.services.generation.session_service import GenerationSessionService

USER_ID = "user-1"
OTHER_USER_ID = "user-2"

REACT_COMPONENT_VARIABLES = {
    "componentName": "TodoList",
    "purpose": "Show the user's todos",
    "props": "items, onToggle",
    "styling": "Tailwind",
    "functionality": "toggle, filter",
    "additionalRequirements": "keyboard navigation",
}

REACT_APP_VARIABLES = {
    "description": "A todo app",
    "framework": "react",
    "features": "lists, reminders",
    "targetUsers": "busy people",
    "scale": "small",
    "specialRequirements": "offline support",
    **REACT_COMPONENT_VARIABLES,
}

APP_RESPONSE = """Here is your app:
```json
{"files": [
  {"name": "App.tsx", "path": "src/App.tsx", "content": "export default function App() { return <div/>; }", "language": "typescript", "type": "component"},
  {"name": "index.css", "path": "src/index.css", "content": "body { margin: 0; }", "type": "style"}
]}
```"""


class FakeProviderClient(BaseProviderClient):
    """
    Provider binding that replays scripted replies instead of calling out.

    A reply that is an exception instance is raised. When the script runs
    out, every call returns "generated code". Each call is recorded.
    """

    def __init__(self, settings, provider="openai", replies=None, delay=0.0):
        self.provider = provider
        super().__init__(settings)
        self.replies = list(replies or [])
        self.delay = delay
        self.calls = []

    async def complete(self, messages, model=None, temperature=None, max_tokens=None):
        self.calls.append({
            "messages": messages,
            "model": model,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        if self.delay:
            await asyncio.sleep(self.delay)
        reply = self.replies.pop(0) if self.replies else "generated code"
        if isinstance(reply, Exception):
            raise reply
        return ProviderResponse(
            content=reply,
            provider=self.provider,
            model=model or self.default_model,
            usage=TokenUsage(prompt_tokens=100, completion_tokens=50),
        )


async def wait_for_runs(runner: GenerationRunner, timeout: float = 5.0) -> None:
    """Wait until every background task of the runner has finished."""
    tasks = list(runner._tasks.values())
    if tasks:
        await asyncio.wait(tasks, timeout=timeout)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        openai_api_key="sk-test",
        anthropic_api_key="sk-ant-test",
        openai_cost_per_token=0.00001,
        anthropic_cost_per_token=0.00002,
        redis_cancellation_enabled=False,
        rate_limit_requests_per_minute=0,
        phase_delay_seconds=0,
        log_to_console=False,
    )


@pytest.fixture
async def session_factory(settings):
    engine = build_engine(settings)
    await create_tables(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def registry():
    return PromptTemplateRegistry()


@pytest.fixture
def provider(settings):
    return FakeProviderClient(settings)


@pytest.fixture
def generation_client(settings, provider):
    return GenerationClient(
        settings,
        clients={
            "openai": provider,
            "anthropic": FakeProviderClient(settings, provider="anthropic"),
        },
        rate_limiter=ProviderRateLimiter(0, 1),
    )


@pytest.fixture
def orchestrator(registry, generation_client, settings):
    return CodeGenerationService(registry, generation_client, settings)


@pytest.fixture
def planner(orchestrator):
    return ProjectPlanner(orchestrator, RateLimitPolicy(phase_delay_seconds=0))


@pytest.fixture
def session_service(session_factory):
    return GenerationSessionService(session_factory)


@pytest.fixture
async def runner(session_service, orchestrator, planner, generation_client, settings):
    runner = GenerationRunner(session_service, orchestrator, planner, generation_client, settings)
    yield runner
    await runner.shutdown()


@pytest.fixture
async def api_client(settings, registry, generation_client, orchestrator, planner, session_service, runner):
    from app.main import app
    from app.api import deps

    app.dependency_overrides[deps.get_app_settings] = lambda: settings
    app.dependency_overrides[deps.get_template_registry] = lambda: registry
    app.dependency_overrides[deps.get_generation_client] = lambda: generation_client
    app.dependency_overrides[deps.get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[deps.get_project_planner] = lambda: planner
    app.dependency_overrides[deps.get_session_service] = lambda: session_service
    app.dependency_overrides[deps.get_generation_runner] = lambda: runner

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", headers={"X-User-ID": USER_ID}) as client:
        yield client

    app.dependency_overrides.clear()
