"""
Dependency injection for FastAPI endpoints.
Provides singleton instances and factory functions for services.
"""
from functools import lru_cache
from typing import Optional

from fastapi import Header, HTTPException

from app.core.config import Settings, get_settings
from app.database.session import get_session_factory
from app.services.ai.code_generation_service import CodeGenerationService
from app.services.ai.generation_client import GenerationClient
from app.services.ai.project_planner import ProjectPlanner
from app.services.ai.prompt_templates import PromptTemplateRegistry
from app.services.ai.rate_limiter import RateLimitPolicy
from app.services.generation.runner import GenerationRunner
from app.services.generation.session_service import GenerationSessionService

# Global singleton instances
_registry: Optional[PromptTemplateRegistry] = None
_generation_client: Optional[GenerationClient] = None
_orchestrator: Optional[CodeGenerationService] = None
_planner: Optional[ProjectPlanner] = None
_session_service: Optional[GenerationSessionService] = None
_runner: Optional[GenerationRunner] = None


@lru_cache()
def get_app_settings() -> Settings:
    """
    Get application settings (cached).

    Returns:
        Settings instance
    """
    return get_settings()


def get_current_user_id(x_user_id: Optional[str] = Header(default=None, alias="X-User-ID")) -> str:
    """
    Caller identity, as asserted by the upstream authentication layer.

    Raises:
        HTTPException 401: Header missing or blank
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-ID header")
    return x_user_id.strip()


def get_template_registry() -> PromptTemplateRegistry:
    """Prompt template registry singleton, seeded with the built-in catalogue."""
    global _registry
    if _registry is None:
        _registry = PromptTemplateRegistry()
    return _registry


def get_generation_client() -> GenerationClient:
    """Provider client singleton (shares one rate limiter across requests)."""
    global _generation_client
    if _generation_client is None:
        _generation_client = GenerationClient(get_app_settings())
    return _generation_client


def get_orchestrator() -> CodeGenerationService:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = CodeGenerationService(
            get_template_registry(),
            get_generation_client(),
            get_app_settings(),
        )
    return _orchestrator


def get_project_planner() -> ProjectPlanner:
    global _planner
    if _planner is None:
        _planner = ProjectPlanner(
            get_orchestrator(),
            RateLimitPolicy.from_settings(get_app_settings()),
        )
    return _planner


def get_session_service() -> GenerationSessionService:
    """
    Generation session store singleton.

    Requires init_db() to have run (application startup).
    """
    global _session_service
    if _session_service is None:
        _session_service = GenerationSessionService(get_session_factory())
    return _session_service


def get_generation_runner() -> GenerationRunner:
    """Background runner singleton; owns this worker's generation tasks."""
    global _runner
    if _runner is None:
        _runner = GenerationRunner(
            get_session_service(),
            get_orchestrator(),
            get_project_planner(),
            get_generation_client(),
            get_app_settings(),
        )
    return _runner


# Cleanup function for application shutdown
async def cleanup_resources() -> None:
    """Cancel running generations and drop the singletons."""
    global _registry, _generation_client, _orchestrator, _planner, _session_service, _runner
    if _runner is not None:
        await _runner.shutdown()
    _registry = None
    _generation_client = None
    _orchestrator = None
    _planner = None
    _session_service = None
    _runner = None
