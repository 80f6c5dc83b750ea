"""
Synchronous generation API endpoints.

These wait for the provider and return the result in the response. Long
generations should use /generations, which runs in the background.
"""
import logging

from fastapi import APIRouter, Depends

from app.api.deps import get_current_user_id, get_orchestrator
from app.models.generation_schemas import (
    CostEstimateResponse,
    GenerateBlueprintRequest,
    GenerateCodeRequest,
    GenerationResultResponse,
)
from app.services.ai.code_generation_service import CodeGenerationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/generate", tags=["generate"])


@router.post("/code", response_model=GenerationResultResponse)
async def generate_code(
    request: GenerateCodeRequest,
    user_id: str = Depends(get_current_user_id),
    orchestrator: CodeGenerationService = Depends(get_orchestrator),
):
    """
    Generate code from a template.

    Raises:
        404: Unknown template
        422: Missing template variables
        400: Unsupported provider
        502: Provider call failed
    """
    logger.info(f"User {user_id} generating code with template '{request.template}'")
    result = await orchestrator.generate_code(request.to_domain())
    return result.to_dict()


@router.post("/blueprint", response_model=GenerationResultResponse)
async def generate_blueprint(
    request: GenerateBlueprintRequest,
    user_id: str = Depends(get_current_user_id),
    orchestrator: CodeGenerationService = Depends(get_orchestrator),
):
    logger.info(f"User {user_id} generating blueprint ({request.framework})")
    result = await orchestrator.generate_blueprint(
        description=request.description,
        framework=request.framework,
        features=request.features,
        target_users=request.target_users,
        scale=request.scale,
        special_requirements=request.special_requirements,
        provider=request.provider,
        model=request.model,
    )
    return result.to_dict()


@router.post("/estimate", response_model=CostEstimateResponse)
async def estimate_cost(
    request: GenerateCodeRequest,
    orchestrator: CodeGenerationService = Depends(get_orchestrator),
):
    """Estimate the cost of a generation without calling the provider."""
    return orchestrator.estimate_generation_cost(request.to_domain()).to_dict()
