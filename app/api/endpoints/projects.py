"""
Project plan API endpoints.
"""
import logging

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_current_user_id, get_project_planner
from app.models.generation_schemas import (
    GenerateProjectRequest,
    PlanTypesResponse,
    ProjectGenerationResponse,
    ProjectPlanResponse,
)
from app.services.ai.project_planner import ProjectPlanner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("/plans", response_model=PlanTypesResponse)
async def list_plan_types(planner: ProjectPlanner = Depends(get_project_planner)):
    return PlanTypesResponse(plan_types=planner.plan_types())


@router.get("/plans/{plan_type}", response_model=ProjectPlanResponse)
async def get_plan(
    plan_type: str,
    name: str = Query(default="My Project", min_length=1, max_length=200),
    planner: ProjectPlanner = Depends(get_project_planner),
):
    """Preview the phases of a plan type (no generation)."""
    return planner.create_project_plan(plan_type, name).to_dict()


@router.post("/generate", response_model=ProjectGenerationResponse)
async def generate_project(
    request: GenerateProjectRequest,
    user_id: str = Depends(get_current_user_id),
    planner: ProjectPlanner = Depends(get_project_planner),
):
    """
    Run a project plan and wait for every phase.

    Raises:
        404: Unknown plan type or template
        422: Invalid phase dependencies or missing variables
        502: A phase's provider call failed
    """
    plan = planner.create_project_plan(request.plan_type, request.name)
    logger.info(f"User {user_id} generating project '{plan.name}' ({len(plan.phases)} phases)")

    result = await planner.generate_project(
        plan,
        request.variables,
        provider=request.provider,
        model=request.model,
    )
    return {"plan": plan.to_dict(), **result.to_dict()}
