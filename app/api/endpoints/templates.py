"""
Prompt template API endpoints.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_template_registry
from app.core.exceptions import TemplateNotFoundException
from app.models.domain import TemplateCategory
from app.models.template_schemas import (
    CreateTemplateRequest,
    PromptTemplateSchema,
    RenderedPromptResponse,
    TemplateListResponse,
    TemplateValidationResponse,
    TemplateVariablesRequest,
)
from app.services.ai.prompt_templates import PromptTemplateRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/templates", tags=["templates"])


@router.get("", response_model=TemplateListResponse)
async def list_templates(
    category: Optional[TemplateCategory] = Query(default=None),
    framework: Optional[str] = Query(default=None),
    q: Optional[str] = Query(default=None, description="Search name, description and category"),
    registry: PromptTemplateRegistry = Depends(get_template_registry),
):
    """
    List templates, optionally filtered.

    Filters combine: a template is returned only if it matches all given.
    Framework-agnostic templates match any framework.
    """
    templates = registry.get_all_templates()
    if category is not None:
        ids = {t.id for t in registry.get_templates_by_category(category)}
        templates = [t for t in templates if t.id in ids]
    if framework:
        ids = {t.id for t in registry.get_templates_by_framework(framework)}
        templates = [t for t in templates if t.id in ids]
    if q:
        ids = {t.id for t in registry.search_templates(q)}
        templates = [t for t in templates if t.id in ids]

    return TemplateListResponse(
        templates=[PromptTemplateSchema.from_domain(t) for t in templates],
        total=len(templates),
    )


@router.get("/{template_id}", response_model=PromptTemplateSchema)
async def get_template(
    template_id: str,
    registry: PromptTemplateRegistry = Depends(get_template_registry),
):
    template = registry.get_template(template_id)
    if template is None:
        raise TemplateNotFoundException(template_id)
    return PromptTemplateSchema.from_domain(template)


@router.post("", response_model=PromptTemplateSchema, status_code=201)
async def create_template(
    request: CreateTemplateRequest,
    registry: PromptTemplateRegistry = Depends(get_template_registry),
):
    """
    Register a custom template; an existing id is overwritten.

    Raises:
        400: A declared variable is not used in the prompt
    """
    template = request.to_domain()
    registry.create_custom_template(template)
    return PromptTemplateSchema.from_domain(template)


@router.post("/{template_id}/render", response_model=RenderedPromptResponse)
async def render_template(
    template_id: str,
    request: TemplateVariablesRequest,
    registry: PromptTemplateRegistry = Depends(get_template_registry),
):
    """Render a template. Missing variables appear as `[name]` placeholders."""
    rendered = registry.render_template(template_id, request.variables)
    if rendered is None:
        raise TemplateNotFoundException(template_id)
    return RenderedPromptResponse(
        template_id=template_id,
        system_prompt=rendered.system_prompt,
        user_prompt=rendered.user_prompt,
    )


@router.post("/{template_id}/validate", response_model=TemplateValidationResponse)
async def validate_template(
    template_id: str,
    request: TemplateVariablesRequest,
    registry: PromptTemplateRegistry = Depends(get_template_registry),
):
    if template_id not in registry:
        raise TemplateNotFoundException(template_id)
    validation = registry.validate_template_variables(template_id, request.variables)
    return TemplateValidationResponse(
        template_id=template_id,
        valid=validation.valid,
        missing_variables=validation.missing_variables,
    )
