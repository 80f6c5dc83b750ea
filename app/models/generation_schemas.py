"""
Pydantic models for synchronous generation, project and provider API
request/response validation.
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from app.models.domain import GenerationOptions, GenerationRequest, OutputKind


class GenerationOptionsSchema(BaseModel):
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, ge=1, le=200000)
    include_tests: bool = False
    include_documentation: bool = False
    code_style: Optional[str] = None


class GenerateCodeRequest(BaseModel):
    """Request model for template-driven code generation."""
    template: str = Field(min_length=1, description="Template id")
    variables: Dict[str, str] = Field(default_factory=dict)
    framework: Optional[str] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    options: GenerationOptionsSchema = Field(default_factory=GenerationOptionsSchema)

    def to_domain(self) -> GenerationRequest:
        return GenerationRequest(
            template=self.template,
            variables=dict(self.variables),
            framework=self.framework,
            provider=self.provider,
            model=self.model,
            options=GenerationOptions(**self.options.model_dump()),
        )


class GenerateBlueprintRequest(BaseModel):
    """Request model for application blueprint generation."""
    description: str = Field(min_length=1, max_length=10000)
    framework: str = Field(default="react", max_length=50)
    features: List[str] = Field(default_factory=list)
    target_users: str = "general users"
    scale: str = "small to medium"
    special_requirements: str = "none"
    provider: Optional[str] = None
    model: Optional[str] = None


class GenerationMetadataSchema(BaseModel):
    template: str
    framework: str
    provider: str
    model: str
    tokens_used: int
    cost: float
    generated_at: datetime


class GenerationResultResponse(BaseModel):
    """Generated code plus optional tests and documentation."""
    code: str
    tests: Optional[str] = None
    documentation: Optional[str] = None
    partial: bool = False
    warnings: List[str] = Field(default_factory=list)
    metadata: GenerationMetadataSchema


class CostEstimateResponse(BaseModel):
    provider: str
    model: str
    estimated_tokens: int
    estimated_cost: float
    multiplier: float


class GenerationPhaseSchema(BaseModel):
    name: str
    description: str
    template: str
    depends_on: List[str]
    output_type: OutputKind


class ProjectPlanResponse(BaseModel):
    id: str
    name: str
    description: str
    framework: str
    phases: List[GenerationPhaseSchema]
    estimated_cost: float
    estimated_time: int = Field(description="Estimated duration in minutes")


class PlanTypesResponse(BaseModel):
    plan_types: List[str]


class GenerateProjectRequest(BaseModel):
    """Request model for running a project plan synchronously."""
    plan_type: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=200)
    variables: Dict[str, str] = Field(default_factory=dict)
    provider: Optional[str] = None
    model: Optional[str] = None


class PhaseResultSchema(BaseModel):
    phase: GenerationPhaseSchema
    result: GenerationResultResponse


class ProjectGenerationResponse(BaseModel):
    plan: ProjectPlanResponse
    phases: List[PhaseResultSchema]
    total_cost: float
    total_tokens: int
    total_time: float = Field(description="Elapsed time in minutes")


class ProviderInfo(BaseModel):
    """Public description of a provider (never includes credentials)."""
    name: str
    display_name: str
    base_url: str
    default_model: str
    models: List[str]
    max_tokens: int
    cost_per_token: float
    supports_streaming: bool
    configured: bool


class ProviderListResponse(BaseModel):
    providers: List[ProviderInfo]
    available: List[str] = Field(description="Providers with a configured credential")
    default_provider: str


class ProviderTestResponse(BaseModel):
    provider: str
    success: bool
    latency_ms: int
    error: Optional[str] = None
