"""
Pydantic models for generation session request/response validation.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.domain import FileType, SessionStatus


class Customization(BaseModel):
    """Look-and-feel hints for natural-language app generation."""
    theme: Optional[str] = None
    layout: Optional[str] = None
    components: List[str] = Field(default_factory=list)


class GenerationSessionRequest(BaseModel):
    """
    Request model for starting a background generation.

    Three modes, picked by which fields are set:
    - app generation from `prompt` (default)
    - single template generation when `template_id` is set
    - multi-phase project generation when `plan_type` is set
    """

    prompt: Optional[str] = Field(default=None, max_length=10000, description="Natural-language app description")
    app_type: str = Field(default="web-app", max_length=100)
    framework: str = Field(default="react", max_length=50)
    features: List[str] = Field(default_factory=list)
    customization: Optional[Customization] = None

    template_id: Optional[str] = Field(default=None, description="Template to generate from")
    plan_type: Optional[str] = Field(default=None, description="Project plan to run")
    project_name: Optional[str] = Field(default=None, max_length=200)
    variables: Dict[str, str] = Field(default_factory=dict)
    include_tests: bool = False
    include_documentation: bool = False

    provider: Optional[str] = None
    model: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, ge=1, le=200000)

    app_id: Optional[str] = None

    @model_validator(mode='after')
    def validate_mode(self):
        """Exactly one generation mode must be selected."""
        if self.template_id and self.plan_type:
            raise ValueError("template_id and plan_type cannot both be set")
        if not self.template_id and not self.plan_type and not (self.prompt and self.prompt.strip()):
            raise ValueError("prompt is required unless template_id or plan_type is provided")
        return self

    @property
    def mode(self) -> str:
        if self.plan_type:
            return "project"
        if self.template_id:
            return "template"
        return "app"


class GeneratedFileSchema(BaseModel):
    name: str
    path: str
    content: str
    language: str = "text"
    type: FileType = FileType.OTHER


class GenerationSessionResponse(BaseModel):
    """Full view of a generation session."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    app_id: Optional[str] = None
    status: SessionStatus
    request: Dict[str, Any]
    files: List[GeneratedFileSchema] = []
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="session_metadata")
    error: Optional[str] = None
    version: int
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None


class GenerationSessionSummary(BaseModel):
    """List-view of a generation session (no file contents)."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    status: SessionStatus
    app_id: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None


class PaginationInfo(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int = Field(serialization_alias="totalPages")
    has_next: bool = Field(serialization_alias="hasNext")
    has_prev: bool = Field(serialization_alias="hasPrev")


class GenerationSessionListResponse(BaseModel):
    sessions: List[GenerationSessionSummary]
    pagination: PaginationInfo


class StartGenerationResponse(BaseModel):
    """Response model for a started background generation."""
    session_id: str = Field(description="Generation session id")
    status: SessionStatus
    message: str


class SessionStatusResponse(BaseModel):
    session_id: str
    status: SessionStatus
    file_count: int
    error: Optional[str] = None
    running: bool = Field(description="Whether a task for this session is running in this worker")
    updated_at: datetime
    completed_at: Optional[datetime] = None


class SessionStatsResponse(BaseModel):
    total_generations: int
    completed: int
    failed: int
    cancelled: int
    in_progress: int
    average_processing_time_seconds: Optional[float] = None
    provider_usage: Dict[str, int]
    monthly_usage: Dict[str, int]
