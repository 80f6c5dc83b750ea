"""
Pydantic models for prompt template API request/response validation.
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from app.models.domain import PromptTemplate, TemplateCategory


class PromptTemplateSchema(BaseModel):
    """A prompt template as exposed over the API."""
    id: str
    name: str
    description: str
    category: TemplateCategory
    system_prompt: str
    user_prompt_template: str
    variables: List[str]
    framework: Optional[str] = None

    @classmethod
    def from_domain(cls, template: PromptTemplate) -> "PromptTemplateSchema":
        return cls(**template.to_dict())


class CreateTemplateRequest(BaseModel):
    """Request model for registering a custom template."""
    id: str = Field(min_length=1, max_length=100, pattern=r"^[a-z0-9][a-z0-9-]*$")
    name: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=2000)
    category: TemplateCategory
    system_prompt: str = Field(min_length=1)
    user_prompt_template: str = Field(min_length=1)
    variables: List[str] = Field(default_factory=list)
    framework: Optional[str] = None

    @field_validator("variables")
    @classmethod
    def validate_variables(cls, v: List[str]) -> List[str]:
        """Variable names must be unique identifiers."""
        if len(set(v)) != len(v):
            raise ValueError("Variable names must be unique")
        for name in v:
            if not name.isidentifier():
                raise ValueError(f"Invalid variable name: {name}")
        return v

    def to_domain(self) -> PromptTemplate:
        return PromptTemplate(**self.model_dump())


class TemplateVariablesRequest(BaseModel):
    variables: Dict[str, str] = Field(default_factory=dict)


class RenderedPromptResponse(BaseModel):
    template_id: str
    system_prompt: str
    user_prompt: str


class TemplateValidationResponse(BaseModel):
    template_id: str
    valid: bool
    missing_variables: List[str]


class TemplateListResponse(BaseModel):
    templates: List[PromptTemplateSchema]
    total: int
