"""
Domain models for business logic.
These are internal representations separate from API schemas.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List
from enum import Enum


class TemplateCategory(str, Enum):
    """Prompt template category."""
    BLUEPRINT = "blueprint"
    IMPLEMENTATION = "implementation"
    DEBUGGING = "debugging"
    OPTIMIZATION = "optimization"
    DOCUMENTATION = "documentation"


class OutputKind(str, Enum):
    """What a project phase is expected to produce."""
    CODE = "code"
    DOCUMENTATION = "documentation"
    BLUEPRINT = "blueprint"
    TEST = "test"
    CONFIGURATION = "configuration"


class SessionStatus(str, Enum):
    """Generation session status."""
    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({SessionStatus.COMPLETED, SessionStatus.FAILED, SessionStatus.CANCELLED})

# target status -> statuses it may be entered from
ALLOWED_TRANSITIONS: Dict[SessionStatus, frozenset] = {
    SessionStatus.GENERATING: frozenset({SessionStatus.PENDING}),
    SessionStatus.COMPLETED: frozenset({SessionStatus.GENERATING}),
    SessionStatus.FAILED: frozenset({SessionStatus.GENERATING}),
    SessionStatus.CANCELLED: frozenset({SessionStatus.PENDING, SessionStatus.GENERATING}),
}


class FileType(str, Enum):
    """Kind of generated file."""
    COMPONENT = "component"
    PAGE = "page"
    CONFIG = "config"
    STYLE = "style"
    DATA = "data"
    TEST = "test"
    DOCUMENTATION = "documentation"
    OTHER = "other"


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how the database stores datetimes."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass
class PromptTemplate:
    """A named system/user prompt pair with declared placeholders."""
    id: str
    name: str
    description: str
    category: TemplateCategory
    system_prompt: str
    user_prompt_template: str
    variables: List[str]
    framework: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "framework": self.framework,
            "system_prompt": self.system_prompt,
            "user_prompt_template": self.user_prompt_template,
            "variables": list(self.variables),
        }


@dataclass
class RenderedPrompt:
    system_prompt: str
    user_prompt: str


@dataclass
class TemplateValidation:
    valid: bool
    missing_variables: List[str] = field(default_factory=list)


@dataclass
class ChatMessage:
    role: str  # system | user | assistant
    content: str


@dataclass
class ProviderRequest:
    """One outbound completion request."""
    messages: List[ChatMessage]
    provider: Optional[str] = None
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


@dataclass
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def to_dict(self) -> Dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass
class ProviderResponse:
    """Generated text plus usage/cost for one provider call."""
    content: str
    provider: str
    model: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    cost: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "provider": self.provider,
            "model": self.model,
            "usage": self.usage.to_dict(),
            "cost": self.cost,
        }


@dataclass
class GenerationOptions:
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    include_tests: bool = False
    include_documentation: bool = False
    code_style: Optional[str] = None


@dataclass
class GenerationRequest:
    """Caller input for a single template-driven generation."""
    template: str
    variables: Dict[str, str] = field(default_factory=dict)
    framework: Optional[str] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    options: GenerationOptions = field(default_factory=GenerationOptions)


@dataclass
class GenerationMetadata:
    template: str
    framework: str
    provider: str
    model: str
    tokens_used: int = 0
    cost: float = 0.0
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "template": self.template,
            "framework": self.framework,
            "provider": self.provider,
            "model": self.model,
            "tokens_used": self.tokens_used,
            "cost": self.cost,
            "generated_at": self.generated_at.isoformat(),
        }


@dataclass
class GenerationResult:
    """
    Output of one orchestrated generation.

    `partial` is set when an optional step (tests or documentation) failed;
    `warnings` says which one and why.
    """
    code: str
    metadata: GenerationMetadata
    tests: Optional[str] = None
    documentation: Optional[str] = None
    partial: bool = False
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "tests": self.tests,
            "documentation": self.documentation,
            "partial": self.partial,
            "warnings": list(self.warnings),
            "metadata": self.metadata.to_dict(),
        }


@dataclass
class CostEstimate:
    provider: str
    model: str
    estimated_tokens: int
    estimated_cost: float
    multiplier: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "model": self.model,
            "estimated_tokens": self.estimated_tokens,
            "estimated_cost": self.estimated_cost,
            "multiplier": self.multiplier,
        }


@dataclass
class GenerationPhase:
    name: str
    description: str
    template: str
    output_type: OutputKind
    depends_on: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "template": self.template,
            "depends_on": list(self.depends_on),
            "output_type": self.output_type.value,
        }


@dataclass
class ProjectGenerationPlan:
    id: str
    name: str
    description: str
    framework: str
    phases: List[GenerationPhase]
    estimated_cost: float
    estimated_time: int  # minutes

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "framework": self.framework,
            "phases": [phase.to_dict() for phase in self.phases],
            "estimated_cost": self.estimated_cost,
            "estimated_time": self.estimated_time,
        }


@dataclass
class PhaseResult:
    phase: GenerationPhase
    result: GenerationResult

    def to_dict(self) -> Dict[str, Any]:
        return {"phase": self.phase.to_dict(), "result": self.result.to_dict()}


@dataclass
class ProjectGenerationResult:
    phases: List[PhaseResult]
    total_cost: float
    total_time: float  # minutes
    total_tokens: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phases": [p.to_dict() for p in self.phases],
            "total_cost": self.total_cost,
            "total_time": self.total_time,
            "total_tokens": self.total_tokens,
        }


@dataclass
class GeneratedFile:
    """One file produced by a generation."""
    name: str
    path: str
    content: str
    language: str = "text"
    type: FileType = FileType.OTHER

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "path": self.path,
            "content": self.content,
            "language": self.language,
            "type": self.type.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GeneratedFile':
        """Create from dictionary, tolerating loose model output."""
        raw_type = str(data.get("type") or FileType.OTHER.value).lower()
        try:
            file_type = FileType(raw_type)
        except ValueError:
            file_type = FileType.OTHER
        name = str(data.get("name") or data.get("path") or "untitled")
        return cls(
            name=name,
            path=str(data.get("path") or name),
            content=str(data.get("content") or ""),
            language=str(data.get("language") or "text"),
            type=file_type,
        )
